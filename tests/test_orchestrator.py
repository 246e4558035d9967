import threading

from leadscore.analysis.item_analyzer import ItemAnalyzer
from leadscore.analysis.orchestrator import BatchOrchestrator
from leadscore.analysis.progress import ProgressReporter
from leadscore.core.errors import PersistenceError, SearchProviderError, SelectionError
from leadscore.core.store import InMemoryRecordStore
from leadscore.models import AnalysisResult, AnalysisStatus, SearchScope, WebsiteScores
from leadscore.scoring.providers import HeuristicWebsiteScorer, SearchPresenceScorer


class RecordingAnalyzer:
    """Stands in for ItemAnalyzer and records which records it was given."""

    def __init__(self, store, fail_ids=()):
        self.store = store
        self.fail_ids = set(fail_ids)
        self.seen = []
        self.statuses_at_call = []

    def score_one_business(self, record, mark_in_flight=False):
        self.seen.append(record.id)
        self.statuses_at_call.append(self.store.get_record(record.id).analysis_status)
        if record.id in self.fail_ids:
            self.store.update_status(record.id, AnalysisStatus.FAILED)
            return AnalysisResult(success=False, error="boom")
        self.store.update_status(record.id, AnalysisStatus.COMPLETE)
        return AnalysisResult(success=True)


class SelectionFailingStore(InMemoryRecordStore):
    def select_eligible(self, scope):
        raise SelectionError("database unavailable")


def build(store, analyzer, sleeps=None, **kwargs):
    sleeps = sleeps if sleeps is not None else []
    return BatchOrchestrator(store, analyzer, sleep=sleeps.append, **kwargs)


def test_batch_processes_every_eligible_record(make_record):
    records = [make_record(f"r{i}") for i in range(4)]
    records.append(make_record("done", analysis_status=AnalysisStatus.COMPLETE))
    records.append(make_record("other", search_id="s2"))
    store = InMemoryRecordStore(records)
    analyzer = RecordingAnalyzer(store, fail_ids={"r2"})
    sleeps = []

    outcome = build(store, analyzer, sleeps, delay_seconds=1.5).run(SearchScope("s1"))

    assert sorted(analyzer.seen) == ["r0", "r1", "r2", "r3"]
    assert outcome.selected == outcome.claimed == 4
    assert (outcome.completed, outcome.failed) == (3, 1)
    assert outcome.completed + outcome.failed == 4
    assert outcome.errors == {"r2": "boom"}
    assert sleeps == [1.5, 1.5, 1.5]


def test_records_are_marked_analyzing_before_processing(make_record):
    store = InMemoryRecordStore([make_record("a"), make_record("b", analysis_status=AnalysisStatus.BASIC_COMPLETE)])
    analyzer = RecordingAnalyzer(store)

    build(store, analyzer).run(SearchScope("s1"))

    assert analyzer.statuses_at_call == [AnalysisStatus.ANALYZING, AnalysisStatus.ANALYZING]


def test_page_scope_processes_in_score_order(make_record):
    records = [
        make_record("low", overall_score=10),
        make_record("none", overall_score=None),
        make_record("high", overall_score=60),
        make_record("mid", overall_score=30, analysis_status=AnalysisStatus.BASIC_COMPLETE),
        make_record("top", overall_score=90, analysis_status=AnalysisStatus.COMPLETE),
    ]
    store = InMemoryRecordStore(records)
    analyzer = RecordingAnalyzer(store)

    outcome = build(store, analyzer).run(SearchScope("s1", page=1, page_size=4))

    # page 1 = top, high, mid, low; "top" is already complete
    assert analyzer.seen == ["high", "mid", "low"]
    assert outcome.selected == 3

    analyzer.seen.clear()
    build(store, analyzer).run(SearchScope("s1", page=2, page_size=4))
    assert analyzer.seen == ["none"]


def test_selection_error_aborts_with_empty_outcome(make_record):
    store = SelectionFailingStore([make_record()])
    analyzer = RecordingAnalyzer(store)

    outcome = build(store, analyzer).run(SearchScope("s1"))

    assert analyzer.seen == []
    assert (outcome.selected, outcome.completed, outcome.failed) == (0, 0, 0)


def test_no_eligible_records_is_a_noop(make_record):
    store = InMemoryRecordStore([make_record(analysis_status=AnalysisStatus.COMPLETE)])
    sleeps = []

    outcome = build(store, RecordingAnalyzer(store), sleeps).run(SearchScope("s1"))

    assert outcome.processed == 0
    assert sleeps == []


def test_records_claimed_elsewhere_are_skipped(make_record):
    store = InMemoryRecordStore([make_record("a"), make_record("b")])

    class RacingStore:
        """Another run claims "b" between selection and claim."""

        def __getattr__(self, name):
            return getattr(store, name)

        def mark_analyzing(self, record_ids):
            store.mark_analyzing(["b"])
            return store.mark_analyzing(record_ids)

    analyzer = RecordingAnalyzer(store)
    outcome = build(RacingStore(), analyzer).run(SearchScope("s1"))

    assert analyzer.seen == ["a"]
    assert (outcome.selected, outcome.claimed) == (2, 1)


def test_overlapping_runs_never_share_records(make_record):
    store = InMemoryRecordStore([make_record(f"r{i}") for i in range(6)])
    analyzer = RecordingAnalyzer(store)
    lock = threading.Lock()
    outcomes = []

    def run():
        outcome = build(store, analyzer, delay_seconds=0).run(SearchScope("s1"))
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=run) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(analyzer.seen) == [f"r{i}" for i in range(6)]
    assert sum(o.claimed for o in outcomes) == 6


def test_analyzer_exception_is_absorbed(make_record):
    store = InMemoryRecordStore([make_record("a"), make_record("b")])

    class ExplodingAnalyzer(RecordingAnalyzer):
        def score_one_business(self, record, mark_in_flight=False):
            if record.id == "a":
                raise RuntimeError("unexpected")
            return super().score_one_business(record)

    outcome = build(store, ExplodingAnalyzer(store)).run(SearchScope("s1"))

    assert (outcome.completed, outcome.failed) == (1, 1)
    assert store.get_record("a").analysis_status is AnalysisStatus.FAILED


def test_recovered_provider_errors_still_complete(make_record):
    records = [make_record(f"r{i}", website="https://acme.test") for i in range(10)]
    store = InMemoryRecordStore(records)
    calls = {"n": 0}

    def flaky_search(query, api_key, count, timeout):
        calls["n"] += 1
        if calls["n"] in (2, 5, 9):
            raise SearchProviderError("503")
        return []

    analyzer = ItemAnalyzer(store, SearchPresenceScorer("key", search=flaky_search), HeuristicWebsiteScorer())
    outcome = build(store, analyzer).run(SearchScope("s1"))

    assert (outcome.completed, outcome.failed) == (10, 0)
    assert all(store.get_record(r.id).analysis_status is AnalysisStatus.COMPLETE for r in records)


def test_persistence_failures_are_counted_as_failed(make_record):
    class BrokenWrites(InMemoryRecordStore):
        def update_scores(self, record_id, *args, **kwargs):
            if record_id == "r1":
                raise PersistenceError("disk full")
            super().update_scores(record_id, *args, **kwargs)

    store = BrokenWrites([make_record("r0"), make_record("r1"), make_record("r2")])
    analyzer = ItemAnalyzer(store, SearchPresenceScorer(""), HeuristicWebsiteScorer())

    outcome = build(store, analyzer).run(SearchScope("s1"))

    assert (outcome.completed, outcome.failed) == (2, 1)
    assert store.get_record("r1").analysis_status is AnalysisStatus.FAILED


class LowWebsiteScorer:
    def score(self, website, business_name):
        return WebsiteScores(quality=12, seo=8)


class LowPresenceScorer:
    def score(self, business_name, address=None, website=None):
        return 6


def test_page_keeps_its_records_when_scores_drop(make_record):
    records = [
        make_record(f"r{i}", website=f"https://r{i}.test/", overall_score=45, analysis_status=AnalysisStatus.BASIC_COMPLETE)
        for i in range(4)
    ]
    store = InMemoryRecordStore(records)
    analyzer = ItemAnalyzer(store, LowPresenceScorer(), LowWebsiteScorer())
    orchestrator = build(store, analyzer)
    page_one = SearchScope("s1", page=1, page_size=2)

    outcome = orchestrator.run(page_one)

    assert (outcome.completed, outcome.failed) == (2, 0)
    assert store.get_record("r0").overall_score == 26
    progress = ProgressReporter(store).get_page_progress("s1", page=1, page_size=2)
    assert (progress.total, progress.completed, progress.pending) == (2, 2, 0)
    assert progress.status is AnalysisStatus.COMPLETE

    rerun = orchestrator.run(page_one)
    assert rerun.selected == 0
    assert store.get_record("r2").analysis_status is AnalysisStatus.BASIC_COMPLETE
