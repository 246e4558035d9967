import pytest

from leadscore.analysis.pipeline import build_pipeline
from leadscore.core.config import Settings
from leadscore.core.errors import PersistenceError
from leadscore.core.rate_limiter import RateLimiter
from leadscore.core.store import InMemoryRecordStore
from leadscore.jobs import analysis_server
from leadscore.models import AnalysisStatus, SearchScope


class BrokenInserts(InMemoryRecordStore):
    def insert_records(self, records):
        raise PersistenceError("insert failed")


@pytest.fixture
def settings(monkeypatch):
    settings = Settings(analysis_delay_seconds=0, page_size=5)
    monkeypatch.setattr(analysis_server, "get_settings", lambda: settings)
    return settings


@pytest.fixture
def store(make_record):
    return InMemoryRecordStore([make_record("r1", website="https://acme.test/"), make_record("r2")])


@pytest.fixture(autouse=True)
def wiring(monkeypatch, settings, store):
    submitted = []

    class DummyExecutor:
        def submit(self, fn, *args):
            submitted.append((fn, args))

    pipeline = build_pipeline(settings, store=store)
    limiter = RateLimiter(2, 60)
    monkeypatch.setattr(analysis_server, "_executor", DummyExecutor())
    monkeypatch.setattr(analysis_server, "get_pipeline", lambda: pipeline)
    monkeypatch.setattr(analysis_server, "get_rate_limiter", lambda: limiter)
    yield submitted


@pytest.fixture
def client():
    return analysis_server.app.test_client()


def test_health_endpoint(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "ok"
    assert body["store"] == "memory"


def test_ingest_results_stores_records(client, store):
    response = client.post(
        "/searches/s9/results",
        json={"results": [{"name": "Acme", "website": "acme.test"}], "apply_basic_scores": True},
    )

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["inserted"] == 1
    record = store.get_record(data["ids"][0])
    assert record.search_id == "s9"
    assert record.analysis_status is AnalysisStatus.BASIC_COMPLETE


def test_ingest_results_validates_payload(client):
    assert client.post("/searches/s9/results", json={}).status_code == 400
    assert client.post("/searches/s9/results", json={"results": []}).status_code == 400
    assert client.post("/searches/s9/results", json={"results": ["Acme"]}).status_code == 400
    assert client.post("/searches/s9/results", json={"results": [{"address": "Main"}]}).status_code == 400


def test_ingest_results_reports_store_failures(monkeypatch, client, settings):
    pipeline = build_pipeline(settings, store=BrokenInserts())
    monkeypatch.setattr(analysis_server, "get_pipeline", lambda: pipeline)

    response = client.post("/searches/s9/results", json={"results": [{"name": "Acme"}]})
    assert response.status_code == 500


def test_enqueue_analysis_queues_scope(client, wiring):
    response = client.post("/searches/s1/analysis", json={"page": 2}, headers={"X-User-Id": "u1"})

    assert response.status_code == 202
    data = response.get_json()["data"]
    assert data["status"] == "queued"
    assert (data["page"], data["page_size"]) == (2, 5)
    assert data["remaining"] == 1
    fn, args = wiring[0]
    assert fn is analysis_server._run_batch_safe
    assert args == (SearchScope("s1", page=2, page_size=5),)


def test_enqueue_analysis_validates_page(client, wiring):
    assert client.post("/searches/s1/analysis", json={"page": 0}).status_code == 400
    assert client.post("/searches/s1/analysis", json={"page": "bad"}).status_code == 400
    assert client.post("/searches/s1/analysis", json={"page": True}).status_code == 400
    assert client.post("/searches/s1/analysis", json={"page_size": 5}).status_code == 400
    assert client.post("/searches/s1/analysis", json={"page": 1, "page_size": 1000}).status_code == 400
    assert wiring == []


def test_enqueue_analysis_is_rate_limited_per_user(client, wiring):
    headers = {"X-User-Id": "u1"}
    assert client.post("/searches/s1/analysis", headers=headers).status_code == 202
    assert client.post("/searches/s1/analysis", headers=headers).status_code == 202

    limited = client.post("/searches/s1/analysis", headers=headers)
    assert limited.status_code == 429
    assert int(limited.headers["Retry-After"]) > 0
    assert limited.get_json()["error"] == "rate limit exceeded"

    assert client.post("/searches/s1/analysis", headers={"X-User-Id": "u2"}).status_code == 202
    assert len(wiring) == 3


def test_queued_batch_runs_through_orchestrator(client, wiring, store):
    client.post("/searches/s1/analysis", json={})
    fn, args = wiring[0]
    fn(*args)

    assert store.get_record("r1").analysis_status is AnalysisStatus.COMPLETE
    assert store.get_record("r2").analysis_status is AnalysisStatus.COMPLETE


def test_analysis_progress(client, store):
    store.update_status("r2", AnalysisStatus.FAILED)

    search = client.get("/searches/s1/analysis").get_json()["data"]
    assert (search["total"], search["pending"], search["failed"]) == (2, 1, 1)

    page = client.get("/searches/s1/analysis?page=1&page_size=2").get_json()["data"]
    assert page["page"] == 1
    assert page["status"] == "pending"

    assert client.get("/searches/s1/analysis?page=x").status_code == 400


def test_score_result(client, store):
    assert client.post("/results/missing/score").status_code == 404

    response = client.post("/results/r1/score")
    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["scores"] == {"website_quality": 20, "digital_presence": 15, "seo": 10, "overall": 45}
    assert store.get_record("r1").analysis_status is AnalysisStatus.COMPLETE


def test_ingest_results_reports_only_new_records(client, store):
    store.update_status("r1", AnalysisStatus.COMPLETE)

    response = client.post("/searches/s1/results", json={"results": [{"id": "r1", "name": "Renamed"}]})

    assert response.status_code == 201
    assert response.get_json()["data"]["inserted"] == 0
    assert store.get_record("r1").business_name == "Business r1"
    assert store.get_record("r1").analysis_status is AnalysisStatus.COMPLETE
