import sys
from pathlib import Path

import pytest

# Ensure the `leadscore` package is importable when running pytest from a source checkout.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from leadscore.core import config  # noqa: E402
from leadscore.models import BusinessRecord  # noqa: E402


@pytest.fixture(autouse=True)
def clear_settings_cache():
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


@pytest.fixture
def make_record():
    def factory(record_id="r1", search_id="s1", **overrides):
        fields = {"business_name": f"Business {record_id}"}
        fields.update(overrides)
        return BusinessRecord(id=record_id, search_id=search_id, **fields)

    return factory
