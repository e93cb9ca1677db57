import pytest

from scoutcard.pipeline.record_store import RecordStore


@pytest.fixture
def store(temp_dir):
    db_path = temp_dir / "scoutcard.db"
    with RecordStore(db_path) as s:
        yield s


@pytest.fixture
def memory_store():
    with RecordStore(":memory:") as s:
        yield s


@pytest.fixture
def fast_config(make_config):
    """InternalConfig with a short pass timeout for concurrency tests."""
    return make_config(PASSES=3, PASS_TIMEOUT_SEC=0.5)
