import pytest
from timeblock_pro.store import ScheduleStore


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    return ScheduleStore(tmp_path / "data.json", tmp_path / "backup.json")


@pytest.fixture
def empty_store(store):
    for bt in store.get_block_types():
        store.delete_block_type(bt.id)
    return store
