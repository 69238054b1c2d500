import pytest

from cuet_prep.bank import QuestionBank
from cuet_prep.db import MemoryKeyValueStore


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_cuet.db")
    return db_path


@pytest.fixture
def memory_store():
    return MemoryKeyValueStore()


@pytest.fixture
def bank():
    """The bundled question bank."""
    return QuestionBank.load()


class FakeClock:
    """Deterministic epoch-ms clock for the mistake store."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()
