import pytest

from sabiprep.db import init_db
from sabiprep.seed import seed_all


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_sabiprep.db")
    return db_path


@pytest.fixture
def seeded_db(tmp_db):
    """A temporary database with the bundled subjects and questions."""
    init_db(tmp_db)
    seed_all(tmp_db)
    return tmp_db


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
