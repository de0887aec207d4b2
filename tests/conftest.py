"""Shared pytest fixtures for all tests."""

import pytest

from partcache.database import SqliteStorage
from partcache.repositories.upload_part_repository import UploadPartRepository

START_TIME = 1_700_000_000


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    """
    Path of a fresh database file for each test.

    Args:
        tmp_path: pytest tmp_path fixture
    """
    return tmp_path / "data" / "partcache.db"


@pytest.fixture
def storage(db_path):
    """
    Opened storage handle, closed after the test.
    """
    with SqliteStorage(str(db_path), timeout=0.2) as handle:
        yield handle


@pytest.fixture
def repository(storage, clock):
    return UploadPartRepository(storage, clock=clock)


@pytest.fixture
def sample_part():
    return {
        "file_hash": "abc",
        "file_size": 100,
        "cid": 1,
        "filename": "a.mp4",
    }
