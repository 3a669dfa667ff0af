"""Pytest configuration and fixtures."""

import pytest

from database import GameDatabase
from engine import GameEngine
from server.server import create_app


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start=1_700_000_000.0, step=0.0):
        self.now = start
        self.step = step

    def __call__(self):
        current = self.now
        self.now += self.step
        return current

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    """Clock advancing one second per reading."""
    return FakeClock(step=1.0)


@pytest.fixture
def engine(clock):
    """Empty engine on the fake clock."""
    return GameEngine(clock=clock)


@pytest.fixture
def events(engine):
    """List collecting every event the engine emits."""
    collected = []
    engine.subscribe(collected.append)
    return collected


@pytest.fixture
def database(tmp_path):
    """Statistics store in a temporary file."""
    db = GameDatabase(str(tmp_path / "stats.db"))
    yield db
    db.close()


@pytest.fixture
def app(tmp_path, clock):
    """Server application with its own store and engine."""
    return create_app(db_path=str(tmp_path / "server.db"), clock=clock)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def summary_payload():
    """Valid finished-game record as sent by a client."""
    return {
        "userID": "alice",
        "gameDate": "2024-05-01T12:00:00Z",
        "failed": 3,
        "difficulty": "Easy",
        "completed": 8,
        "timeTaken": 95,
    }
