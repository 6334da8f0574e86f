import pytest

from slotboard.create_db_engine import create_engine
from slotboard.db import create_session_factory
from slotboard.dependencies import build_services
from slotboard.models.schemas import Base
from slotboard.services.session_store import SessionStore


class FakeConnection:
    """Stands in for a WebSocket: records what it was sent, or fails on send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection closed")
        self.messages.append(data)

    def of_type(self, message_type: str) -> list:
        return [message for message in self.messages if message["type"] == message_type]


def submission(email: str, score: int, timetaken: int, location: str = "HQ", name: str | None = None) -> dict:
    return {
        "name": name or email.split("@")[0],
        "email": email,
        "score": score,
        "timetaken": timetaken,
        "displaytime": f"{timetaken // 1000}s",
        "location": location,
    }


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'slotboard_test.sqlite3'}"


@pytest.fixture
async def engine(database_url):
    engine = create_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def Session(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(Session) -> SessionStore:
    return SessionStore(Session)


@pytest.fixture
def services(Session):
    return build_services(Session)
