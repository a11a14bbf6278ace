import pytest
from httpx import AsyncClient, ASGITransport
import os
from datetime import datetime, timedelta, timezone

# Set up test environment variables before anything else
os.environ["ENV"] = "testing"
os.environ["DB_NAME"] = "campuslink_test"
os.environ["SECRET_KEY"] = "test_secret_key_12345"
os.environ["BACKGROUND_TASKS"] = "false"

from config import config
config.ENV = "testing"
config.DB_NAME = "campuslink_test"
config.BACKGROUND_TASKS = False

from mongomock_motor import AsyncMongoMockClient

from main import app
from constants import Collections
from database import client, db, Store
from models.user import UserModel
from routes.deps import create_access_token
from services.container import build_services

START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Whole-second, manually advanced UTC clock."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingTransport:
    """Stands in for the session registry; records every emission."""

    def __init__(self):
        self.emitted = []
        self.broadcasts = []
        self.failing_channels = set()

    async def emit(self, channel_id, event, payload):
        if channel_id in self.failing_channels:
            raise ConnectionError(f"channel {channel_id} unreachable")
        self.emitted.append((channel_id, event, payload))
        return 1

    async def broadcast_all(self, event, payload):
        self.broadcasts.append((event, payload))
        return 1

    def events(self, channel_id=None, event=None):
        return [
            payload for channel, name, payload in self.emitted
            if (channel_id is None or channel == channel_id) and (event is None or name == event)
        ]


@pytest.fixture(scope="function", autouse=True)
def mock_db():
    """Fresh in-memory database per test."""
    client.bind(AsyncMongoMockClient())
    yield db


@pytest.fixture(scope="function")
def store(mock_db):
    return Store(mock_db)


@pytest.fixture(scope="function")
def clock():
    return FakeClock()


@pytest.fixture(scope="function")
def transport():
    return RecordingTransport()


@pytest.fixture(scope="function")
def services(store, transport, clock):
    return build_services(store, transport, clock=clock)


@pytest.fixture(scope="function")
async def async_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client


async def create_user(store: Store, name: str, role: str = "Student", **extra) -> dict:
    user = UserModel(
        name=name,
        email=f"{name.lower().replace(' ', '.')}@campus.edu",
        role=role,
        **extra,
    )
    return await store.insert(Collections.USERS, user.model_dump())


@pytest.fixture(scope="function")
async def student(store):
    return await create_user(store, "Asha")


@pytest.fixture(scope="function")
async def other_student(store):
    return await create_user(store, "Ravi")


@pytest.fixture(scope="function")
async def faculty(store):
    return await create_user(store, "Meera", role="Faculty")


@pytest.fixture(scope="function")
async def admin(store):
    return await create_user(store, "Root", role="Admin")


def headers_for(user: dict) -> dict:
    token = create_access_token(data={"sub": user["id"]}, expires_delta=timedelta(minutes=60))
    return {"Authorization": f"Bearer {token}"}


async def make_acquaintances(store: Store, a: dict, b: dict) -> None:
    await store.update_one(Collections.USERS, {"id": a["id"]}, {"$addToSet": {"acquaintances": b["id"]}})
    await store.update_one(Collections.USERS, {"id": b["id"]}, {"$addToSet": {"acquaintances": a["id"]}})
