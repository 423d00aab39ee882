# tests/conftest.py
import json

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from taskmarket.core.cache import TTLCache
from taskmarket.core.config import settings
from taskmarket.core.db import get_db, make_engine
from taskmarket.models.base import Base
from taskmarket.services.notification_fanout import NotificationFanout
from taskmarket.services.notification_feed import NotificationFeed
from taskmarket.services.push_sender import PushSender

# register every table on Base.metadata before create_all / first flush
import taskmarket.models.chat  # noqa: F401
import taskmarket.models.gamification  # noqa: F401
import taskmarket.models.notification  # noqa: F401
import taskmarket.models.review  # noqa: F401
import taskmarket.models.task  # noqa: F401
import taskmarket.models.task_status_history  # noqa: F401

PUSH_URL = "https://push.test/--/api/v2/push/send"


@pytest.fixture(scope="session")
def engine():
    eng = make_engine(settings.test_database_url)
    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture()
def db(engine):
    """
    Isolation pattern (SQLAlchemy 2.x):
      - connection per test with an OUTER transaction begun first
      - session joins it in "create_savepoint" mode, so the code under test may
        commit()/rollback() freely; those only touch the SAVEPOINT
      - teardown rolls back the outer transaction
    """
    connection = engine.connect()
    outer = connection.begin()

    session = Session(
        bind=connection,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )

    try:
        yield session
    finally:
        session.close()
        if outer.is_active:
            outer.rollback()
        connection.close()


class PushRecorder:
    """httpx.MockTransport handler that records payloads and acks every ticket."""

    def __init__(self) -> None:
        self.batches: list[list[dict]] = []
        self.status_code = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        batch = json.loads(request.content)
        self.batches.append(batch)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"errors": [{"message": "relay down"}]})
        return httpx.Response(200, json={"data": [{"status": "ok", "id": str(i)} for i in range(len(batch))]})

    @property
    def messages(self) -> list[dict]:
        return [m for batch in self.batches for m in batch]


@pytest.fixture()
def push_recorder() -> PushRecorder:
    return PushRecorder()


@pytest.fixture()
def push_sender(push_recorder) -> PushSender:
    sender = PushSender(url=PUSH_URL, chunk_size=100, client=httpx.Client(transport=httpx.MockTransport(push_recorder)))
    yield sender
    sender._client.close()


@pytest.fixture()
def fanout() -> NotificationFanout:
    return NotificationFanout(profile_cache=TTLCache(300.0))


@pytest.fixture()
def feed() -> NotificationFeed:
    return NotificationFeed()


@pytest.fixture()
def app(db, push_sender, fanout, feed):
    from taskmarket.main import create_app

    application = create_app(push_sender=push_sender, fanout=fanout, feed=feed)
    application.dependency_overrides[get_db] = lambda: db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture()
def client(app) -> TestClient:
    # no context manager: lifespan (logfire setup) is not needed in tests
    return TestClient(app)
