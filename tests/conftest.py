import os

os.environ["ENV"] = "test"
os.environ.setdefault("WHATSAPP_VERIFY_TOKEN", "verify-token")
os.environ.setdefault("WHATSAPP_ACCESS_TOKEN", "wa-access-token")
os.environ.setdefault("WHATSAPP_PHONE_NUMBER_ID", "100200300")
os.environ.setdefault("EMAIL_SEND_API_URL", "http://mail-relay.test/send")

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

import app.models  # noqa: F401  registers tables on Base.metadata
from app.db import Base, SessionLocal, engine, get_db
from app.main import create_app
from app.routers.utils.dependencies import get_event_publisher
from app.services.event_publisher import EventPublisher

pytest_plugins = [
    "tests.fixtures.thread_fixtures",
    "tests.fixtures.event_fixtures",
]


@pytest.fixture(scope="function")
def db():
    """Session on a fresh in-memory schema."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def transport():
    """Event transport double; inspect .send.call_args_list for published events."""
    return MagicMock()


@pytest.fixture
def publisher(transport):
    return EventPublisher(
        transport=transport,
        enrichment_queue="enrichment",
        indexing_queue="indexing",
        source="inbox-service",
    )


@pytest.fixture
def client(db, publisher):
    """Client with db and publisher overrides."""
    app = create_app(testing=True)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
