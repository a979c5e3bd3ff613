import io
import os
import tempfile

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_PASSWORD"] = "test-admin"
os.environ["SITE_URL"] = "https://convites.example.com"
os.environ["SMTP_SENDER"] = "convites@example.com"
os.environ["LOG_FILE"] = os.path.join(tempfile.gettempdir(), "rsvp-service-tests.log")

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rsvp_service.api.deps import get_mail_transport
from rsvp_service.core.config import settings
from rsvp_service.core.exceptions import EmailTransportError
from rsvp_service.db.base import Base
from rsvp_service.db.session import get_db
from rsvp_service.main import app
from rsvp_service.models import Event, Guest

ADMIN_HEADERS = {"x-admin-password": "test-admin"}


class FakeTransport:
    """Records outgoing messages, failing the first `failures` sends."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.attempts = 0
        self.sent = []

    def send(self, message):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise EmailTransportError("Connection refused")
        self.sent.append(message)
        return message["Message-ID"]


def make_image(fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(255, 18, 67)).save(buffer, format=fmt)
    return buffer.getvalue()


def fail_commits_with_pending(session, monkeypatch, model):
    """Make `session.commit()` fail while an unsaved `model` instance is pending."""
    real_commit = session.commit

    def commit():
        if any(isinstance(obj, model) for obj in session.new):
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(session, "commit", commit)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def invites_dir(tmp_path, monkeypatch):
    path = tmp_path / "events"
    path.mkdir()
    monkeypatch.setattr(settings, "INVITES_DIR", str(path))
    monkeypatch.setattr(settings, "EMAIL_RETRY_DELAY_SECONDS", 0)
    return path


@pytest.fixture
def event(db):
    event = Event(
        name="Festa Equinor",
        name_en="Equinor Party",
        slug="festa-equinor",
        location="Rio de Janeiro",
    )
    db.add(event)
    db.commit()
    return event


@pytest.fixture
def other_event(db):
    event = Event(name="Festa SP", slug="festa-sp", location="São Paulo")
    db.add(event)
    db.commit()
    return event


@pytest.fixture
def guest(db, event):
    guest = Guest(
        guid="6f1c1a52-4a9e-4d0e-9d55-6a0c2b7d9e10",
        qr_code="3001",
        name="Ana Souza",
        email="ana@example.com",
        phone="21999990000",
        event_id=event.id,
    )
    db.add(guest)
    db.commit()
    return guest


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(engine, transport):
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        session = TestSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mail_transport] = lambda: transport
    # No context manager: the lifespan would create tables on the configured engine
    yield TestClient(app)
    app.dependency_overrides.clear()
