import pytest
import os
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import app.models  # noqa: F401
from app.core.config import settings
from app.core.deps import get_db
from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import enable_sqlite_savepoints
from app.main import app
from app.services.notification_provider import NotificationRequest, NotificationResult


class RecordingNotifier:
    name = "recording"

    def __init__(self):
        self.sent: list[NotificationRequest] = []

    def send(self, db, request: NotificationRequest) -> NotificationResult:
        self.sent.append(request)
        return NotificationResult(provider=self.name, notification_id=f"n-{len(self.sent)}", status="sent")

    @property
    def messages(self) -> list[str]:
        return [request.message for request in self.sent]


def _auth_headers(seller_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(seller_id)}"}


@pytest.fixture()
def session_local():
    original_secret = settings.secret_key
    settings.secret_key = "test-secret-key"

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    yield factory

    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    settings.secret_key = original_secret


@pytest.fixture()
def db(session_local):
    session = session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def auth_headers():
    return _auth_headers


@pytest.fixture()
def test_context(session_local):
    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
