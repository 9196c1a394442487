import os

# Settings are read at import time; keep tests off any real database or gateway
os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mindfulai.api.v1.dependencies import get_gateway_client_factory
from mindfulai.core.config import Settings, get_settings
from mindfulai.db.base import Base
from mindfulai.db.session import get_db
from mindfulai.main import app
from mindfulai.models import User
from mindfulai.services.razorpay_service import RazorpayClient

TEST_KEY_ID = "rzp_test_key"
TEST_KEY_SECRET = "rzp_test_secret"


class GatewayRecorder:
    """Stands in for the Razorpay API through httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.responses = {}

    def respond(self, method: str, path: str, status_code: int = 200, json=None):
        self.responses[(method, path)] = (status_code, json if json is not None else {})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code, payload = self.responses.get((request.method, request.url.path), (200, {}))
        return httpx.Response(status_code, json=payload)

    def client(self) -> RazorpayClient:
        return RazorpayClient(
            TEST_KEY_ID,
            TEST_KEY_SECRET,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL="sqlite://",
        RAZORPAY_KEY_ID=TEST_KEY_ID,
        RAZORPAY_KEY_SECRET=TEST_KEY_SECRET,
        PAYMENT_DEDUPLICATE_CALLBACKS=False,
    )


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
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db_session):
    def _make(user_id: str = "user_42", email: str = None) -> User:
        user = User(id=user_id, email=email or f"{user_id}@example.com", name="Test User")
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def gateway():
    return GatewayRecorder()


@pytest.fixture
def client(db_session, test_settings, gateway):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_gateway_client_factory] = lambda: gateway.client
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
