"""
Shared pytest fixtures and configuration
"""

import os
import sys
from pathlib import Path

import pytest

# Add the project root to Python path to make imports work
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any application module reads settings
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["TOKEN_ENCRYPTION_KEY"] = "test-encryption-key"
os.environ["TWITTER_CONSUMER_KEY"] = "test_consumer_key"
os.environ["TWITTER_CONSUMER_SECRET"] = "test_consumer_secret"
os.environ["TWITTER_OAUTH_CALLBACK_URL"] = "http://testserver/twitter/oauth/callback"
os.environ["APP_URL"] = "http://app.test"

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
import models  # noqa: F401
from credentials import (
    AccessGrant,
    CredentialStore,
    InMemoryRateLimiter,
    OAuthFlowOrchestrator,
    OAuthProvider,
    RequestToken,
    SecretCipher,
    SQLAlchemyPersistenceGateway,
    TemporaryTokenCache,
    UpstreamAPIError,
    UpstreamErrorKind,
)

# Create in-memory SQLite database for testing
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

AGENT_1 = "6f1c2d3e-4a5b-4c6d-8e7f-901234567890"
AGENT_2 = "0a9b8c7d-6e5f-4a3b-9c2d-1e0f98765432"
CALLBACK_URL = "http://testserver/twitter/oauth/callback"


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeOAuthProvider(OAuthProvider):
    """
    In-memory stand-in for Twitter.

    Issues numbered request tokens and only grants access for a request token
    it issued, presented with its own secret and the verifier ``verifier-<n>``.
    """

    def __init__(self):
        self.issued = {}
        self.request_token_calls = []
        self.access_token_calls = []
        self.request_token_error = None
        self.access_token_error = None

    async def fetch_request_token(self, callback_url):
        self.request_token_calls.append(callback_url)
        if self.request_token_error:
            raise self.request_token_error

        n = len(self.request_token_calls)
        token = f"request-token-{n}"
        secret = f"request-secret-{n}"
        self.issued[token] = (secret, f"verifier-{n}")
        return RequestToken(
            token=token,
            secret=secret,
            authorization_url=f"https://api.twitter.com/oauth/authorize?oauth_token={token}",
        )

    async def fetch_access_token(self, request_token, request_secret, verifier):
        self.access_token_calls.append((request_token, request_secret, verifier))
        if self.access_token_error:
            raise self.access_token_error

        expected = self.issued.get(request_token)
        if expected is None or expected != (request_secret, verifier):
            raise UpstreamAPIError(UpstreamErrorKind.CLIENT_ERROR, upstream_status=401)

        n = request_token.rsplit("-", 1)[1]
        return AccessGrant(
            access_token=f"access-token-{n}",
            access_secret=f"access-secret-{n}",
            external_user_id=f"10{n}",
            external_handle=f"agent_owner_{n}",
        )


@pytest.fixture(scope="function")
def test_db():
    """
    Create all tables in the test database and provide a new session for testing.
    Tear down the tables after the test is complete.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def cipher():
    return SecretCipher("test-encryption-key")


@pytest.fixture
def token_cache(clock):
    return TemporaryTokenCache(ttl_seconds=600, clock=clock)


@pytest.fixture
def rate_limiter(clock):
    return InMemoryRateLimiter(window_seconds=300, max_requests=10, clock=clock)


@pytest.fixture
def gateway(test_db):
    return SQLAlchemyPersistenceGateway(test_db)


@pytest.fixture
def store(gateway, cipher, token_cache):
    return CredentialStore(gateway, cipher, token_cache)


@pytest.fixture
def fake_provider():
    return FakeOAuthProvider()


@pytest.fixture
def orchestrator(store, fake_provider, rate_limiter):
    return OAuthFlowOrchestrator(
        store=store,
        provider=fake_provider,
        rate_limiter=rate_limiter,
        callback_url=CALLBACK_URL,
    )


@pytest.fixture(scope="function")
def app(test_db, cipher, token_cache, rate_limiter, fake_provider):
    """
    The FastAPI app with its database and credential components overridden.
    """
    from main import app as main_app
    from dependencies import get_cipher, get_oauth_provider, get_rate_limiter, get_token_cache

    # Override the get_db dependency to use the test database
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    main_app.dependency_overrides[get_db] = override_get_db
    main_app.dependency_overrides[get_cipher] = lambda: cipher
    main_app.dependency_overrides[get_token_cache] = lambda: token_cache
    main_app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    main_app.dependency_overrides[get_oauth_provider] = lambda: fake_provider

    yield main_app

    main_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(app):
    from fastapi.testclient import TestClient
    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Authorization header for the caller ``user-1``."""
    from auth.jwt_service import create_token
    token_data = create_token("user-1")
    return {"Authorization": f"Bearer {token_data['token']}"}
