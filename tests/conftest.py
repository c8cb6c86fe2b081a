import os
from collections.abc import AsyncGenerator
from datetime import timedelta
from typing import Any

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

# Load environment variables from .env file, then fill in test defaults
load_dotenv()
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./auth_service_test.db")
os.environ.setdefault(
    "JWT_SECRET_KEY", "404E635266556A586E3272357538782F413F4428472B4B6250645367566B5970"
)
os.environ.setdefault("LOG_FORMAT", "console")

from auth_service.core.exceptions import InvalidAssertionException  # noqa: E402
from auth_service.core.security import SessionTokenIssuer  # noqa: E402
from auth_service.database import get_db  # noqa: E402
from auth_service.dependencies import (  # noqa: E402
    get_claims_verifier,
    get_event_publisher,
    get_token_issuer,
)
from auth_service.main import app  # noqa: E402
from auth_service.models import metadata  # noqa: E402
from auth_service.schemas.auth import ExternalClaims  # noqa: E402
from auth_service.services.event_publisher import UserEventPublisher  # noqa: E402

TEST_SECRET = os.environ["JWT_SECRET_KEY"]
USER_EVENTS_EXCHANGE = "exploresg.user.events"
USER_CREATED_ROUTING_KEY = "user.created"
WELCOME_QUEUE = "notification.email.queue"


class FakeBroker:
    """In-memory broker recording every publish attempt."""

    def __init__(self, failures: int = 0):
        # Number of leading attempts that fail; -1 fails forever
        self.failures = failures
        self.attempts: list[tuple[str, str, dict[str, Any]]] = []
        self.published: list[tuple[str, str, dict[str, Any]]] = []

    async def publish(self, exchange: str, routing_key: str, payload: dict[str, Any]) -> None:
        self.attempts.append((exchange, routing_key, payload))
        if self.failures < 0 or len(self.attempts) <= self.failures:
            raise ConnectionError("broker unreachable")
        self.published.append((exchange, routing_key, payload))

    def attempts_for(self, routing_key: str) -> list[dict[str, Any]]:
        return [payload for _, key, payload in self.attempts if key == routing_key]

    def published_for(self, routing_key: str) -> list[dict[str, Any]]:
        return [payload for _, key, payload in self.published if key == routing_key]


class SleepRecorder:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClaimsVerifier:
    """Maps opaque test tokens to verified claims."""

    def __init__(self):
        self.tokens: dict[str, ExternalClaims] = {}

    def register(self, token: str, **claims: Any) -> None:
        claims.setdefault("subject", f"google-sub-{token}")
        self.tokens[token] = ExternalClaims(**claims)

    async def __call__(self, id_token: str) -> ExternalClaims:
        if id_token not in self.tokens:
            raise InvalidAssertionException("Invalid identity token")
        return self.tokens[id_token]


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with fresh tables per test."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def token_issuer() -> SessionTokenIssuer:
    return SessionTokenIssuer(
        secret_key=TEST_SECRET,
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7),
    )


@pytest.fixture
def fake_broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def event_publisher(fake_broker: FakeBroker, sleep_recorder: SleepRecorder) -> UserEventPublisher:
    return UserEventPublisher(
        broker=fake_broker,
        user_events_exchange=USER_EVENTS_EXCHANGE,
        user_created_routing_key=USER_CREATED_ROUTING_KEY,
        welcome_queue=WELCOME_QUEUE,
        max_attempts=3,
        retry_delay=2.0,
        attempt_timeout=1.0,
        sleep=sleep_recorder,
    )


@pytest.fixture
def claims_verifier() -> FakeClaimsVerifier:
    return FakeClaimsVerifier()


@pytest_asyncio.fixture
async def client(
    session_factory,
    token_issuer: SessionTokenIssuer,
    event_publisher: UserEventPublisher,
    claims_verifier: FakeClaimsVerifier,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_issuer] = lambda: token_issuer
    app.dependency_overrides[get_event_publisher] = lambda: event_publisher
    app.dependency_overrides[get_claims_verifier] = lambda: claims_verifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sign_in(client: AsyncClient, claims_verifier: FakeClaimsVerifier):
    """Sign in through the API with the given claims and return the response body."""

    async def _sign_in(token: str, requested_role: str | None = None, **claims: Any) -> dict:
        claims_verifier.register(token, **claims)
        body = {"requestedRole": requested_role} if requested_role else None
        response = await client.post(
            "/api/v1/auth/google",
            headers={"Authorization": f"Bearer {token}"},
            json=body,
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _sign_in
