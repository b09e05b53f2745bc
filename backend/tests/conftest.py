import socket
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from profilelink.adapters import factory
from profilelink.adapters.chat.mock_adapter import MockChatClient
from profilelink.adapters.identity.mock_adapter import MockIdentityProvider
from profilelink.core.config import settings
from profilelink.models.base import Base
from profilelink.services.verification_store import InMemoryVerificationStore

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Security: This is a test-only key. Production uses a real key from env.
TEST_API_KEY = "test-dispatcher-key"  # nosec B105  # gitleaks:allow

# Fixed reference time for clock-driven tests
FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

SERVER_ID = "900000000000000001"
SUBJECT_ID = "100000000000000001"


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    Provides clear skip message to help diagnose CI/local issues.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


class MutableClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def clock() -> MutableClock:
    """Clock pinned to FIXED_NOW."""
    return MutableClock()


@pytest.fixture
def memory_store() -> InMemoryVerificationStore:
    """Fresh in-memory store for each test."""
    return InMemoryVerificationStore()


@pytest.fixture
def mock_chat() -> Iterator[MockChatClient]:
    """Mock chat client injected into the factory singleton.

    Yields:
        MockChatClient instance.
    """
    mock = MockChatClient()
    factory._chat_client = mock

    yield mock

    factory.reset_adapters()


@pytest.fixture
def mock_identity() -> Iterator[MockIdentityProvider]:
    """Mock identity provider injected into the factory singleton.

    Yields:
        MockIdentityProvider instance (no session credential).
    """
    mock = MockIdentityProvider()
    factory._identity_provider = mock

    yield mock

    factory.reset_adapters()


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    memory_store: InMemoryVerificationStore,
    mock_chat: MockChatClient,
    mock_identity: MockIdentityProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client authenticated as the dispatcher.

    Sets up:
    - In-memory store, mock chat client, and mock identity provider via
      dependency overrides (no database required)
    - API key check enabled with TEST_API_KEY
    - Rate limiting disabled

    Yields:
        Configured AsyncClient sending the X-API-Key header.
    """
    from profilelink.api.deps import get_chat, get_identity, get_store
    from profilelink.core.rate_limiting import limiter
    from profilelink.main import app

    app.dependency_overrides[get_store] = lambda: memory_store
    app.dependency_overrides[get_chat] = lambda: mock_chat
    app.dependency_overrides[get_identity] = lambda: mock_identity

    original_api_key = settings.api_key
    original_limiter_enabled = limiter.enabled
    settings.api_key = SecretStr(TEST_API_KEY)
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-API-Key": TEST_API_KEY},
    ) as ac:
        yield ac

    # Cleanup
    settings.api_key = original_api_key
    limiter.enabled = original_limiter_enabled
    app.dependency_overrides.clear()
