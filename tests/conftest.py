"""Test configuration and fixtures.

Each test gets its own SQLite file database (aiosqlite) created from the model
metadata, so tests are fully isolated and can exercise real transactions and
concurrent sessions:
1. The application's session dependency opens sessions from the test factory
   and commits on success, exactly like the production dependency
2. Fixtures that create data commit it, so requests see it
3. The API-key rate limiter gets a fresh in-memory storage per test
"""

from collections.abc import AsyncGenerator
from pathlib import Path

from dotenv import load_dotenv

# Load test environment variables before the application reads its settings
test_env_path = Path(__file__).parent.parent / ".env.test"
load_dotenv(test_env_path, override=True)

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from limits.storage import storage_from_string  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from ledgergate.config.settings import settings  # noqa: E402
from ledgergate.database.base import Base  # noqa: E402
from ledgergate.database.client import session_scope  # noqa: E402
from ledgergate.database.dependencies import get_db_session, get_db_session_factory  # noqa: E402
from ledgergate.features.api_key.service import ApiKeyService  # noqa: E402
from ledgergate.features.auth.service import TokenService  # noqa: E402
from ledgergate.features.device.schemas import DeviceInfo  # noqa: E402
from ledgergate.features.device.service import DeviceService  # noqa: E402
from ledgergate.features.rate_limit.dependencies import get_api_rate_limiter  # noqa: E402
from ledgergate.features.rate_limit.service import ApiRateLimiter  # noqa: E402
from ledgergate.features.user.models import Family, User, UserRole, UserStatus  # noqa: E402
from ledgergate.main import app  # noqa: E402
from ledgergate.shared.throttling import limiter  # noqa: E402

DEFAULT_PASSWORD = "TestPass123!"


# Database Setup - Function Scope (one file database per test)


@pytest_asyncio.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Create a throwaway database with the full schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Session for test setup and assertions.

    It is separate from the sessions requests use: data must be committed to
    be visible to the app, and rows changed by a request must be re-read.
    """
    async with session_factory() as async_session:
        yield async_session


@pytest_asyncio.fixture
async def serial_session_factory(db_engine: AsyncEngine) -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Sessions on the same database whose transactions open with BEGIN IMMEDIATE.

    SQLite admits one writer at a time. Taking the write lock when the
    transaction starts makes racing read-then-write transactions wait on the
    busy timeout and run one after the other.
    """
    engine = create_async_engine(db_engine.url)

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def rate_limiter() -> ApiRateLimiter:
    """API-key rate limiter with its own in-memory counters."""
    return ApiRateLimiter(
        storage=storage_from_string("async+memory://"),
        tiers=settings.rate_limit_tiers,
        default_tier=settings.default_api_key_tier,
    )


# FastAPI Client & Dependency Overrides


@pytest_asyncio.fixture(autouse=True)
async def override_dependencies(session_factory: async_sessionmaker[AsyncSession], rate_limiter: ApiRateLimiter):
    """Point the app's database and rate limiter dependencies at the test ones."""

    async def _get_test_session():
        async with session_scope(session_factory) as request_session:
            yield request_session

    app.dependency_overrides[get_db_session] = _get_test_session
    app.dependency_overrides[get_db_session_factory] = lambda: session_factory
    app.dependency_overrides[get_api_rate_limiter] = lambda: rate_limiter
    limiter.reset()
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient]:
    """Unauthenticated async HTTP test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Factories


def build_device_payload(device_id: str = "device-a", **overrides) -> dict:
    """Complete device descriptor as a client would send it."""
    payload = {
        "device_id": device_id,
        "device_name": f"Phone {device_id}",
        "device_type": "ios",
        "os_version": "17.4",
        "app_version": "1.2.0",
    }
    payload.update(overrides)
    return payload


@pytest_asyncio.fixture
async def device_payload():
    """Builder of device descriptors: `device_payload("device-b", os_version="18.0")`."""
    return build_device_payload


@pytest_asyncio.fixture
async def make_user(session: AsyncSession):
    """Factory fixture to create committed test users, each in a new family.

    Usage:
        user = await make_user()                             # family admin
        member = await make_user(role=UserRole.MEMBER)
        locked = await make_user(status=UserStatus.LOCKED)
    """
    counter = 0

    async def _factory(
        email=None,
        password=DEFAULT_PASSWORD,
        first_name="Test",
        last_name="User",
        role=UserRole.ADMIN,
        status=UserStatus.ACTIVE,
        family=None,
        **kwargs,
    ) -> User:
        nonlocal counter
        counter += 1

        if email is None:
            email = f"testuser{counter}@example.com"
        if family is None:
            family = Family(name=f"Family {counter}")

        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            family=family,
            hashed_password=User.hash_password(password),
            role=role.value,
            status=status.value,
            **kwargs,
        )

        session.add(user)
        await session.commit()
        return user

    yield _factory


@pytest_asyncio.fixture
async def make_tokens(session: AsyncSession):
    """Factory fixture: register a device for the user and issue a token pair."""

    async def _factory(user: User, device_id: str = "device-a"):
        device = await DeviceService.upsert(session, user, DeviceInfo(**build_device_payload(device_id)))
        tokens = await TokenService.issue_tokens(session, user, device)
        await session.commit()
        return tokens

    yield _factory


@pytest_asyncio.fixture
async def make_api_key(session: AsyncSession):
    """Factory fixture: create an API key, returning (ApiKey, plaintext key)."""

    async def _factory(user: User, name="Test key", scopes=None, tier=None):
        api_key, plain_key = await ApiKeyService.create_key(
            session, user, name=name, scopes=scopes or ["read_write"], tier=tier
        )
        await session.commit()
        return api_key, plain_key

    yield _factory


@pytest_asyncio.fixture
async def auth_client(client: AsyncClient, make_user, make_tokens):
    """Client carrying a bearer token of a family admin.

    Returns:
        tuple: (client, user)

    """
    user = await make_user()
    tokens = await make_tokens(user)
    client.headers["Authorization"] = f"Bearer {tokens.access_token}"
    yield client, user


@pytest_asyncio.fixture
async def api_key_client(client: AsyncClient, make_user, make_api_key):
    """Client carrying a read_write API key of a family admin.

    Returns:
        tuple: (client, user, api_key)

    """
    user = await make_user()
    api_key, plain_key = await make_api_key(user)
    client.headers["X-Api-Key"] = plain_key
    yield client, user, api_key
