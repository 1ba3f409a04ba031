"""
Shared test fixtures for tenantgate.

Database tests run on TEST_DATABASE_URL (in-memory SQLite by default, a
real Postgres when set). The upstream PostgREST layer is replaced by an
``httpx.MockTransport`` so every outbound call can be inspected.
"""

import os
import time
from typing import Any, Callable
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

TEST_JWT_SECRET = "test-jwt-secret-with-at-least-32-characters"
TEST_ANON_KEY = "test-anon-key"
TEST_PROXY_SECRET = "test-proxy-secret"
UPSTREAM_URL = "http://upstream.test"

os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("JWT_SECRET", TEST_JWT_SECRET)
os.environ.setdefault("ANON_KEY", TEST_ANON_KEY)

from tenantgate.config import ProxyConfig  # noqa: E402
from tenantgate.db.base import Base  # noqa: E402
from tenantgate.main import create_app  # noqa: E402
import tenantgate.models  # noqa: E402,F401

TEST_DB_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
IS_POSTGRES = TEST_DB_URL.startswith("postgresql")


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


def make_jwt(claims: dict[str, Any], secret: str = TEST_JWT_SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def session_jwt(user_id, secret: str = TEST_JWT_SECRET, **extra) -> str:
    """A session credential shaped like the identity provider's."""
    claims = {
        "sub": str(user_id),
        "role": "authenticated",
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
    }
    claims.update(extra)
    return make_jwt(claims, secret)


def bearer(credential: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {credential}"}


# ---------------------------------------------------------------------------
# Config / fake upstream
# ---------------------------------------------------------------------------


def build_config(**overrides) -> ProxyConfig:
    values = dict(
        upstream_url=UPSTREAM_URL,
        jwt_secret=TEST_JWT_SECRET,
        anon_key=TEST_ANON_KEY,
        proxy_secret=None,
    )
    values.update(overrides)
    return ProxyConfig(**values)


class ChunkedBody(httpx.AsyncByteStream):
    """Response body delivered in chunks, like a socket-backed transport."""

    def __init__(self, *chunks: bytes, error: Exception | None = None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


def as_streamed(response: httpx.Response) -> httpx.Response:
    """Re-wrap an already-read response so its body can still be streamed."""
    try:
        content = response.content
    except httpx.ResponseNotRead:
        return response
    return httpx.Response(
        response.status_code,
        headers=response.headers,
        stream=ChunkedBody(content) if content else ChunkedBody(),
    )


class RecordingUpstream:
    """MockTransport handler that records every request it receives."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(200, json=[])
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return as_streamed(self.handler(request))

    @property
    def last(self) -> httpx.Request:
        assert self.requests, "no upstream call was made"
        return self.requests[-1]


@pytest.fixture
def upstream() -> RecordingUpstream:
    return RecordingUpstream()


@pytest.fixture
def proxy_config() -> ProxyConfig:
    return build_config()


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    if IS_POSTGRES:
        engine = create_async_engine(TEST_DB_URL, pool_pre_ping=True, echo=False)
    else:
        engine = create_async_engine(
            TEST_DB_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    yield engine
    await engine.dispose()


async def _drop_everything(engine) -> None:
    async with engine.begin() as conn:
        if IS_POSTGRES:
            await conn.execute(text("drop schema if exists api cascade"))
            await conn.execute(text("drop schema if exists private cascade"))
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine):
    """Fresh tables per test: drop → create → yield session → drop."""
    await _drop_everything(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with factory() as session:
        yield session

    await _drop_everything(test_engine)


# ---------------------------------------------------------------------------
# Test clients
# ---------------------------------------------------------------------------


@pytest.fixture
def client_factory(upstream):
    """Build an AsyncClient around a fresh app with its own config."""

    def _create(config: ProxyConfig | None = None, db_session=None) -> AsyncClient:
        app = create_app(
            config or build_config(),
            upstream_transport=httpx.MockTransport(upstream),
        )
        if db_session is not None:
            from tenantgate.db.session import get_db

            async def override_get_db():
                yield db_session

            app.dependency_overrides[get_db] = override_get_db

        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _create


@pytest_asyncio.fixture(scope="function")
async def proxy_client(client_factory, proxy_config):
    async with client_factory(proxy_config) as client:
        yield client


@pytest_asyncio.fixture(scope="function")
async def test_client(client_factory, proxy_config, db_session):
    async with client_factory(proxy_config, db_session=db_session) as client:
        yield client


# ---------------------------------------------------------------------------
# Seed data helpers
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="function")
async def organisation_factory(db_session):
    from tenantgate.models.tenancy import Organisation

    async def _create(name: str | None = None) -> Organisation:
        organisation = Organisation(name=name or f"Test Organisation {uuid4().hex[:6]}")
        db_session.add(organisation)
        await db_session.commit()
        return organisation

    return _create


@pytest_asyncio.fixture(scope="function")
async def employee_factory(db_session):
    from tenantgate.models.tenancy import Employee

    async def _create(organisation, user_id=None) -> Employee:
        employee = Employee(
            organisation_id=organisation.id,
            user_id=user_id or uuid4(),
        )
        db_session.add(employee)
        await db_session.commit()
        return employee

    return _create


@pytest_asyncio.fixture(scope="function")
async def seed_member(organisation_factory, employee_factory):
    """An organisation with one employee. Returns (organisation, employee, headers)."""
    organisation = await organisation_factory("Acme")
    employee = await employee_factory(organisation)
    return organisation, employee, bearer(session_jwt(employee.user_id))
