"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time, so the environment comes first
os.environ.setdefault("API_TITLE", "Academia Test")
os.environ.setdefault("API_VERSION", "0.1.0-test")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["REDIS_URL"] = ""

from typing import AsyncGenerator, Awaitable, Callable  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import academia.models  # noqa: E402,F401
from academia.application import create_app  # noqa: E402
from academia.config import get_settings  # noqa: E402
from academia.gateway import RemoteGateway  # noqa: E402
from academia.middleware.session import COOKIE_NAME, generate_session_token  # noqa: E402
from academia.realtime.feed import ChangeFeed  # noqa: E402
from academia.schemas.professor import ProfessorDocument  # noqa: E402
from academia.schemas.student import StudentDocument  # noqa: E402
from academia.schemas.subject import SubjectDocument  # noqa: E402
from academia.utils.db import Base  # noqa: E402
from academia.utils.dependencies import get_gateway  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database shared by every session of one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def gateway(
    session_factory: async_sessionmaker[AsyncSession], feed: ChangeFeed
) -> RemoteGateway:
    return RemoteGateway(session_factory, feed)


@pytest.fixture
def make_professor(gateway: RemoteGateway) -> Callable[..., Awaitable[ProfessorDocument]]:
    counter = {"n": 0}

    async def make(**fields) -> ProfessorDocument:
        counter["n"] += 1
        n = counter["n"]
        data = {"name": f"Professor {n}", "email": f"professor{n}@university.edu"}
        data.update(fields)
        return await gateway.professors.create(**data)

    return make


@pytest.fixture
def make_subject(
    gateway: RemoteGateway, make_professor
) -> Callable[..., Awaitable[SubjectDocument]]:
    counter = {"n": 0}

    async def make(**fields) -> SubjectDocument:
        counter["n"] += 1
        if "professor_id" not in fields:
            fields["professor_id"] = (await make_professor()).id
        data = {"name": f"Subject {counter['n']:02d}", "credits": 3, "capacity": 30}
        data.update(fields)
        return await gateway.subjects.create(**data)

    return make


@pytest.fixture
def make_student(gateway: RemoteGateway) -> Callable[..., Awaitable[StudentDocument]]:
    counter = {"n": 0}

    async def make(**fields) -> StudentDocument:
        counter["n"] += 1
        n = counter["n"]
        data = {"name": f"Student {n}", "email": f"student{n}@student.edu"}
        data.update(fields)
        return await gateway.students.create(**data)

    return make


@pytest.fixture
def app(gateway: RemoteGateway):
    """FastAPI application wired to the test gateway (lifespan not run)."""
    app = create_app()
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async client sending the configured API key."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-API-KEY": get_settings().API_KEY},
    ) as client:
        yield client


@pytest.fixture
async def anonymous_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async client without API key or session."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client


@pytest.fixture
async def session_client(app):
    """Factory for clients signed in as a student (cookie only, no API key)."""
    clients = []

    async def make(student_id: str) -> AsyncClient:
        token = generate_session_token(student_id, get_settings().SECRET_KEY)
        client = AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies={COOKIE_NAME: token},
        )
        clients.append(client)
        return client

    yield make
    for client in clients:
        await client.aclose()
