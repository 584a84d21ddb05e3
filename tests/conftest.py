"""Shared pytest fixtures for backend tests."""

import os
import sys
from typing import AsyncGenerator, Optional
from uuid import UUID, uuid4

# Settings are read at import time; provide what the test run needs
os.environ.setdefault("DB_SERVER", "localhost")
os.environ.setdefault("DB_NAME", "reindex_test")
os.environ.setdefault("DB_USER", "reindex")
os.environ.setdefault("DB_PASSWORD", "reindex")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from reindexer.database import Base, get_db
from reindexer.main import app
from reindexer.models import Document, User
from reindexer.services.auth_service import create_access_token

# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@compiles(PG_UUID, "sqlite")
def _compile_pg_uuid_sqlite(type_, compiler, **kw):
    """Store UUIDs as text on SQLite; a bare UUID column gets numeric affinity."""
    return "CHAR(32)"


def sortable_uuid(n: int) -> UUID:
    """UUID whose enumeration position is n."""
    return UUID(int=n + 1)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine with SQLite."""
    engine = create_async_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Clean up
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_maker: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an administrator."""
    user = User(
        id=uuid4(),
        email="admin@example.com",
        display_name="Admin",
        is_admin=True,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def regular_user(db_session: AsyncSession) -> User:
    """Create a user without administrator rights."""
    user = User(
        id=uuid4(),
        email="user@example.com",
        display_name="Regular User",
        is_admin=False,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    """Authorization headers for the administrator."""
    token = create_access_token(data={"sub": str(admin_user.id), "email": admin_user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(regular_user: User) -> dict:
    """Authorization headers for the regular user."""
    token = create_access_token(data={"sub": str(regular_user.id), "email": regular_user.email})
    return {"Authorization": f"Bearer {token}"}


async def add_document(
    db: AsyncSession,
    n: int,
    primary_type: str = "File",
    title: Optional[str] = "Title",
    **fields,
) -> Document:
    """Insert one document at enumeration position n."""
    doc = Document(
        id=sortable_uuid(n),
        primary_type=primary_type,
        title=title,
        **fields,
    )
    db.add(doc)
    await db.flush()
    return doc


@pytest_asyncio.fixture
async def client(session_maker: async_sessionmaker) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the database dependency bound to the test engine."""
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()
