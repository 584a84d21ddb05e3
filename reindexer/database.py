"""Async database engine and sessions for the document repository."""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import settings

logger = logging.getLogger(__name__)

# One reindex run holds two sessions at most (request + enumeration);
# the extraction workers share the rest of the pool
engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_timeout=15,
    pool_pre_ping=True,
    pool_recycle=3600,
)

# Writes made through Core statements must stay readable after commit
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Declarative base for the Users and Documents tables."""


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session.

    Commits once the endpoint returns and rolls back if it raised. The
    reindex endpoint manages its own transactions on this same session;
    whatever is left open when it returns is committed here.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
