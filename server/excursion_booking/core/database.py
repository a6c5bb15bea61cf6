"""Database configuration and async session management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from .config import settings
from .exceptions import RemoteFailureError

logger = logging.getLogger(__name__)

_is_sqlite = "sqlite" in settings.database_url

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    pool_pre_ping=True,
    # In-memory SQLite needs a single shared connection
    poolclass=StaticPool if _is_sqlite else None,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
)

# Create async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)

# Create declarative base for models
Base = declarative_base()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields database sessions.

    Yields:
        AsyncSession: Database session
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Alias for FastAPI dependency injection
get_db = get_async_session


@asynccontextmanager
async def db_operation(session: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """
    Roll back and wrap database failures raised inside the block.

    Args:
        session: Session the block works with
        operation: Short description used in logs and in the problem body

    Raises:
        RemoteFailureError: If the database raised SQLAlchemyError
    """
    try:
        yield session
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(
            "Database operation failed",
            extra={"operation": operation, "error": str(e)},
            exc_info=True
        )
        raise RemoteFailureError(operation) from e


def is_postgresql(session: AsyncSession) -> bool:
    return session.bind is not None and session.bind.dialect.name == "postgresql"


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
