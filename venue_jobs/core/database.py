from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from typing import AsyncGenerator, AsyncIterator
import logging

from venue_jobs.core.config import settings

logger = logging.getLogger(__name__)

# Create base class for models
Base = declarative_base()

# Errors raised by the store or the driver underneath it
STORE_ERRORS = (SQLAlchemyError, OSError)


def create_engine_from_settings(database_url: str = None) -> AsyncEngine:
    """Create an AsyncEngine; pool sizing only applies to server databases."""
    url = database_url or settings.async_database_url
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.DEBUG)
    return create_async_engine(
        url,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
        echo=settings.DEBUG,
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# Engine and session factory for the API process
engine = create_engine_from_settings()
AsyncSessionLocal = create_session_factory(engine)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database session.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Database session error: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def worker_session_factory(database_url: str = None) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """
    Short-lived engine for worker tasks.

    Celery tasks run each invocation in a fresh event loop, so connections
    must not outlive the invocation that opened them.
    """
    worker_engine = create_engine_from_settings(database_url)
    try:
        yield create_session_factory(worker_engine)
    finally:
        await worker_engine.dispose()


class DatabaseManager:
    """
    Database manager for handling connections and schema creation.
    """

    def __init__(self, bind: AsyncEngine = None):
        self.engine = bind or engine

    async def create_tables(self):
        """Create all tables."""
        # Import models so they register on Base.metadata
        import venue_jobs.models  # noqa: F401

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Error creating database tables: {e}")
            raise

    async def close_connections(self):
        """Close all database connections."""
        try:
            await self.engine.dispose()
            logger.info("Database connections closed")
        except Exception as e:
            logger.error(f"Error closing database connections: {e}")


# Global database manager instance
db_manager = DatabaseManager()
