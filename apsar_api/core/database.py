"""Database connection and session management.

Transaction Guarantees:
- Each request gets its own session
- All operations within a request are atomic
- On any exception, the entire transaction is rolled back
- Work queued for after-commit (notification delivery) only runs once the
  COMMIT has succeeded
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
import logging

from fastapi import Request
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

OUTBOX_KEY = "after_commit_outbox"

# Backends with a native INSERT ... ON CONFLICT, keyed by dialect name
UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def build_engine(url: str | None = None, **overrides: Any) -> AsyncEngine:
    """Create an async engine with pooling suited to the target database.

    Call-out responses are written with ON CONFLICT upserts, so only
    PostgreSQL and SQLite are accepted.
    """
    db_url = make_url(url or settings.database_url_async)
    backend = db_url.get_backend_name()
    if backend not in UPSERT_INSERTS:
        raise ValueError(f"Unsupported database backend: {backend}")

    kwargs: dict[str, Any] = {"echo": settings.database_echo}
    if backend != "sqlite":
        kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,  # Check connection health before use
            pool_recycle=300,
            pool_timeout=30,
        )

    kwargs.update(overrides)
    return create_async_engine(db_url, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory - creates new sessions for each unit of work."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,  # Don't expire objects after commit
        autoflush=False,         # Manual flush for better control
    )


engine = build_engine()
async_session_factory = build_session_factory(engine)


# =============================================================================
# AFTER-COMMIT OUTBOX
# =============================================================================


def enqueue_after_commit(session: AsyncSession, item: Any) -> None:
    """Queue an item to be handed to the dispatcher once this session commits."""
    session.info.setdefault(OUTBOX_KEY, []).append(item)


def take_outbox(session: AsyncSession) -> list[Any]:
    """Remove and return everything queued on this session."""
    return session.info.pop(OUTBOX_KEY, [])


# =============================================================================
# SESSION DEPENDENCIES
# =============================================================================


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a transactional database session.

    Transaction Behavior:
    - Session starts in a transaction automatically
    - On successful completion: COMMIT, then queued notifications are
      handed to the process-wide dispatcher
    - On any exception: ROLLBACK and the queued notifications are dropped
    - Session is always closed properly

    The session factory and dispatcher come from ``app.state`` so they can
    be swapped as a unit (tests, alternative deployments).
    """
    factory = getattr(request.app.state, "session_factory", async_session_factory)
    dispatcher = getattr(request.app.state, "dispatcher", None)

    async with factory() as session:
        try:
            yield session
            await session.commit()
            logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            await session.rollback()
            take_outbox(session)
            logger.error(f"Database error, transaction rolled back: {e}")
            raise
        except Exception as e:
            await session.rollback()
            take_outbox(session)
            logger.error(f"Error during request, transaction rolled back: {e}")
            raise
        else:
            pending = take_outbox(session)
            if pending and dispatcher is not None:
                dispatcher.schedule(pending)
        finally:
            await session.close()


@asynccontextmanager
async def get_session_context(
    factory: async_sessionmaker[AsyncSession] | None = None,
    dispatcher: Any = None,
) -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database sessions (for use outside FastAPI).

    With a ``dispatcher``, notifications queued on the session are scheduled
    once the commit succeeds, as in ``get_session``.
    """
    async with (factory or async_session_factory)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            take_outbox(session)
            raise
        else:
            pending = take_outbox(session)
            if pending and dispatcher is not None:
                dispatcher.schedule(pending)
        finally:
            await session.close()


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Initialize database (create tables if needed)."""
    from ..models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
