from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config import get_settings
from training_assets.db.models.base import Base
from training_assets.errors import TrainingAssetError, TransientStoreError

SessionFactory = async_sessionmaker[AsyncSession]

_engine: Engine | None = None


def _echo() -> bool:
    settings = get_settings()
    return settings.database_echo or settings.log_level == "DEBUG"


def get_engine() -> Engine:
    """Get or create the sync database engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(get_settings().database_url, echo=_echo(), pool_pre_ping=True)
    return _engine


def _get_async_url(url: str) -> str:
    """Convert sync postgres URL to asyncpg URL when needed."""
    if url.startswith("postgresql+asyncpg://"):
        return url
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+asyncpg://", 1)
    return url


def init_db() -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables initialized")


async def init_db_async(engine: AsyncEngine | None = None) -> None:
    """Initialize database tables through an async engine."""
    engine = engine or _get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


# ========================================
# Async Support
# ========================================

_async_engine: AsyncEngine | None = None
_AsyncSessionLocal: SessionFactory | None = None


def _get_async_engine() -> AsyncEngine:
    """Get or create async engine (lazy initialization)."""
    global _async_engine
    if _async_engine is None:
        _async_engine = create_async_engine(
            _get_async_url(get_settings().database_url),
            echo=_echo(),
            pool_pre_ping=True,
        )
    return _async_engine


def make_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Build a session factory bound to the given engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


def get_async_session_factory() -> SessionFactory:
    """Get or create async session factory."""
    global _AsyncSessionLocal
    if _AsyncSessionLocal is None:
        _AsyncSessionLocal = make_session_factory(_get_async_engine())
    return _AsyncSessionLocal


async def dispose_async_engine() -> None:
    """Close pooled connections and forget the lazily created engine."""
    global _async_engine, _AsyncSessionLocal
    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _AsyncSessionLocal = None


@asynccontextmanager
async def async_session_scope(
    factory: SessionFactory | None = None,
    operation: str = "database operation",
) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide an async transactional scope around a series of operations.

    Commits on success. On failure the whole transaction is rolled back;
    domain errors propagate unchanged and store errors surface as
    TransientStoreError chained to the original.
    """
    factory = factory or get_async_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except TrainingAssetError:
            await session.rollback()
            raise
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception(f"Rolled back {operation}")
            raise TransientStoreError(operation) from exc
        except Exception:  # Intentionally broad - rollback on any error before re-raising
            await session.rollback()
            raise
