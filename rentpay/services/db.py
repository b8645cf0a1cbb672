"""Database connection and session management."""

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from rentpay.services.config import get_settings

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def to_async_url(database_url: str) -> str:
    """Map a synchronous SQLite URL onto the aiosqlite driver.

    Other URLs are expected to name an async driver already
    (e.g. ``postgresql+asyncpg://``).
    """
    if database_url.startswith("sqlite:///"):
        return database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return database_url


def create_engine_for(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine (SQLite uses StaticPool for simplicity in dev/test)."""
    async_url = to_async_url(database_url)
    if async_url.startswith("sqlite"):
        return create_async_engine(
            async_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(async_url, echo=echo, pool_pre_ping=True)


def get_engine() -> AsyncEngine:
    """Get or create the process-wide async engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_for(settings.database_url, echo=settings.database_echo)
    return _engine


def get_session_factory() -> async_sessionmaker:
    """Get or create the async session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Get async database session."""
    async with get_session_factory()() as session:
        yield session


async def init_models() -> None:
    """Create missing tables (development databases; production uses Alembic)."""
    from rentpay.models import Base

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


__all__ = [
    "create_engine_for",
    "dispose_engine",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_models",
    "to_async_url",
]
