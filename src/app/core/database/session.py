"""Async database session management."""

from collections.abc import AsyncGenerator
from importlib import import_module
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings
from app.core.database.base import Base


def _engine_options() -> dict[str, Any]:
    """Pool options for the configured backend.

    SQLite drivers use their own pool classes and reject sizing arguments.
    """
    if settings.is_sqlite:
        return {"echo": settings.database_echo}
    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "echo": settings.database_echo,
        "pool_pre_ping": True,
    }


async_engine: AsyncEngine = create_async_engine(
    settings.async_database_url,
    **_engine_options(),
)

async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session.

    The session is committed when the request handler returns and
    rolled back if it raises.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def load_models() -> None:
    """Import every ORM model so ``Base.metadata`` knows all tables."""
    modules_dir = Path(__file__).resolve().parents[2] / "modules"
    import_module("app.core.audit.models")
    for path in sorted(modules_dir.iterdir()):
        if (path / "models.py").exists():
            import_module(f"app.modules.{path.name}.models")


async def create_tables(engine: AsyncEngine = async_engine) -> None:
    """Create missing tables. Existing tables are left untouched."""
    load_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
