"""Database connection utilities."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from academia.config import get_settings
from academia.exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def get_db_url() -> str:
    """Build database URL from settings."""
    return get_settings().database_url


class DatabaseManager:
    """Owns the async engine and the session factory.

    The engine is created lazily on first use; tests install their own engine
    through ``configure`` before anything touches the database.
    """

    def __init__(self) -> None:
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    def configure(self, engine: AsyncEngine) -> None:
        """Use an externally created engine (e.g. an in-memory test database)."""
        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    def _ensure_engine(self) -> None:
        if self._engine is None:
            self.configure(
                create_async_engine(
                    get_db_url(),
                    echo=get_settings().DEBUG,
                    pool_pre_ping=True,  # Verify connections before using
                )
            )

    @property
    def engine(self) -> AsyncEngine:
        self._ensure_engine()
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        self._ensure_engine()
        return self._session_factory

    async def verify_connection(self) -> bool:
        """Run ``SELECT 1`` against the database.

        Raises:
            DatabaseConnectionError: If the database cannot be reached.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


# Global database manager instance
db_manager = DatabaseManager()


async def run_migrations() -> None:
    """Run database migrations using Alembic."""
    from alembic import command
    from alembic.config import Config

    project_root = Path(__file__).resolve().parents[2]
    alembic_ini_path = project_root / "alembic.ini"

    if not alembic_ini_path.exists():
        raise FileNotFoundError(
            f"Alembic configuration file not found at {alembic_ini_path}"
        )

    alembic_cfg = Config(str(alembic_ini_path))
    alembic_cfg.set_main_option("sqlalchemy.url", get_db_url())

    # env.py drives its own event loop, so keep it off ours
    await asyncio.to_thread(command.upgrade, alembic_cfg, "head")


async def init_db() -> None:
    """Run migrations and verify the connection.

    Raises:
        DatabaseConnectionError: If the database is unreachable.
    """
    logger.info("Initializing database...")
    await run_migrations()
    await db_manager.verify_connection()
    logger.info("Database initialized successfully")


async def close_db() -> None:
    """Close database connections."""
    await db_manager.close()

