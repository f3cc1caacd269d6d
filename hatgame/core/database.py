"""
Database configuration and connection management
数据库配置和连接管理 - 显式创建、注入并在应用关闭时释放
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy import text
from hatgame.core.config import settings
from hatgame.core.exceptions import StoreUnavailableError
import logging
import time
from typing import Optional
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class DatabaseManager:
    """Owns the async engine and session factory for the durable store"""

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        self.database_url = database_url or settings.DATABASE_URL
        self.echo = settings.DB_ECHO if echo is None else echo
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self._last_health_check = 0.0

    def _engine_options(self) -> dict:
        if self.database_url.startswith("sqlite"):
            # 内存 SQLite 需要共享同一个连接
            return {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        return {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_timeout": settings.DB_POOL_TIMEOUT,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_pre_ping": True,
            "connect_args": {"charset": "utf8mb4", "connect_timeout": 10},
        }

    async def initialize(self, create_tables: bool = True):
        """Create the engine and, optionally, all tables"""
        self.engine = create_async_engine(self.database_url, echo=self.echo, **self._engine_options())
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=True,
        )

        if create_tables:
            # Import all models to ensure they are registered
            from hatgame.models import user, room, word_pair, match  # noqa: F401

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        logger.info("Database manager initialized successfully")

    @asynccontextmanager
    async def get_session(self):
        """Transactional session: commit on success, rollback on error"""
        if not self.session_factory:
            raise RuntimeError("Database manager not initialized")

        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except (DisconnectionError, OperationalError) as e:
            await session.rollback()
            logger.warning(f"Database connection error during session: {e}")
            raise StoreUnavailableError("Database is temporarily unavailable") from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Run a trivial query against the engine"""
        if not self.engine:
            return False
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            self._last_health_check = time.time()
            return True
        except (DisconnectionError, OperationalError) as e:
            logger.warning(f"Database health check failed: {e}")
            return False

    async def close(self):
        """Close database connections"""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self.session_factory = None
