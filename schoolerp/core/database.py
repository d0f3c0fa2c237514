from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from schoolerp.core.logging import logger
from schoolerp.models.base import DirectoryBase


def is_sqlite_url(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def build_engine(
    url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_recycle: int = 1800,
    connect_timeout: Optional[float] = None,
) -> AsyncEngine:
    """
    Create an async engine.
    Pool sizing only applies to server databases; SQLite files get the
    driver defaults.
    """
    if is_sqlite_url(url):
        return create_async_engine(url, echo=echo)

    connect_args = {}
    if connect_timeout is not None:
        connect_args["timeout"] = connect_timeout

    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,        # Connection health check
        pool_size=pool_size,       # Maximum number of connections in the pool
        max_overflow=max_overflow,
        pool_timeout=30,           # Seconds to wait before timeout on connection pool checkout
        pool_recycle=pool_recycle,
        connect_args=connect_args,
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,    # Don't expire objects after commit
        autoflush=False,           # Explicit flush management
    )


class DirectoryDatabase:
    """Engine and session factory for the global school directory"""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = build_engine(url, echo=echo)
        self.sessionmaker = build_sessionmaker(self.engine)

    async def init(self) -> None:
        """Create directory tables"""
        async with self.engine.begin() as conn:
            await conn.run_sync(DirectoryBase.metadata.create_all)
        logger.info("Directory database initialised")

    async def close(self) -> None:
        await self.engine.dispose()

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        FastAPI dependency body that provides a directory session.
        Usage: db: AsyncSession = Depends(get_directory_db)
        """
        session = self.sessionmaker()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for directory sessions outside of request context.
        Commits on success.
        """
        session = self.sessionmaker()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
