"""
Per-school database resolution.

Every school (tenant) lives in its own database. ``TenantRegistry`` maps an
uppercased school code to one live ``TenantHandle`` (engine plus session
factory) for the lifetime of the process. Handles are created lazily on the
first request for a code, under a per-code lock, and re-validated with a
``SELECT 1`` once they are older than ``TENANT_REVALIDATE_SECONDS``. A handle
that fails its ping is disposed and rebuilt.
"""
import asyncio
import os
import re
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncGenerator, Callable, Dict, List

from sqlalchemy import inspect, select, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from schoolerp.core.config import Settings, get_tenant_pool_settings
from schoolerp.core.database import DirectoryDatabase, build_engine, build_sessionmaker, is_sqlite_url
from schoolerp.core.errors import (
    BaseAPIError,
    PermissionDenied,
    SchoolNotFoundError,
    TenantConnectionError,
    ValidationError,
)
from schoolerp.core.logging import logger
from schoolerp.models import School, TenantBase
from schoolerp.repositories import TenantRepositories

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_code(school_code: str) -> str:
    code = (school_code or "").strip().strip("{}").upper()
    if not code:
        raise ValidationError("School code not found")
    return code


def database_name_for(school_code: str) -> str:
    """school_<code lowercased, anything but [a-z0-9] replaced by '_'>"""
    return "school_" + _NON_ALNUM.sub("_", school_code.lower())


@dataclass
class TenantHandle:
    school_code: str
    school_id: int
    school_name: str
    database_name: str
    engine: AsyncEngine
    sessionmaker: async_sessionmaker[AsyncSession]
    validated_at: float = field(default_factory=time.monotonic)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Tenant session that commits on success and rolls back on error"""
        session = self.sessionmaker()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    def repositories(self, session: AsyncSession) -> TenantRepositories:
        return TenantRepositories.for_session(session)

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Ping failed for school database {self.database_name}: {e}")
            return False

    async def table_names(self) -> List[str]:
        async with self.engine.connect() as conn:
            return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    async def dispose(self) -> None:
        await self.engine.dispose()


class TenantRegistry:
    """Get-or-create cache of tenant handles keyed by school code"""

    def __init__(
        self,
        directory: DirectoryDatabase,
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.directory = directory
        self.settings = settings
        self.clock = clock
        self._handles: Dict[str, TenantHandle] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def cached_codes(self) -> List[str]:
        return sorted(self._handles)

    def _is_stale(self, handle: TenantHandle) -> bool:
        return self.clock() - handle.validated_at >= self.settings.TENANT_REVALIDATE_SECONDS

    async def get(self, school_code: str) -> TenantHandle:
        """
        Return the live handle for a school, opening it on first use.

        Raises:
            ValidationError: empty school code
            SchoolNotFoundError: code not present in the directory
            PermissionDenied: school is deactivated
            TenantConnectionError: the school database cannot be reached
        """
        code = normalize_code(school_code)

        handle = self._handles.get(code)
        if handle is not None and not self._is_stale(handle):
            return handle

        lock = self._locks.setdefault(code, asyncio.Lock())
        async with lock:
            handle = self._handles.get(code)
            if handle is not None:
                if not self._is_stale(handle):
                    return handle
                if await handle.ping():
                    handle.validated_at = self.clock()
                    return handle
                logger.warning(f"Dropping stale connection to {handle.database_name}")
                await self._evict(code)

            school = await self._lookup_school(code)
            handle = await self._open(school)
            self._handles[code] = handle
            return handle

    async def provision(self, school_code: str) -> TenantHandle:
        """Open the school database and make sure its tables exist"""
        return await self.get(school_code)

    async def database_exists(self, school_code: str) -> bool:
        try:
            handle = await self.get(school_code)
            return len(await handle.table_names()) > 0
        except (BaseAPIError, SQLAlchemyError):
            return False

    async def close(self, school_code: str) -> bool:
        code = normalize_code(school_code)
        if code not in self._handles:
            logger.info(f"No connection found for school {code}")
            return False
        await self._evict(code)
        return True

    async def close_all(self) -> None:
        for code in list(self._handles):
            await self._evict(code)
        self._locks.clear()

    async def _evict(self, code: str) -> None:
        handle = self._handles.pop(code, None)
        if handle is not None:
            await handle.dispose()
            logger.info(f"Closed connection to {handle.database_name}")

    async def _lookup_school(self, code: str) -> School:
        async with self.directory.session() as db:
            result = await db.execute(select(School).where(School.code == code))
            school = result.scalar_one_or_none()
        if school is None:
            logger.warning(f"School not found for code: {code}")
            raise SchoolNotFoundError()
        if not school.is_active:
            raise PermissionDenied(f"School {code} is deactivated")
        return school

    async def _open(self, school: School) -> TenantHandle:
        database_name = school.database_name or database_name_for(school.code)
        url = self.settings.tenant_database_url(database_name)

        if is_sqlite_url(url):
            path = make_url(url).database
            if path and path != ":memory:":
                try:
                    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
                except OSError as e:
                    raise TenantConnectionError(f"Failed to connect to school database: {e}")

        engine = build_engine(
            url,
            connect_timeout=self.settings.TENANT_CONNECT_TIMEOUT,
            **get_tenant_pool_settings(self.settings),
        )
        try:
            await asyncio.wait_for(
                self._prepare(engine),
                timeout=self.settings.TENANT_CONNECT_TIMEOUT,
            )
        except asyncio.TimeoutError:
            await engine.dispose()
            raise TenantConnectionError(
                f"Connection timeout for {database_name} after {self.settings.TENANT_CONNECT_TIMEOUT:g} seconds"
            )
        except (SQLAlchemyError, OSError) as e:
            await engine.dispose()
            logger.error(f"Failed to connect to school database {database_name}: {e}")
            raise TenantConnectionError(f"Failed to connect to school database: {e}")

        logger.info(f"Connected to school database: {database_name}")
        return TenantHandle(
            school_code=school.code,
            school_id=school.id,
            school_name=school.name,
            database_name=database_name,
            engine=engine,
            sessionmaker=build_sessionmaker(engine),
            validated_at=self.clock(),
        )

    @staticmethod
    async def _prepare(engine: AsyncEngine) -> None:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(TenantBase.metadata.create_all)
