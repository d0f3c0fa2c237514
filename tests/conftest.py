# tests/conftest.py
from __future__ import annotations

from typing import Callable, Dict, Optional

import pytest
from httpx import ASGITransport, AsyncClient

from schoolerp import create_app
from schoolerp.core.config import Settings
from schoolerp.core.database import DirectoryDatabase
from schoolerp.core.permissions import default_access_matrix
from schoolerp.core.security import create_access_token
from schoolerp.core.tenancy import TenantRegistry, database_name_for
from schoolerp.models import School, SchoolUser
from schoolerp.schemas.auth import CurrentUser, UserRoleEnum

SCHOOL_CODE = "NPS"


# Make anyio run on asyncio (so our async fixtures work everywhere)
@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path}/directory.db",
        TENANT_DATABASE_URL_TEMPLATE=f"sqlite+aiosqlite:///{tmp_path}/tenants/{{database_name}}.db",
        SECRET_KEY="test-secret-key",
        TENANT_CONNECT_TIMEOUT=5.0,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
async def app(settings, anyio_backend):
    application = create_app(settings)
    # ASGITransport does not send lifespan events
    await application.state.directory.init()
    yield application
    await application.state.registry.close_all()
    await application.state.directory.close()


@pytest.fixture
def directory(app) -> DirectoryDatabase:
    return app.state.directory


@pytest.fixture
def registry(app) -> TenantRegistry:
    return app.state.registry


@pytest.fixture
async def client(app, anyio_backend):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def create_school(
    directory: DirectoryDatabase, code: str = SCHOOL_CODE, is_active: bool = True
) -> School:
    async with directory.session() as db:
        school = School(
            code=code,
            name=f"{code} Public School",
            database_name=database_name_for(code),
            access_matrix=default_access_matrix(),
            is_active=is_active,
        )
        db.add(school)
    return school


@pytest.fixture
async def school(directory, anyio_backend) -> School:
    return await create_school(directory)


@pytest.fixture
async def tenant(registry, school, anyio_backend):
    return await registry.get(SCHOOL_CODE)


async def add_users(tenant, *users: SchoolUser) -> None:
    async with tenant.session() as session:
        session.add_all(users)


@pytest.fixture
def token_for(settings) -> Callable[..., Dict[str, str]]:
    """Authorization headers for a user of the given role"""

    def _headers(
        role: str,
        sub: str = "1",
        user_id: Optional[str] = None,
        name: Optional[str] = None,
        school_code: Optional[str] = SCHOOL_CODE,
        email: Optional[str] = None,
    ) -> Dict[str, str]:
        user = CurrentUser(
            id=sub,
            role=UserRoleEnum(role),
            school_code=school_code,
            name=name or f"{role.title()} {sub}",
            email=email,
            user_id=user_id,
        )
        return {"Authorization": f"Bearer {create_access_token(settings, user)}"}

    return _headers


def current_user(role: str, sub: str = "1", user_id: Optional[str] = None, name: Optional[str] = None) -> CurrentUser:
    return CurrentUser(
        id=sub,
        role=UserRoleEnum(role),
        school_code=SCHOOL_CODE,
        name=name,
        user_id=user_id,
    )
