from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from schoolerp.core.config import Settings
from schoolerp.core.errors import AuthenticationError, ValidationError
from schoolerp.core.security import user_from_payload, verify_token
from schoolerp.core.tenancy import TenantHandle, TenantRegistry
from schoolerp.repositories import TenantRepositories
from schoolerp.schemas.auth import CurrentUser


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> TenantRegistry:
    return request.app.state.registry


async def get_directory_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session on the school directory database"""
    async for session in request.app.state.directory.get_session():
        yield session


def _extract_token(request: Request) -> Optional[str]:
    """Token from the Authorization header, falling back to the access_token cookie"""
    auth_header = request.headers.get("Authorization")
    if auth_header:
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() == "bearer" and token:
            return token.strip().strip('"')
        return None

    token = request.cookies.get("access_token")
    if token:
        return token.replace("Bearer ", "").strip('"')
    return None


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    token = _extract_token(request)
    if not token:
        raise AuthenticationError("Authorization token is missing")

    user = user_from_payload(verify_token(settings, token))
    request.state.user_id = user.id
    return user


async def get_tenant(
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    registry: TenantRegistry = Depends(get_registry),
) -> TenantHandle:
    """Resolve the caller's school database"""
    if not current_user.school_code:
        raise ValidationError("School code not found")
    tenant = await registry.get(current_user.school_code)
    request.state.school_code = tenant.school_code
    return tenant


async def get_tenant_session(
    tenant: TenantHandle = Depends(get_tenant),
) -> AsyncGenerator[AsyncSession, None]:
    session = tenant.sessionmaker()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_repositories(
    tenant: TenantHandle = Depends(get_tenant),
    session: AsyncSession = Depends(get_tenant_session),
) -> TenantRepositories:
    return tenant.repositories(session)
