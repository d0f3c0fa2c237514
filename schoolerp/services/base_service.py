# schoolerp/services/base_service.py
from sqlalchemy.ext.asyncio import AsyncSession

from schoolerp.core.tenancy import TenantHandle
from schoolerp.repositories import TenantRepositories


class BaseService:
    """Holds the tenant handle and the repositories bound to one request session"""

    def __init__(self, tenant: TenantHandle, repos: TenantRepositories):
        self.tenant = tenant
        self.repos = repos

    @property
    def db(self) -> AsyncSession:
        return self.repos.session
