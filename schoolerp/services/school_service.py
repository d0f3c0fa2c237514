# schoolerp/services/school_service.py
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolerp.core.errors import SchoolNotFoundError, ValidationError
from schoolerp.core.logging import logger
from schoolerp.core.permissions import default_access_matrix
from schoolerp.core.tenancy import TenantRegistry, database_name_for, normalize_code
from schoolerp.models import School
from schoolerp.schemas.school import SchoolCreateRequest, SchoolOut, SchoolSettingsUpdate


class SchoolService:
    """School directory operations; works on the directory database"""

    def __init__(self, db: AsyncSession, registry: TenantRegistry):
        self.db = db
        self.registry = registry

    async def create_school(self, school_data: SchoolCreateRequest) -> SchoolOut:
        """
        Register a school and provision its database.

        Raises:
            ValidationError: a school with the same code already exists
        """
        code = normalize_code(school_data.code)

        existing = await self.db.execute(select(School.id).where(School.code == code))
        if existing.scalar_one_or_none() is not None:
            raise ValidationError(f"School with code {code} already exists")

        school = School(
            code=code,
            name=school_data.name.strip(),
            database_name=database_name_for(code),
            principal_name=school_data.principal_name,
            principal_email=school_data.principal_email,
            phone=school_data.phone,
            address=school_data.address,
            academic_settings=school_data.academic_settings,
            access_matrix=default_access_matrix(),
            is_active=True,
        )
        self.db.add(school)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ValidationError(f"School with code {code} already exists")

        await self.registry.provision(code)
        logger.info(f"Created school {code} with database {school.database_name}")
        return SchoolOut.model_validate(school)

    async def get_school_by_code(self, school_code: str) -> SchoolOut:
        return SchoolOut.model_validate(await self._get_or_404(school_code))

    async def list_schools(self) -> List[SchoolOut]:
        result = await self.db.execute(select(School).order_by(School.code))
        return [SchoolOut.model_validate(school) for school in result.scalars().all()]

    async def update_settings(self, school_code: str, update: SchoolSettingsUpdate) -> SchoolOut:
        school = await self._get_or_404(school_code)

        changes = update.model_dump(exclude_unset=True)
        for key, value in changes.items():
            if key in School.SETTINGS_FIELDS:
                setattr(school, key, value)

        await self.db.commit()
        await self.db.refresh(school)

        # Deactivating a school drops its live connection
        if changes.get("is_active") is False:
            await self.registry.close(school.code)

        logger.info(f"Updated settings for school {school.code}: {sorted(changes)}")
        return SchoolOut.model_validate(school)

    async def get_access_matrix(self, school_code: str) -> Dict[str, Any]:
        school = await self._get_or_404(school_code)
        return school.access_matrix or default_access_matrix()

    async def _get_or_404(self, school_code: str) -> School:
        code = normalize_code(school_code)
        result = await self.db.execute(select(School).where(School.code == code))
        school = result.scalar_one_or_none()
        if school is None:
            raise SchoolNotFoundError()
        return school
