from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from schoolerp.core.dependencies import get_current_user, get_directory_db, get_registry
from schoolerp.core.errors import BaseAPIError, InternalServerError, PermissionDenied
from schoolerp.core.logging import logger
from schoolerp.core.permissions import require_admin, require_super_admin
from schoolerp.core.tenancy import TenantRegistry
from schoolerp.schemas.auth import CurrentUser, UserRoleEnum
from schoolerp.schemas.school import SchoolCreateRequest, SchoolSettingsUpdate
from schoolerp.services.school_service import SchoolService

router = APIRouter()


def get_school_service(
    db: AsyncSession = Depends(get_directory_db),
    registry: TenantRegistry = Depends(get_registry),
) -> SchoolService:
    return SchoolService(db, registry)


def _check_own_school(current_user: CurrentUser, school_code: str) -> None:
    """Admins may only touch their own school; superadmins any"""
    if current_user.role == UserRoleEnum.SUPER_ADMIN:
        return
    if (current_user.school_code or "").upper() != school_code.strip().upper():
        raise PermissionDenied("Not authorized to access this school")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_school(
    school_data: SchoolCreateRequest,
    current_user: CurrentUser = Depends(require_super_admin()),
    service: SchoolService = Depends(get_school_service),
):
    """Register a new school and provision its database"""
    try:
        school = await service.create_school(school_data)
        return {"success": True, "message": "School created successfully", "data": {"school": school}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error creating school: {str(e)}")
        raise InternalServerError("Failed to create school", error=str(e))


@router.get("")
async def list_schools(
    current_user: CurrentUser = Depends(require_super_admin()),
    service: SchoolService = Depends(get_school_service),
):
    try:
        schools = await service.list_schools()
        return {"success": True, "data": {"schools": schools, "count": len(schools)}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error listing schools: {str(e)}")
        raise InternalServerError("Failed to fetch schools", error=str(e))


@router.get("/{school_code}")
async def get_school(
    school_code: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchoolService = Depends(get_school_service),
):
    try:
        _check_own_school(current_user, school_code)
        return {"success": True, "data": {"school": await service.get_school_by_code(school_code)}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching school {school_code}: {str(e)}")
        raise InternalServerError("Failed to fetch school", error=str(e))


@router.put("/{school_code}/settings")
async def update_school_settings(
    school_code: str,
    update: SchoolSettingsUpdate,
    current_user: CurrentUser = Depends(require_admin()),
    service: SchoolService = Depends(get_school_service),
):
    try:
        _check_own_school(current_user, school_code)
        if current_user.role != UserRoleEnum.SUPER_ADMIN and (
            update.access_matrix is not None or update.is_active is not None
        ):
            raise PermissionDenied("Only a superadmin can change access or activation")

        school = await service.update_settings(school_code, update)
        return {"success": True, "message": "School settings updated", "data": {"school": school}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error updating settings for school {school_code}: {str(e)}")
        raise InternalServerError("Failed to update school settings", error=str(e))


@router.get("/{school_code}/access-matrix")
async def get_access_matrix(
    school_code: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SchoolService = Depends(get_school_service),
):
    try:
        _check_own_school(current_user, school_code)
        matrix = await service.get_access_matrix(school_code)
        return {"success": True, "data": {"accessMatrix": matrix}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching access matrix for {school_code}: {str(e)}")
        raise InternalServerError("Failed to fetch access matrix", error=str(e))
