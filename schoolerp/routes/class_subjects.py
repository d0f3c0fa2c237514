from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from schoolerp.core.config import Settings
from schoolerp.core.dependencies import get_repositories, get_settings, get_tenant
from schoolerp.core.errors import BaseAPIError, InternalServerError
from schoolerp.core.logging import logger
from schoolerp.core.permissions import require_admin, require_staff
from schoolerp.core.tenancy import TenantHandle
from schoolerp.repositories import TenantRepositories
from schoolerp.schemas.academics import ClassSubjectCreate
from schoolerp.schemas.auth import CurrentUser
from schoolerp.services.class_subject_service import ClassSubjectService

router = APIRouter()


def get_class_subject_service(
    tenant: TenantHandle = Depends(get_tenant),
    repos: TenantRepositories = Depends(get_repositories),
    settings: Settings = Depends(get_settings),
) -> ClassSubjectService:
    return ClassSubjectService(tenant, repos, settings.DEFAULT_ACADEMIC_YEAR)


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_subject_to_class(
    data: ClassSubjectCreate,
    current_user: CurrentUser = Depends(require_admin()),
    service: ClassSubjectService = Depends(get_class_subject_service),
):
    try:
        subject = await service.add_subject(data)
        return {"success": True, "message": "Subject added to class", "data": {"subject": subject}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error adding subject to class: {str(e)}")
        raise InternalServerError("Failed to add subject", error=str(e))


@router.delete("/{class_name}/{subject_name}")
async def remove_subject_from_class(
    class_name: str,
    subject_name: str,
    section: str = Query(""),
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    current_user: CurrentUser = Depends(require_admin()),
    service: ClassSubjectService = Depends(get_class_subject_service),
):
    try:
        await service.remove_subject(class_name, subject_name, section, academic_year)
        return {"success": True, "message": "Subject removed from class"}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error removing subject from class: {str(e)}")
        raise InternalServerError("Failed to remove subject", error=str(e))


@router.get("/classes")
async def list_classes(
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    current_user: CurrentUser = Depends(require_staff()),
    service: ClassSubjectService = Depends(get_class_subject_service),
):
    try:
        classes = await service.list_classes(academic_year)
        return {"success": True, "data": {"classes": classes, "count": len(classes)}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching classes: {str(e)}")
        raise InternalServerError("Failed to fetch classes", error=str(e))


@router.get("/classes/{class_name}/subjects")
async def list_class_subjects(
    class_name: str,
    section: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    current_user: CurrentUser = Depends(require_staff()),
    service: ClassSubjectService = Depends(get_class_subject_service),
):
    try:
        subjects = await service.list_subjects(class_name, section, academic_year)
        return {"success": True, "data": {"subjects": subjects, "count": len(subjects)}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching subjects for class {class_name}: {str(e)}")
        raise InternalServerError("Failed to fetch class subjects", error=str(e))
