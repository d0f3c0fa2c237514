from typing import Optional

from fastapi import APIRouter, Depends, Query

from schoolerp.core.config import Settings
from schoolerp.core.dependencies import get_repositories, get_settings, get_tenant
from schoolerp.core.errors import BaseAPIError, InternalServerError, PermissionDenied
from schoolerp.core.logging import logger
from schoolerp.core.permissions import PermissionChecker
from schoolerp.core.tenancy import TenantHandle
from schoolerp.repositories import TenantRepositories
from schoolerp.schemas.academics import ResultFreezeRequest, ResultSaveRequest, ResultUpdateRequest
from schoolerp.schemas.auth import CurrentUser, UserRoleEnum
from schoolerp.services.result_service import ResultService

router = APIRouter()


def get_result_service(
    tenant: TenantHandle = Depends(get_tenant),
    repos: TenantRepositories = Depends(get_repositories),
    settings: Settings = Depends(get_settings),
) -> ResultService:
    return ResultService(tenant, repos, settings.DEFAULT_ACADEMIC_YEAR)


@router.post("/save")
async def save_results(
    request: ResultSaveRequest,
    current_user: CurrentUser = Depends(PermissionChecker("createResults")),
    service: ResultService = Depends(get_result_service),
):
    """Save one subject/test score for a list of students"""
    try:
        outcome = await service.save_results(current_user, request)
        return {"success": True, **outcome}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error saving results: {str(e)}")
        raise InternalServerError("Error saving results", error=str(e))


@router.post("/freeze")
async def freeze_results(
    request: ResultFreezeRequest,
    current_user: CurrentUser = Depends(PermissionChecker("freezeResults")),
    service: ResultService = Depends(get_result_service),
):
    try:
        outcome = await service.freeze_results(current_user, request)
        return {"success": True, **outcome}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error freezing results: {str(e)}")
        raise InternalServerError("Error freezing results", error=str(e))


@router.get("/student/{student_id}")
async def get_student_results(
    student_id: str,
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    current_user: CurrentUser = Depends(PermissionChecker("viewResults")),
    service: ResultService = Depends(get_result_service),
):
    try:
        if current_user.role == UserRoleEnum.STUDENT and current_user.display_id != student_id:
            raise PermissionDenied("Students can only view their own results")

        results = await service.get_student_results(student_id, academic_year)
        return {"success": True, "data": {"results": results, "count": len(results)}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching results for student {student_id}: {str(e)}")
        raise InternalServerError("Failed to fetch student results", error=str(e))


@router.put("/{result_id}")
async def update_result(
    result_id: int,
    request: ResultUpdateRequest,
    current_user: CurrentUser = Depends(PermissionChecker("updateResults")),
    service: ResultService = Depends(get_result_service),
):
    try:
        data = await service.update_result(current_user, result_id, request)
        return {"success": True, "message": "Result updated successfully", "data": data}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error updating result {result_id}: {str(e)}")
        raise InternalServerError("Error updating result", error=str(e))
