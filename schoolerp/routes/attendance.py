from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from schoolerp.core.dependencies import get_repositories, get_tenant
from schoolerp.core.errors import BaseAPIError, InternalServerError
from schoolerp.core.logging import logger
from schoolerp.core.permissions import PermissionChecker
from schoolerp.core.tenancy import TenantHandle
from schoolerp.repositories import TenantRepositories
from schoolerp.schemas.attendance import SessionAttendanceRequest
from schoolerp.schemas.auth import CurrentUser
from schoolerp.services.attendance_service import AttendanceService

router = APIRouter()

can_mark = PermissionChecker("markAttendance")
can_view = PermissionChecker("viewAttendance")


def get_attendance_service(
    tenant: TenantHandle = Depends(get_tenant),
    repos: TenantRepositories = Depends(get_repositories),
) -> AttendanceService:
    return AttendanceService(tenant, repos)


@router.post("/session")
async def mark_session_attendance(
    request: SessionAttendanceRequest,
    current_user: CurrentUser = Depends(can_mark),
    service: AttendanceService = Depends(get_attendance_service),
):
    """Store the attendance sheet for one class section and session"""
    try:
        outcome = await service.mark_session_attendance(current_user, request)
        return {"success": True, **outcome}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error in mark_session_attendance: {str(e)}")
        raise InternalServerError("Server error while marking attendance", error=str(e))


@router.get("/session-status")
async def check_session_status(
    on_date: date = Query(..., alias="date"),
    class_name: str = Query(..., alias="class"),
    section: str = Query(...),
    session: str = Query(...),
    current_user: CurrentUser = Depends(can_view),
    service: AttendanceService = Depends(get_attendance_service),
):
    try:
        outcome = await service.check_session_status(on_date, class_name, section, session)
        return {"success": True, **outcome}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error checking session status: {str(e)}")
        raise InternalServerError("Error checking session status", error=str(e))


@router.get("/stats")
async def get_attendance_stats(
    class_name: Optional[str] = Query(None, alias="class"),
    section: Optional[str] = Query(None),
    on_date: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    current_user: CurrentUser = Depends(can_view),
    service: AttendanceService = Depends(get_attendance_service),
):
    try:
        stats = await service.get_attendance_stats(
            current_user, class_name, section, on_date, start_date, end_date
        )
        return {"success": True, "data": stats}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching attendance stats: {str(e)}")
        raise InternalServerError("Error fetching attendance stats", error=str(e))


@router.get("")
async def get_attendance(
    class_name: Optional[str] = Query(None, alias="class"),
    section: Optional[str] = Query(None),
    on_date: Optional[date] = Query(None, alias="date"),
    session: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    current_user: CurrentUser = Depends(can_view),
    service: AttendanceService = Depends(get_attendance_service),
):
    try:
        sheets = await service.get_attendance(
            current_user,
            class_name=class_name,
            section=section,
            on_date=on_date,
            session=session,
            start_date=start_date,
            end_date=end_date,
        )
        return {
            "success": True,
            "message": f"Found {len(sheets)} attendance sessions",
            "data": sheets,
            "totalSessions": len(sheets),
        }
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching attendance: {str(e)}")
        raise InternalServerError("Error fetching attendance", error=str(e))
