from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from schoolerp.core.dependencies import get_repositories, get_tenant
from schoolerp.core.errors import BaseAPIError, InternalServerError
from schoolerp.core.logging import logger
from schoolerp.core.permissions import PermissionChecker, require_admin
from schoolerp.core.tenancy import TenantHandle
from schoolerp.repositories import TenantRepositories
from schoolerp.schemas.auth import CurrentUser
from schoolerp.schemas.leave import LeaveRequestCreate, LeaveRequestList, LeaveStatusUpdate
from schoolerp.services.leave_service import LeaveRequestService

can_view_leaves = PermissionChecker("viewLeaves")
admin_only = require_admin()

# Every leave route needs viewLeaves; admin routes also need the admin role
router = APIRouter(dependencies=[Depends(can_view_leaves)])


def get_leave_service(
    tenant: TenantHandle = Depends(get_tenant),
    repos: TenantRepositories = Depends(get_repositories),
) -> LeaveRequestService:
    return LeaveRequestService(tenant, repos)


@router.post("/teacher/create", status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    data: LeaveRequestCreate,
    current_user: CurrentUser = Depends(can_view_leaves),
    service: LeaveRequestService = Depends(get_leave_service),
):
    """Submit a leave request for the calling teacher"""
    try:
        leave_request = await service.create_leave_request(current_user, data)
        return {
            "success": True,
            "message": "Leave request submitted successfully",
            "data": {"leaveRequest": leave_request},
        }
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error creating leave request: {str(e)}")
        raise InternalServerError("Failed to create leave request", error=str(e))


@router.get("/teacher/my-requests")
async def get_my_leave_requests(
    current_user: CurrentUser = Depends(can_view_leaves),
    service: LeaveRequestService = Depends(get_leave_service),
):
    try:
        leave_requests = await service.list_for_teacher(current_user)
        return {
            "success": True,
            "data": LeaveRequestList(leave_requests=leave_requests, count=len(leave_requests)),
        }
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching teacher leave requests: {str(e)}")
        raise InternalServerError("Failed to fetch leave requests", error=str(e))


@router.delete("/teacher/{leave_request_id}")
async def delete_leave_request(
    leave_request_id: int,
    current_user: CurrentUser = Depends(can_view_leaves),
    service: LeaveRequestService = Depends(get_leave_service),
):
    """Withdraw one of the caller's own pending requests"""
    try:
        await service.delete_leave_request(leave_request_id, current_user)
        return {"success": True, "message": "Leave request deleted successfully"}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error deleting leave request {leave_request_id}: {str(e)}")
        raise InternalServerError("Failed to delete leave request", error=str(e))


@router.get("/admin/all")
async def get_school_leave_requests(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(admin_only),
    service: LeaveRequestService = Depends(get_leave_service),
):
    try:
        leave_requests = await service.list_for_school(status)
        return {
            "success": True,
            "data": LeaveRequestList(leave_requests=leave_requests, count=len(leave_requests)),
        }
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching school leave requests: {str(e)}")
        raise InternalServerError("Failed to fetch leave requests", error=str(e))


@router.get("/admin/pending")
async def get_pending_leave_requests(
    current_user: CurrentUser = Depends(admin_only),
    service: LeaveRequestService = Depends(get_leave_service),
):
    try:
        leave_requests = await service.list_pending()
        return {
            "success": True,
            "data": LeaveRequestList(leave_requests=leave_requests, count=len(leave_requests)),
        }
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching pending leave requests: {str(e)}")
        raise InternalServerError("Failed to fetch pending leave requests", error=str(e))


@router.put("/admin/{leave_request_id}/status")
async def update_leave_status(
    leave_request_id: int,
    data: LeaveStatusUpdate,
    current_user: CurrentUser = Depends(admin_only),
    service: LeaveRequestService = Depends(get_leave_service),
):
    """Approve or reject a pending leave request"""
    try:
        leave_request = await service.update_status(
            leave_request_id, data.status, current_user, data.admin_comments
        )
        return {
            "success": True,
            "message": f"Leave request {leave_request.status.value} successfully",
            "data": {"leaveRequest": leave_request},
        }
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error updating leave request {leave_request_id}: {str(e)}")
        raise InternalServerError("Failed to update leave request status", error=str(e))


@router.get("/admin/stats")
async def get_leave_stats(
    current_user: CurrentUser = Depends(admin_only),
    service: LeaveRequestService = Depends(get_leave_service),
):
    try:
        return {"success": True, "data": await service.get_stats()}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching leave statistics: {str(e)}")
        raise InternalServerError("Failed to fetch leave statistics", error=str(e))


@router.get("/{leave_request_id}")
async def get_leave_request(
    leave_request_id: int,
    current_user: CurrentUser = Depends(can_view_leaves),
    service: LeaveRequestService = Depends(get_leave_service),
):
    try:
        leave_request = await service.get_leave_request(leave_request_id, current_user)
        return {"success": True, "data": {"leaveRequest": leave_request}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching leave request {leave_request_id}: {str(e)}")
        raise InternalServerError("Failed to fetch leave request", error=str(e))
