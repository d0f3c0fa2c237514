from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from schoolerp.core.dependencies import get_repositories, get_tenant
from schoolerp.core.errors import BaseAPIError, InternalServerError
from schoolerp.core.logging import logger
from schoolerp.core.permissions import require_staff, require_student
from schoolerp.core.tenancy import TenantHandle
from schoolerp.repositories import TenantRepositories
from schoolerp.schemas.auth import CurrentUser
from schoolerp.schemas.sos import SOSAlertCreate, SOSAlertList, SOSAlertResolve
from schoolerp.services.sos_service import SOSAlertService

router = APIRouter()


def get_sos_service(
    tenant: TenantHandle = Depends(get_tenant),
    repos: TenantRepositories = Depends(get_repositories),
) -> SOSAlertService:
    return SOSAlertService(tenant, repos)


@router.post("", status_code=status.HTTP_201_CREATED)
async def raise_sos_alert(
    data: SOSAlertCreate,
    current_user: CurrentUser = Depends(require_student()),
    service: SOSAlertService = Depends(get_sos_service),
):
    try:
        alert = await service.raise_alert(current_user, data.location, data.notes)
        return {"success": True, "message": "SOS alert sent", "data": {"alert": alert}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error raising SOS alert: {str(e)}")
        raise InternalServerError("Failed to send SOS alert", error=str(e))


@router.get("")
async def list_sos_alerts(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(require_staff()),
    service: SOSAlertService = Depends(get_sos_service),
):
    try:
        alerts = await service.list_alerts(status)
        return {"success": True, "data": SOSAlertList(alerts=alerts, count=len(alerts))}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching SOS alerts: {str(e)}")
        raise InternalServerError("Failed to fetch SOS alerts", error=str(e))


@router.get("/stats")
async def get_sos_stats(
    current_user: CurrentUser = Depends(require_staff()),
    service: SOSAlertService = Depends(get_sos_service),
):
    try:
        return {"success": True, "data": await service.get_counts()}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching SOS statistics: {str(e)}")
        raise InternalServerError("Failed to fetch SOS statistics", error=str(e))


@router.put("/{alert_id}/acknowledge")
async def acknowledge_sos_alert(
    alert_id: int,
    current_user: CurrentUser = Depends(require_staff()),
    service: SOSAlertService = Depends(get_sos_service),
):
    try:
        alert = await service.acknowledge(alert_id, current_user)
        return {"success": True, "message": "SOS alert acknowledged", "data": {"alert": alert}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error acknowledging SOS alert {alert_id}: {str(e)}")
        raise InternalServerError("Failed to acknowledge SOS alert", error=str(e))


@router.put("/{alert_id}/resolve")
async def resolve_sos_alert(
    alert_id: int,
    data: Optional[SOSAlertResolve] = None,
    current_user: CurrentUser = Depends(require_staff()),
    service: SOSAlertService = Depends(get_sos_service),
):
    try:
        alert = await service.resolve(alert_id, current_user, data.notes if data else None)
        return {"success": True, "message": "SOS alert resolved", "data": {"alert": alert}}
    except BaseAPIError:
        raise
    except Exception as e:
        logger.error(f"Error resolving SOS alert {alert_id}: {str(e)}")
        raise InternalServerError("Failed to resolve SOS alert", error=str(e))
