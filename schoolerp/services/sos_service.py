# schoolerp/services/sos_service.py
from typing import List, Optional

from schoolerp.core.errors import InvalidStateError, RecordNotFoundError
from schoolerp.core.logging import logger
from schoolerp.models import SOSAlert, SOSStatus
from schoolerp.models.base import utcnow
from schoolerp.schemas.auth import CurrentUser
from schoolerp.schemas.sos import SOSAlertOut, SOSStats
from schoolerp.services.base_service import BaseService

ALL_STATUSES = tuple(status.value for status in SOSStatus)


class SOSAlertService(BaseService):
    """Emergency alerts: active -> acknowledged -> resolved, never deleted"""

    async def raise_alert(
        self,
        student: CurrentUser,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> SOSAlertOut:
        profile = await self.repos.users.get_by_user_id(student.display_id)

        if profile is not None:
            student_class = profile.class_name
            if student_class and profile.section:
                student_class = f"{student_class}-{profile.section}"
            alert = SOSAlert(
                school_code=self.tenant.school_code,
                student_id=profile.user_id,
                student_name=profile.name,
                student_class=student_class,
                student_roll_no=profile.roll_number or "N/A",
                student_mobile=profile.mobile or "N/A",
            )
        else:
            alert = SOSAlert(
                school_code=self.tenant.school_code,
                student_id=student.display_id,
                student_name=student.display_name,
            )

        alert.status = SOSStatus.ACTIVE.value
        alert.location = location
        alert.notes = notes
        alert.timestamp = utcnow()

        await self.repos.sos_alerts.add(alert)
        await self.db.commit()

        logger.warning(
            f"SOS alert {alert.id} raised by {alert.student_id} in {self.tenant.school_code}"
        )
        return SOSAlertOut.model_validate(alert)

    async def list_alerts(self, status: Optional[str] = None) -> List[SOSAlertOut]:
        if status not in ALL_STATUSES:
            status = None
        alerts = await self.repos.sos_alerts.list(status=status)
        return [SOSAlertOut.model_validate(alert) for alert in alerts]

    async def acknowledge(self, alert_id: int, staff: CurrentUser) -> SOSAlertOut:
        return await self._transition(
            alert_id,
            action="acknowledge",
            allowed_from=(SOSStatus.ACTIVE.value,),
            status=SOSStatus.ACKNOWLEDGED.value,
            acknowledged_by=staff.display_id,
            acknowledged_at=utcnow(),
        )

    async def resolve(
        self, alert_id: int, staff: CurrentUser, notes: Optional[str] = None
    ) -> SOSAlertOut:
        values = {
            "status": SOSStatus.RESOLVED.value,
            "resolved_by": staff.display_id,
            "resolved_at": utcnow(),
        }
        if notes:
            values["notes"] = notes
        return await self._transition(
            alert_id,
            action="resolve",
            allowed_from=(SOSStatus.ACTIVE.value, SOSStatus.ACKNOWLEDGED.value),
            **values,
        )

    async def get_counts(self) -> SOSStats:
        counts = await self.repos.sos_alerts.count_by_status()
        stats = SOSStats(**{status: counts.get(status, 0) for status in ALL_STATUSES})
        stats.total = stats.active + stats.acknowledged + stats.resolved
        return stats

    async def _transition(self, alert_id: int, action: str, allowed_from, **values) -> SOSAlertOut:
        alert = await self.repos.sos_alerts.get(alert_id)
        if alert is None:
            raise RecordNotFoundError("SOS alert not found")

        changed = await self.repos.sos_alerts.transition(alert_id, allowed_from, **values)
        await self.db.commit()
        await self.repos.sos_alerts.refresh(alert)

        if not changed:
            raise InvalidStateError(f"Cannot {action} an alert that is {alert.status}")

        logger.info(f"SOS alert {alert_id} moved to {alert.status} by {alert.resolved_by or alert.acknowledged_by}")
        return SOSAlertOut.model_validate(alert)
