from typing import Dict, Iterable, List, Optional

from sqlalchemy import desc, func, select, update

from schoolerp.models import SOSAlert

from .base import BaseRepository


class SOSAlertRepository(BaseRepository[SOSAlert]):
    model = SOSAlert

    async def list(self, status: Optional[str] = None) -> List[SOSAlert]:
        query = select(SOSAlert)
        if status:
            query = query.where(SOSAlert.status == status)
        result = await self.session.execute(
            query.order_by(desc(SOSAlert.timestamp), desc(SOSAlert.id))
        )
        return list(result.scalars().all())

    async def transition(self, alert_id: int, allowed_from: Iterable[str], **values) -> bool:
        """Conditional status change; False when the alert is not in an allowed state."""
        result = await self.session.execute(
            update(SOSAlert)
            .where(SOSAlert.id == alert_id, SOSAlert.status.in_(list(allowed_from)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_by_status(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(SOSAlert.status, func.count(SOSAlert.id)).group_by(SOSAlert.status)
        )
        return {status: count for status, count in result.all()}
