from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import desc, func, select, update

from schoolerp.models import LeaveRequest, LeaveStatus

from .base import BaseRepository


class LeaveRequestRepository(BaseRepository[LeaveRequest]):
    model = LeaveRequest

    def _newest_first(self, query):
        return query.order_by(desc(LeaveRequest.created_at), desc(LeaveRequest.id))

    async def list_for_teacher(self, teacher_id: str) -> List[LeaveRequest]:
        result = await self.session.execute(
            self._newest_first(select(LeaveRequest).where(LeaveRequest.teacher_id == teacher_id))
        )
        return list(result.scalars().all())

    async def list(self, status: Optional[str] = None) -> List[LeaveRequest]:
        query = select(LeaveRequest)
        if status:
            query = query.where(LeaveRequest.status == status)
        result = await self.session.execute(self._newest_first(query))
        return list(result.scalars().all())

    async def mark_reviewed(
        self,
        leave_request_id: int,
        status: str,
        reviewer_id: str,
        reviewer_name: str,
        reviewed_at: datetime,
        comments: Optional[str] = None,
    ) -> bool:
        """
        Move a pending request to approved/rejected in one statement.
        Returns False when the row is no longer pending.
        """
        values = {
            "status": status,
            "reviewed_by": reviewer_id,
            "reviewed_by_name": reviewer_name,
            "reviewed_at": reviewed_at,
        }
        if comments:
            values["admin_comments"] = comments

        result = await self.session.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.id == leave_request_id,
                LeaveRequest.status == LeaveStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_by_status(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(LeaveRequest.status, func.count(LeaveRequest.id)).group_by(LeaveRequest.status)
        )
        return {status: count for status, count in result.all()}
