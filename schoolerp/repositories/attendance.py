from datetime import date
from typing import List, Optional

from sqlalchemy import select

from schoolerp.models import SessionAttendance

from .base import BaseRepository


class AttendanceRepository(BaseRepository[SessionAttendance]):
    model = SessionAttendance

    async def list(
        self,
        class_name: Optional[str] = None,
        section: Optional[str] = None,
        on_date: Optional[date] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        session: Optional[str] = None,
    ) -> List[SessionAttendance]:
        query = select(SessionAttendance)
        if class_name:
            query = query.where(SessionAttendance.class_name == class_name)
        if section:
            query = query.where(SessionAttendance.section == section)
        if session:
            query = query.where(SessionAttendance.session == session)
        if on_date:
            query = query.where(SessionAttendance.date == on_date)
        else:
            if start_date:
                query = query.where(SessionAttendance.date >= start_date)
            if end_date:
                query = query.where(SessionAttendance.date <= end_date)

        result = await self.session.execute(
            query.order_by(SessionAttendance.date.desc(), SessionAttendance.session)
        )
        return list(result.scalars().all())
