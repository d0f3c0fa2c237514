from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from .attendance import AttendanceRepository
from .base import BaseRepository
from .class_subjects import ClassSubjectRepository
from .leave_requests import LeaveRequestRepository
from .results import LegacyResultRepository, ResultRepository
from .school_users import SchoolUserRepository
from .sos_alerts import SOSAlertRepository


@dataclass(frozen=True)
class TenantRepositories:
    """Typed repositories for one tenant session"""
    session: AsyncSession
    users: SchoolUserRepository
    leave_requests: LeaveRequestRepository
    sos_alerts: SOSAlertRepository
    class_subjects: ClassSubjectRepository
    attendance: AttendanceRepository
    results: ResultRepository
    legacy_results: LegacyResultRepository

    @classmethod
    def for_session(cls, session: AsyncSession) -> "TenantRepositories":
        return cls(
            session=session,
            users=SchoolUserRepository(session),
            leave_requests=LeaveRequestRepository(session),
            sos_alerts=SOSAlertRepository(session),
            class_subjects=ClassSubjectRepository(session),
            attendance=AttendanceRepository(session),
            results=ResultRepository(session),
            legacy_results=LegacyResultRepository(session),
        )


__all__ = [
    "AttendanceRepository",
    "BaseRepository",
    "ClassSubjectRepository",
    "LeaveRequestRepository",
    "LegacyResultRepository",
    "ResultRepository",
    "SchoolUserRepository",
    "SOSAlertRepository",
    "TenantRepositories",
]
