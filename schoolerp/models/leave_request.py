import enum
from datetime import date

from sqlalchemy import Column, Date, DateTime, Index, Integer, String, Text, event

from .base import TenantBase, TimestampMixin


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def inclusive_day_count(start_date: date, end_date: date) -> int:
    """Number of calendar days covered, counting both ends (same day = 1)."""
    return abs((end_date - start_date).days) + 1


class LeaveRequest(TimestampMixin, TenantBase):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True)

    # Teacher information
    teacher_id = Column(String(64), nullable=False, index=True)
    teacher_user_id = Column(String(64), nullable=False)
    teacher_name = Column(String(255), nullable=False)
    teacher_email = Column(String(255), nullable=True)

    # School information
    school_id = Column(Integer, nullable=False, index=True)
    school_code = Column(String(20), nullable=False, index=True)

    # Leave request details
    subject_line = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    number_of_days = Column(Integer, nullable=False, default=1)

    status = Column(String(20), nullable=False, default=LeaveStatus.PENDING.value, index=True)

    # Admin review information
    reviewed_by = Column(String(64), nullable=True)
    reviewed_by_name = Column(String(255), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    admin_comments = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_leave_requests_teacher_created", "teacher_id", "created_at"),
        Index("ix_leave_requests_status_created", "status", "created_at"),
    )

    def __repr__(self):
        return f"<LeaveRequest(id={self.id}, teacher={self.teacher_user_id}, status={self.status})>"


@event.listens_for(LeaveRequest, "before_insert")
@event.listens_for(LeaveRequest, "before_update")
def _recompute_number_of_days(mapper, connection, target: LeaveRequest) -> None:
    if target.start_date and target.end_date:
        target.number_of_days = inclusive_day_count(target.start_date, target.end_date)
