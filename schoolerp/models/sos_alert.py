import enum

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from .base import TenantBase, TimestampMixin, utcnow


class SOSStatus(str, enum.Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class SOSAlert(TimestampMixin, TenantBase):
    """Emergency ping raised by a student"""
    __tablename__ = "sos_alerts"

    id = Column(Integer, primary_key=True)
    school_code = Column(String(20), nullable=False, index=True)

    # Student snapshot at the time of the alert
    student_id = Column(String(64), nullable=False)
    student_name = Column(String(255), nullable=False)
    student_class = Column(String(50), nullable=True)
    student_roll_no = Column(String(50), nullable=False, default="N/A")
    student_mobile = Column(String(20), nullable=False, default="N/A")

    status = Column(String(20), nullable=False, default=SOSStatus.ACTIVE.value)
    acknowledged_by = Column(String(64), nullable=True)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(String(64), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_sos_alerts_status_timestamp", "status", "timestamp"),
    )

    def __repr__(self):
        return f"<SOSAlert(id={self.id}, student={self.student_id}, status={self.status})>"
