import enum

from sqlalchemy import Column, Date, DateTime, Integer, JSON, String

from .base import TenantBase, TimestampMixin


class AttendanceSession(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"

    @property
    def start_time(self) -> str:
        return "08:00" if self is AttendanceSession.MORNING else "13:00"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"


class SessionAttendance(TimestampMixin, TenantBase):
    """
    One frozen attendance sheet for a class section and half-day session.
    The primary key is "{date}_{class}_{section}_{session}".
    """
    __tablename__ = "session_attendance"

    id = Column(String(120), primary_key=True)
    date = Column(Date, nullable=False, index=True)
    session = Column(String(20), nullable=False)
    day_of_week = Column(String(10), nullable=False)
    class_name = Column(String(50), nullable=False, index=True)
    section = Column(String(20), nullable=False)
    class_info = Column(String(255), nullable=True)

    total_students = Column(Integer, nullable=False, default=0)
    processed_students = Column(Integer, nullable=False, default=0)
    success_count = Column(Integer, nullable=False, default=0)
    fail_count = Column(Integer, nullable=False, default=0)
    progress = Column(String(50), nullable=True)
    students = Column(JSON, nullable=False, default=list)

    academic_year = Column(String(20), nullable=True)
    school_code = Column(String(20), nullable=False)
    created_by = Column(String(64), nullable=True)
    marked_by = Column(String(255), nullable=True)
    marked_by_role = Column(String(20), nullable=True)
    session_time = Column(String(5), nullable=True)
    marked_at = Column(DateTime(timezone=True), nullable=True)

    @staticmethod
    def document_id(date_string: str, class_name: str, section: str, session: str) -> str:
        return f"{date_string}_{class_name}_{section}_{session}"

    def __repr__(self):
        return f"<SessionAttendance(id={self.id}, progress={self.progress})>"
