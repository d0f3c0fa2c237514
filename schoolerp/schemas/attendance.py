from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from .common import CamelModel


class StudentMark(CamelModel):
    student_id: Optional[str] = None
    status: Optional[str] = None


class SessionAttendanceRequest(CamelModel):
    date: date
    class_name: str = Field(alias="class")
    section: str
    session: str
    students: List[StudentMark] = Field(default_factory=list)


class StudentMarkResult(CamelModel):
    student_id: str
    success: bool
    message: str


class SessionAttendanceOut(CamelModel):
    id: str
    date: date
    session: str
    day_of_week: str
    class_name: str = Field(alias="class")
    section: str
    class_info: Optional[str] = None
    total_students: int
    success_count: int
    fail_count: int
    progress: Optional[str] = None
    students: List[dict]
    marked_by: Optional[str] = None
    marked_by_role: Optional[str] = None
    session_time: Optional[str] = None
    marked_at: Optional[datetime] = None


class AttendanceStats(CamelModel):
    total_sessions: int = 0
    total_present: int = 0
    total_absent: int = 0
    total_records: int = 0
    average_attendance: float = 0.0
    attendance_rate: str = "0.0%"
