from .base import DirectoryBase, TenantBase, TimestampMixin
from .school import School
from .school_user import SchoolUser
from .leave_request import LeaveRequest, LeaveStatus, inclusive_day_count
from .sos_alert import SOSAlert, SOSStatus
from .class_subject import ClassSubject
from .attendance import AttendanceSession, AttendanceStatus, SessionAttendance
from .result import LegacyResultRow, Result

__all__ = [
    'DirectoryBase',
    'TenantBase',
    'TimestampMixin',
    'School',
    'SchoolUser',
    'LeaveRequest',
    'LeaveStatus',
    'inclusive_day_count',
    'SOSAlert',
    'SOSStatus',
    'ClassSubject',
    'AttendanceSession',
    'AttendanceStatus',
    'SessionAttendance',
    'LegacyResultRow',
    'Result',
]
