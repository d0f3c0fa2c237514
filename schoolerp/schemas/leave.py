from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel

from schoolerp.models import LeaveStatus

from .common import CamelModel


class LeaveRequestCreate(CamelModel):
    """Body of POST /leave/teacher/create; presence is checked by the service"""
    teacher_name: Optional[str] = None
    teacher_id: Optional[str] = None
    subject_line: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    description: Optional[str] = None
    school_code: Optional[str] = None


class LeaveStatusUpdate(CamelModel):
    status: Optional[str] = None
    admin_comments: Optional[str] = None


class PersonSummary(CamelModel):
    user_id: str
    name: str
    email: Optional[str] = None


class LeaveRequestCreated(CamelModel):
    id: int
    subject_line: str
    start_date: date
    end_date: date
    number_of_days: int
    status: LeaveStatus
    created_at: datetime


class LeaveRequestOut(CamelModel):
    id: int
    teacher_id: str
    teacher_user_id: str
    teacher_name: str
    teacher_email: Optional[str] = None
    school_id: int
    school_code: str
    subject_line: str
    description: str
    start_date: date
    end_date: date
    number_of_days: int
    status: LeaveStatus
    reviewed_by: Optional[str] = None
    reviewed_by_name: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    admin_comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    # Filled in when identity expansion succeeds
    teacher: Optional[PersonSummary] = None
    reviewer: Optional[PersonSummary] = None


class LeaveRequestList(CamelModel):
    leave_requests: List[LeaveRequestOut]
    count: int


class LeaveStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0

