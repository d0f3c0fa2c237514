from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from schoolerp.models import SOSStatus

from .common import CamelModel


class SOSAlertCreate(CamelModel):
    location: Optional[str] = None
    notes: Optional[str] = None


class SOSAlertResolve(CamelModel):
    notes: Optional[str] = None


class SOSAlertOut(CamelModel):
    id: int
    school_code: str
    student_id: str
    student_name: str
    student_class: Optional[str] = None
    student_roll_no: str
    student_mobile: str
    status: SOSStatus
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    timestamp: datetime


class SOSAlertList(CamelModel):
    alerts: List[SOSAlertOut]
    count: int


class SOSStats(BaseModel):
    total: int = 0
    active: int = 0
    acknowledged: int = 0
    resolved: int = 0
