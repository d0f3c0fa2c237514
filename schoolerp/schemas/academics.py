from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .common import CamelModel


class ClassSubjectCreate(CamelModel):
    class_name: str = Field(min_length=1, max_length=50)
    section: str = ""
    subject_name: str = Field(min_length=1, max_length=100)
    subject_type: str = "core"
    teacher_id: Optional[str] = None
    teacher_name: Optional[str] = None
    academic_year: Optional[str] = None


class ClassSubjectOut(CamelModel):
    id: int
    class_name: str
    section: str
    academic_year: str
    subject_name: str
    subject_type: str
    teacher_id: Optional[str] = None
    teacher_name: Optional[str] = None


class ClassWithSubjects(CamelModel):
    class_name: str
    section: str
    academic_year: str
    subjects: List[ClassSubjectOut]


class SubjectScore(CamelModel):
    subject_name: str
    test_type: str
    max_marks: Optional[float] = None
    obtained_marks: Optional[float] = None
    total_marks: Optional[float] = None
    grade: Optional[str] = None
    percentage: Optional[float] = None
    frozen: bool = False
    frozen_at: Optional[str] = None
    frozen_by: Optional[str] = None


class ResultOut(CamelModel):
    id: int
    student_id: str
    student_name: Optional[str] = None
    user_id: Optional[str] = None
    class_name: str
    section: Optional[str] = None
    academic_year: str
    subjects: List[SubjectScore]
    migrated_at: Optional[datetime] = None
    created_at: datetime


class StudentMarks(CamelModel):
    student_id: str = Field(min_length=1)
    student_name: Optional[str] = None
    user_id: Optional[str] = None
    obtained_marks: Optional[float] = None
    total_marks: Optional[float] = None


class ResultSaveRequest(CamelModel):
    school_code: Optional[str] = None
    class_name: str = Field(alias="class", min_length=1)
    section: str = Field(min_length=1)
    test_type: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    max_marks: float = Field(gt=0)
    academic_year: Optional[str] = None
    results: List[StudentMarks]


class ResultUpdateRequest(CamelModel):
    subject: str = Field(min_length=1)
    test_type: str = Field(min_length=1)
    max_marks: Optional[float] = Field(default=None, gt=0)
    obtained_marks: Optional[float] = None
    total_marks: Optional[float] = Field(default=None, gt=0)
    grade: Optional[str] = None


class ResultFreezeRequest(CamelModel):
    school_code: Optional[str] = None
    class_name: str = Field(alias="class", min_length=1)
    section: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    test_type: str = Field(min_length=1)
    academic_year: Optional[str] = None
