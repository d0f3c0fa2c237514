from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import EmailStr, Field, field_validator

from .common import CamelModel


class SchoolCreateRequest(CamelModel):
    name: str = Field(min_length=2, max_length=255)
    code: str = Field(min_length=1, max_length=20)
    principal_name: Optional[str] = None
    principal_email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    academic_settings: Optional[Dict[str, Any]] = None

    @field_validator("code")
    @classmethod
    def uppercase_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v.replace("_", "").replace("-", "").isalnum():
            raise ValueError("School code may only contain letters, digits, '-' and '_'")
        return v


class SchoolSettingsUpdate(CamelModel):
    principal_name: Optional[str] = None
    principal_email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    academic_settings: Optional[Dict[str, Any]] = None
    access_matrix: Optional[Dict[str, Dict[str, Any]]] = None
    is_active: Optional[bool] = None


class SchoolOut(CamelModel):
    id: int
    code: str
    name: str
    database_name: str
    principal_name: Optional[str] = None
    principal_email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    academic_settings: Optional[Dict[str, Any]] = None
    is_active: bool
    created_at: datetime
