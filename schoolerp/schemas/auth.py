from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserRoleEnum(str, Enum):
    SUPER_ADMIN = "superadmin"
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"


class CurrentUser(BaseModel):
    """Identity carried by the bearer token"""
    id: str
    role: UserRoleEnum
    school_code: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    user_id: Optional[str] = None

    model_config = ConfigDict(use_enum_values=False)

    @property
    def display_id(self) -> str:
        return self.user_id or self.id

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.display_id

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRoleEnum.ADMIN, UserRoleEnum.SUPER_ADMIN)
