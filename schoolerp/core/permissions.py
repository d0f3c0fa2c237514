# schoolerp/core/permissions.py
import copy
from typing import Any, Dict, List, Optional, Set

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolerp.core.dependencies import get_current_user, get_directory_db
from schoolerp.core.errors import PermissionDenied
from schoolerp.core.logging import logger
from schoolerp.models import School
from schoolerp.schemas.auth import CurrentUser, UserRoleEnum

PERMISSIONS = (
    "manageUsers",
    "manageSchoolSettings",
    "viewTimetable",
    "markAttendance",
    "viewAttendance",
    "viewResults",
    "messageStudentsParents",
    "viewAcademicDetails",
    "viewAssignments",
    "viewLeaves",
    "viewFees",
    "viewReports",
)

_STAFF_DEFAULTS = {permission: True for permission in PERMISSIONS}

DEFAULT_PERMISSIONS: Dict[str, Dict[str, Any]] = {
    UserRoleEnum.SUPER_ADMIN.value: dict(_STAFF_DEFAULTS),
    UserRoleEnum.ADMIN.value: dict(_STAFF_DEFAULTS),
    UserRoleEnum.TEACHER.value: {
        **_STAFF_DEFAULTS,
        "manageUsers": False,
        "manageSchoolSettings": False,
        "viewFees": False,
        "viewReports": False,
    },
    UserRoleEnum.STUDENT.value: {
        **{permission: False for permission in PERMISSIONS},
        "viewResults": True,
        "viewAssignments": True,
        "viewTimetable": True,
        "viewAttendance": True,
    },
    UserRoleEnum.PARENT.value: {permission: False for permission in PERMISSIONS},
}

# Action permissions granted to staff through their base "view" permission
ACTION_TO_VIEW = {
    "updateAttendance": "viewAttendance",
    "deleteAttendance": "viewAttendance",
    "updateResults": "viewResults",
    "createResults": "viewResults",
    "freezeResults": "viewResults",
    "createLeave": "viewLeaves",
    "updateLeave": "viewLeaves",
    "deleteLeave": "viewLeaves",
    "approveLeave": "viewLeaves",
    "rejectLeave": "viewLeaves",
}


class RoleHierarchy:
    """Define role hierarchy relationships"""
    HIERARCHY = {
        UserRoleEnum.SUPER_ADMIN: {
            UserRoleEnum.ADMIN,
            UserRoleEnum.TEACHER,
            UserRoleEnum.STUDENT,
            UserRoleEnum.PARENT,
        },
        UserRoleEnum.ADMIN: {
            UserRoleEnum.TEACHER,
            UserRoleEnum.STUDENT,
            UserRoleEnum.PARENT,
        },
        UserRoleEnum.TEACHER: {
            UserRoleEnum.STUDENT
        },
        UserRoleEnum.PARENT: set(),
        UserRoleEnum.STUDENT: set()
    }

    @classmethod
    def get_subordinate_roles(cls, role: UserRoleEnum) -> Set[UserRoleEnum]:
        """Get all roles subordinate to the given role"""
        return cls.HIERARCHY.get(role, set())

    @classmethod
    def has_permission(cls, user_role: UserRoleEnum, required_role: UserRoleEnum) -> bool:
        """Check if user_role has permission over required_role"""
        if user_role == required_role:
            return True
        return required_role in cls.get_subordinate_roles(user_role)


class RoleChecker:
    """Role checking usable as a FastAPI dependency"""

    def __init__(self, allowed_roles: List[UserRoleEnum], exact: bool = False):
        self.allowed_roles = set(allowed_roles)
        self.exact = exact

    async def __call__(self, current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not self.check(current_user.role):
            logger.warning(
                f"Permission denied: User {current_user.id} with role {current_user.role.value} "
                f"attempted to access resource requiring roles {[r.value for r in self.allowed_roles]}"
            )
            raise PermissionDenied("Access denied. Insufficient permissions.")
        return current_user

    def check(self, role: UserRoleEnum) -> bool:
        if self.exact:
            return role in self.allowed_roles
        return any(
            RoleHierarchy.has_permission(role, required_role)
            for required_role in self.allowed_roles
        )


def default_access_matrix() -> Dict[str, Dict[str, Any]]:
    """Per-school matrix stored on new schools; superadmin is never restricted"""
    matrix = copy.deepcopy(DEFAULT_PERMISSIONS)
    matrix.pop(UserRoleEnum.SUPER_ADMIN.value)
    matrix[UserRoleEnum.TEACHER.value]["viewLeaves"] = "own"
    matrix[UserRoleEnum.TEACHER.value]["viewResults"] = "own"
    matrix[UserRoleEnum.STUDENT.value]["viewAttendance"] = "self"
    return matrix


def has_permission(
    access_matrix: Optional[Dict[str, Dict[str, Any]]],
    role: UserRoleEnum,
    permission: str,
) -> bool:
    """
    Evaluate a permission against a school's access matrix.

    String values such as "own" count as granted. Keys or roles missing from
    the matrix fall back to the role defaults. Staff holding a base "view"
    permission also get the matching action permissions.
    """
    if role == UserRoleEnum.SUPER_ADMIN:
        return True

    defaults = DEFAULT_PERMISSIONS.get(role.value, {})
    role_permissions = (access_matrix or {}).get(role.value)

    # A student row with nothing granted comes from bulk imports; use the defaults
    if role == UserRoleEnum.STUDENT and role_permissions is not None and not any(
        value is True for value in role_permissions.values()
    ):
        role_permissions = None

    if not role_permissions:
        return bool(defaults.get(permission))

    value = role_permissions.get(permission)
    if value is None:
        value = defaults.get(permission)
    granted = bool(value)

    if not granted and role in (UserRoleEnum.ADMIN, UserRoleEnum.TEACHER):
        base = ACTION_TO_VIEW.get(permission)
        if base and role_permissions.get(base):
            granted = True

    return granted


class PermissionChecker:
    """Checks the caller's school access matrix for one permission"""

    def __init__(self, permission: str):
        self.permission = permission

    async def __call__(
        self,
        current_user: CurrentUser = Depends(get_current_user),
        db: AsyncSession = Depends(get_directory_db),
    ) -> CurrentUser:
        access_matrix = None
        if current_user.school_code and current_user.role != UserRoleEnum.SUPER_ADMIN:
            result = await db.execute(
                select(School.access_matrix).where(School.code == current_user.school_code.upper())
            )
            access_matrix = result.scalar_one_or_none()

        if not has_permission(access_matrix, current_user.role, self.permission):
            logger.warning(
                f"Access denied: {current_user.role.value} {current_user.id} lacks {self.permission}"
            )
            raise PermissionDenied(
                f"Access denied. Your role ({current_user.role.value}) does not have permission to {self.permission}."
            )
        return current_user


# Factory functions for common role checks
def require_super_admin() -> RoleChecker:
    return RoleChecker([UserRoleEnum.SUPER_ADMIN])


def require_admin() -> RoleChecker:
    return RoleChecker([UserRoleEnum.ADMIN])


def require_staff() -> RoleChecker:
    return RoleChecker([UserRoleEnum.TEACHER])


def require_student() -> RoleChecker:
    return RoleChecker([UserRoleEnum.STUDENT], exact=True)
