# schoolerp/services/attendance_service.py
from datetime import date
from typing import Any, Dict, List, Optional

from schoolerp.core.errors import InvalidStateError, PermissionDenied, ValidationError
from schoolerp.core.logging import logger
from schoolerp.models import AttendanceSession, AttendanceStatus, SessionAttendance
from schoolerp.models.base import utcnow
from schoolerp.schemas.attendance import (
    AttendanceStats,
    SessionAttendanceOut,
    SessionAttendanceRequest,
    StudentMarkResult,
)
from schoolerp.schemas.auth import CurrentUser, UserRoleEnum
from schoolerp.services.base_service import BaseService

VALID_STATUSES = tuple(status.value for status in AttendanceStatus)


def _parse_session(session: str) -> AttendanceSession:
    try:
        return AttendanceSession(session)
    except ValueError:
        raise ValidationError('Session must be either "morning" or "afternoon"')


class AttendanceService(BaseService):
    """
    Half-day attendance sheets.

    A class section gets one document per date and session. Once stored the
    document is frozen: a second submission for the same key is refused and
    the existing sheet is reported back instead.
    """

    async def mark_session_attendance(
        self, user: CurrentUser, request: SessionAttendanceRequest
    ) -> Dict[str, Any]:
        if user.role not in (UserRoleEnum.ADMIN, UserRoleEnum.TEACHER):
            raise PermissionDenied("Access denied")

        session = _parse_session(request.session)
        label = session.value.capitalize()
        date_string = request.date.isoformat()
        document_id = SessionAttendance.document_id(
            date_string, request.class_name, request.section, session.value
        )

        existing = await self.repos.attendance.get(document_id)
        if existing is not None:
            raise InvalidStateError(
                f"{label} attendance has already been marked and is frozen. "
                f"Cannot modify existing attendance.",
                details={"data": {
                    "date": date_string,
                    "class": request.class_name,
                    "section": request.section,
                    "session": session.value,
                    "isFrozen": True,
                    "existingDocument": _document_summary(existing),
                }},
            )

        processed: List[Dict[str, Any]] = []
        results: List[StudentMarkResult] = []
        for entry in request.students:
            student_id = (entry.student_id or "").strip()
            if not student_id or entry.status not in VALID_STATUSES:
                results.append(StudentMarkResult(
                    student_id=student_id or "unknown",
                    success=False,
                    message="Student ID and a present/absent status are required",
                ))
                continue

            student = await self.repos.users.get_by_user_id_or_email(student_id)
            if student is None or student.role != UserRoleEnum.STUDENT.value:
                results.append(StudentMarkResult(
                    student_id=student_id, success=False, message="Student not found"
                ))
                continue

            processed.append({
                "studentId": student.user_id,
                "studentName": student.name,
                "class": request.class_name,
                "section": request.section,
                "status": entry.status,
                "rollNumber": student.roll_number or student.user_id,
                "markedAt": utcnow().isoformat(),
            })
            results.append(StudentMarkResult(
                student_id=student.user_id,
                success=True,
                message=f"{session.value} attendance marked successfully",
            ))

        total = len(request.students)
        success_count = len(processed)
        fail_count = total - success_count
        progress = f"{success_count}/{total} marked"
        marked_at = utcnow()

        document = SessionAttendance(
            id=document_id,
            date=request.date,
            session=session.value,
            day_of_week=request.date.strftime("%A"),
            class_name=request.class_name,
            section=request.section,
            class_info=f"{label} Attendance - Class {request.class_name} Section {request.section}",
            total_students=total,
            processed_students=success_count,
            success_count=success_count,
            fail_count=fail_count,
            progress=progress,
            students=processed,
            academic_year=str(marked_at.year),
            school_code=self.tenant.school_code,
            created_by=user.id,
            marked_by=user.display_name,
            marked_by_role=user.role.value,
            session_time=session.start_time,
            marked_at=marked_at,
        )
        await self.repos.attendance.add(document)
        await self.db.commit()

        logger.info(
            f"{label} attendance stored for class {request.class_name}{request.section} "
            f"on {date_string}: {success_count} processed, {fail_count} failed"
        )
        return {
            "message": (
                f"{label} attendance marked successfully: "
                f"{success_count} students processed, {fail_count} failed"
            ),
            "data": {
                "date": date_string,
                "class": request.class_name,
                "section": request.section,
                "session": session.value,
                "totalStudents": total,
                "successCount": success_count,
                "failCount": fail_count,
                "progress": progress,
                "documentId": document_id,
                "studentsData": processed,
                "results": [result.model_dump(by_alias=True) for result in results],
            },
        }

    async def check_session_status(
        self, on_date: date, class_name: str, section: str, session: str
    ) -> Dict[str, Any]:
        parsed = _parse_session(session)
        label = parsed.value.capitalize()
        document_id = SessionAttendance.document_id(
            on_date.isoformat(), class_name, section, parsed.value
        )
        existing = await self.repos.attendance.get(document_id)

        if existing is not None:
            data = _document_summary(existing)
            data.update({"session": existing.session, "classInfo": existing.class_info})
            return {
                "isMarked": True,
                "isFrozen": True,
                "canModify": False,
                "message": f"{label} attendance is already marked and frozen",
                "data": data,
            }

        return {
            "isMarked": False,
            "isFrozen": False,
            "canModify": True,
            "message": f"{label} attendance can be marked",
            "data": {
                "documentId": document_id,
                "date": on_date.isoformat(),
                "class": class_name,
                "section": section,
                "session": parsed.value,
            },
        }

    async def get_attendance(
        self,
        user: CurrentUser,
        class_name: Optional[str] = None,
        section: Optional[str] = None,
        on_date: Optional[date] = None,
        session: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[SessionAttendanceOut]:
        if session:
            session = _parse_session(session).value

        documents = await self.repos.attendance.list(
            class_name=class_name,
            section=section,
            on_date=on_date,
            start_date=start_date,
            end_date=end_date,
            session=session,
        )

        sheets = [SessionAttendanceOut.model_validate(document) for document in documents]

        # Students only ever see their own row
        if user.role == UserRoleEnum.STUDENT:
            own_sheets = []
            for sheet in sheets:
                own = [row for row in sheet.students if row.get("studentId") == user.display_id]
                if own:
                    own_sheets.append(sheet.model_copy(update={"students": own, "total_students": 1}))
            sheets = own_sheets

        return sheets

    async def get_attendance_stats(
        self,
        user: CurrentUser,
        class_name: Optional[str] = None,
        section: Optional[str] = None,
        on_date: Optional[date] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> AttendanceStats:
        """Aggregate present/absent counts; students are counted on their own rows only"""
        if class_name == "all":
            class_name = None

        documents = await self.repos.attendance.list(
            class_name=class_name,
            section=section,
            on_date=on_date,
            start_date=start_date,
            end_date=end_date,
        )

        sessions = 0
        present = absent = 0
        for document in documents:
            rows = document.students or []
            if user.role == UserRoleEnum.STUDENT:
                rows = [row for row in rows if row.get("studentId") == user.display_id]
                if not rows:
                    continue
            sessions += 1
            for row in rows:
                status = str(row.get("status", "")).lower()
                if status == AttendanceStatus.PRESENT.value:
                    present += 1
                elif status == AttendanceStatus.ABSENT.value:
                    absent += 1

        if not sessions:
            return AttendanceStats()

        total = present + absent
        average = round(present / total * 100, 1) if total else 0.0
        return AttendanceStats(
            total_sessions=sessions,
            total_present=present,
            total_absent=absent,
            total_records=total,
            average_attendance=average,
            attendance_rate=f"{average:g}%",
        )


def _document_summary(document: SessionAttendance) -> Dict[str, Any]:
    return {
        "documentId": document.id,
        "markedAt": document.marked_at.isoformat() if document.marked_at else None,
        "markedBy": document.marked_by,
        "totalStudents": document.total_students,
        "progress": document.progress,
    }
