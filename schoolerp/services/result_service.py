# schoolerp/services/result_service.py
"""
Nested result sheets written by teachers, and the one-off move from the
flat legacy layout.

Migration runs in two phases. The write phase inserts one nested ``Result``
per student group and, in the same transaction, stamps the consumed legacy
rows with ``migrated_to``. The sweep phase then deletes stamped rows whose
target exists. A run interrupted between the phases is finished by the next
run's sweep without inserting the group again.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from schoolerp.core.errors import PermissionDenied, RecordNotFoundError
from schoolerp.core.logging import log_function_call, logger
from schoolerp.models import LegacyResultRow, Result
from schoolerp.models.base import utcnow
from schoolerp.schemas.academics import (
    ResultFreezeRequest,
    ResultOut,
    ResultSaveRequest,
    ResultUpdateRequest,
)
from schoolerp.schemas.auth import CurrentUser
from schoolerp.services.base_service import BaseService

GroupKey = Tuple[str, str, Optional[str], str]


@dataclass
class MigrationReport:
    migrated_students: int = 0
    total_subjects: int = 0
    swept_rows: int = 0
    errors: int = 0
    messages: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.errors == 0


class ResultService(BaseService):
    """
    Nested result sheets written by teachers.

    Each student has one sheet per class, section and academic year; its
    ``subjects`` list holds one entry per subject and test type. A frozen
    entry can no longer be changed by save or update.
    """

    def __init__(self, tenant, repos, default_academic_year: str):
        super().__init__(tenant, repos)
        self.default_academic_year = default_academic_year

    async def get_student_results(
        self, student_id: str, academic_year: Optional[str] = None
    ) -> List[ResultOut]:
        results = await self.repos.results.list_for_student(student_id, academic_year)
        return [ResultOut.model_validate(result) for result in results]

    async def save_results(self, user: CurrentUser, request: ResultSaveRequest) -> Dict[str, Any]:
        """
        Write one subject/test score for every listed student.

        Students whose entry is frozen are reported in ``errors`` and skipped;
        the rest are saved in one transaction.
        """
        self._check_school(request.school_code)
        academic_year = request.academic_year or self.default_academic_year
        now = utcnow().isoformat()

        saved: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []
        for marks in request.results:
            total_marks = marks.total_marks or request.max_marks
            entry = {
                "subjectName": request.subject,
                "testType": request.test_type,
                "maxMarks": request.max_marks,
                "obtainedMarks": marks.obtained_marks,
                "totalMarks": total_marks,
                "grade": simple_grade(marks.obtained_marks, total_marks),
                "percentage": _percentage(marks.obtained_marks, total_marks),
                "updatedAt": now,
            }

            sheet = await self.repos.results.find_sheet(
                marks.student_id, request.class_name, request.section, academic_year
            )
            if sheet is None:
                sheet = Result(
                    school_code=self.tenant.school_code,
                    student_id=marks.student_id,
                    student_name=marks.student_name,
                    user_id=marks.user_id,
                    class_name=request.class_name,
                    section=request.section,
                    academic_year=academic_year,
                    subjects=[{**entry, "createdAt": now}],
                    created_by=user.display_id,
                )
                await self.repos.results.add(sheet)
                action = "created"
            else:
                subjects = [dict(item) for item in sheet.subjects or []]
                index = _find_entry(subjects, request.subject, request.test_type)
                if index is not None and subjects[index].get("frozen"):
                    errors.append({
                        "studentId": marks.student_id,
                        "studentName": marks.student_name,
                        "error": "Results are frozen and cannot be modified",
                    })
                    continue
                if index is None:
                    subjects.append({**entry, "createdAt": now})
                else:
                    subjects[index] = {**subjects[index], **entry}
                sheet.subjects = subjects
                action = "updated"

            saved.append({
                "studentId": marks.student_id,
                "studentName": marks.student_name,
                "userId": marks.user_id,
                "action": action,
            })

        await self.db.commit()

        if errors:
            logger.warning(f"{len(errors)} results not saved for {request.class_name}-{request.section}")
        logger.info(
            f"Saved {len(saved)} {request.subject} ({request.test_type}) results "
            f"for {request.class_name}-{request.section} in {self.tenant.school_code}"
        )

        message = f"Successfully saved {len(saved)} results"
        if errors:
            message += f" with {len(errors)} errors"
        data: Dict[str, Any] = {
            "schoolCode": self.tenant.school_code,
            "className": request.class_name,
            "section": request.section,
            "testType": request.test_type,
            "subject": request.subject,
            "savedCount": len(saved),
            "results": saved,
        }
        if errors:
            data["errors"] = errors
        return {"message": message, "data": data}

    async def update_result(
        self, user: CurrentUser, result_id: int, request: ResultUpdateRequest
    ) -> Dict[str, Any]:
        """
        Change one subject/test entry of a stored sheet, adding it when absent.

        Raises:
            RecordNotFoundError: no sheet with that id
            PermissionDenied: the entry is frozen
        """
        sheet = await self.repos.results.get(result_id)
        if sheet is None:
            raise RecordNotFoundError("Result not found")

        subjects = [dict(item) for item in sheet.subjects or []]
        index = _find_entry(subjects, request.subject, request.test_type)
        current = subjects[index] if index is not None else {}
        if current.get("frozen"):
            raise PermissionDenied(
                "Cannot update frozen results. Results have been locked and cannot be modified."
            )

        max_marks = request.max_marks or current.get("maxMarks")
        total_marks = request.total_marks or max_marks or current.get("totalMarks") or 100
        now = utcnow().isoformat()
        entry = {
            **current,
            "subjectName": request.subject,
            "testType": request.test_type,
            "maxMarks": max_marks,
            "obtainedMarks": request.obtained_marks,
            "totalMarks": total_marks,
            "grade": request.grade or simple_grade(request.obtained_marks, total_marks),
            "percentage": _percentage(request.obtained_marks, total_marks),
            "updatedAt": now,
        }
        if index is None:
            subjects.append({**entry, "createdAt": now})
        else:
            subjects[index] = entry
        sheet.subjects = subjects
        await self.db.commit()

        logger.info(
            f"Updated result {result_id} for {request.subject} ({request.test_type}) by {user.display_id}"
        )
        return {
            "resultId": result_id,
            "subject": request.subject,
            "testType": request.test_type,
            "obtainedMarks": request.obtained_marks,
        }

    async def freeze_results(self, user: CurrentUser, request: ResultFreezeRequest) -> Dict[str, Any]:
        """Lock one subject/test entry on every sheet of a class section"""
        self._check_school(request.school_code)
        academic_year = request.academic_year or self.default_academic_year
        now = utcnow().isoformat()

        frozen = 0
        sheets = await self.repos.results.list_for_class(request.class_name, request.section, academic_year)
        for sheet in sheets:
            subjects = [dict(item) for item in sheet.subjects or []]
            index = _find_entry(subjects, request.subject, request.test_type)
            if index is None or subjects[index].get("frozen"):
                continue
            subjects[index].update({"frozen": True, "frozenAt": now, "frozenBy": user.display_id})
            sheet.subjects = subjects
            frozen += 1

        await self.db.commit()
        logger.info(
            f"Froze {frozen} {request.subject} ({request.test_type}) results "
            f"for {request.class_name}-{request.section}"
        )
        return {
            "message": f"Successfully frozen {frozen} results",
            "data": {
                "schoolCode": self.tenant.school_code,
                "className": request.class_name,
                "section": request.section,
                "subject": request.subject,
                "testType": request.test_type,
                "frozenCount": frozen,
            },
        }

    def _check_school(self, school_code: Optional[str]) -> None:
        if school_code and school_code.strip().upper() != self.tenant.school_code:
            raise PermissionDenied("Cannot write results for another school")


class ResultMigrationService(BaseService):

    def __init__(self, tenant, repos, default_academic_year: str):
        super().__init__(tenant, repos)
        self.default_academic_year = default_academic_year

    @log_function_call(logger)
    async def migrate(self) -> MigrationReport:
        report = MigrationReport()
        await self._write_phase(report)
        await self._sweep_phase(report)

        logger.info(
            f"Result migration for {self.tenant.school_code}: "
            f"{report.migrated_students} students, {report.total_subjects} subjects, "
            f"{report.swept_rows} legacy rows removed, {report.errors} errors"
        )
        return report

    def _group(self, rows: List[LegacyResultRow]) -> "OrderedDict[GroupKey, List[LegacyResultRow]]":
        groups: "OrderedDict[GroupKey, List[LegacyResultRow]]" = OrderedDict()
        for row in rows:
            key = (
                row.student_id,
                row.class_name,
                row.section,
                row.academic_year or self.default_academic_year,
            )
            groups.setdefault(key, []).append(row)
        return groups

    async def _write_phase(self, report: MigrationReport) -> None:
        rows = await self.repos.legacy_results.unmigrated()
        if not rows:
            logger.info(f"No legacy results left to migrate in {self.tenant.school_code}")
            return

        groups = self._group(rows)
        logger.info(f"Migrating {len(rows)} legacy rows in {len(groups)} groups")

        # Plain values only: a rollback expires every loaded row
        plan = [
            (key, [row.id for row in group], _result_fields(group))
            for key, group in groups.items()
        ]

        for (student_id, class_name, section, academic_year), row_ids, fields in plan:
            try:
                result = Result(
                    student_id=student_id,
                    class_name=class_name,
                    section=section,
                    academic_year=academic_year,
                    **fields,
                    migrated_from=row_ids,
                    migrated_at=utcnow(),
                    migration_note="Migrated from flat legacy results",
                )
                await self.repos.results.add(result)
                await self.repos.legacy_results.set_backlink(row_ids, result.id)
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                report.errors += 1
                report.messages.append(f"{student_id}: {e}")
                logger.error(f"Failed to migrate results for student {student_id}: {e}")
                continue

            report.migrated_students += 1
            report.total_subjects += len(fields["subjects"])

    async def _sweep_phase(self, report: MigrationReport) -> None:
        rows = await self.repos.legacy_results.backlinked()
        if not rows:
            return

        existing = await self.repos.results.existing_ids(row.migrated_to for row in rows)
        done = [row.id for row in rows if row.migrated_to in existing]
        orphaned = [row.id for row in rows if row.migrated_to not in existing]

        try:
            report.swept_rows += await self.repos.legacy_results.delete_many(done)
            if orphaned:
                # Target vanished; clear the link so the next run re-migrates them
                await self.repos.legacy_results.set_backlink(orphaned, None)
                logger.warning(f"Cleared {len(orphaned)} legacy rows pointing to missing results")
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            report.errors += 1
            report.messages.append(f"sweep: {e}")
            logger.error(f"Failed to remove migrated legacy rows: {e}")


def _subject_entry(row: LegacyResultRow) -> Dict:
    return {
        "subjectName": row.subject or "Unknown",
        "testType": row.test_type,
        "maxMarks": row.max_marks,
        "obtainedMarks": row.obtained_marks,
        "totalMarks": row.total_marks,
        "grade": row.grade,
        "percentage": row.percentage,
    }


def _result_fields(group: List[LegacyResultRow]) -> Dict:
    first = group[0]
    return {
        "school_code": first.school_code,
        "student_name": first.student_name,
        "user_id": first.user_id,
        "created_by": first.created_by,
        "subjects": [_subject_entry(row) for row in group],
    }


# Lower percentage bound of each grade, highest first
GRADE_BANDS = (
    (91, "A1"),
    (81, "A2"),
    (71, "B1"),
    (61, "B2"),
    (51, "C1"),
    (41, "C2"),
    (33, "D"),
    (21, "E1"),
)


def simple_grade(obtained: Optional[float], total: Optional[float]) -> Optional[str]:
    if obtained is None or not total:
        return None
    percentage = obtained / total * 100
    for lower, grade in GRADE_BANDS:
        if percentage >= lower:
            return grade
    return "E2"


def _percentage(obtained: Optional[float], total: Optional[float]) -> Optional[float]:
    if obtained is None or not total:
        return None
    return round(obtained / total * 100, 2)


def _find_entry(subjects: List[Dict], subject: str, test_type: str) -> Optional[int]:
    for index, entry in enumerate(subjects):
        if entry.get("subjectName") == subject and entry.get("testType") == test_type:
            return index
    return None
