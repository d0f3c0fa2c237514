# schoolerp/services/leave_service.py
from typing import Dict, Iterable, List, Optional

from schoolerp.core.errors import (
    InvalidStateError,
    PermissionDenied,
    RecordNotFoundError,
    ValidationError,
)
from schoolerp.core.logging import logger
from schoolerp.models import LeaveRequest, LeaveStatus, SchoolUser
from schoolerp.models.base import utcnow
from schoolerp.schemas.auth import CurrentUser
from schoolerp.schemas.leave import (
    LeaveRequestCreate,
    LeaveRequestCreated,
    LeaveRequestOut,
    LeaveStats,
    PersonSummary,
)
from schoolerp.services.base_service import BaseService

REVIEW_STATUSES = (LeaveStatus.APPROVED.value, LeaveStatus.REJECTED.value)
ALL_STATUSES = tuple(status.value for status in LeaveStatus)


class LeaveRequestService(BaseService):

    async def create_leave_request(
        self, user: CurrentUser, data: LeaveRequestCreate
    ) -> LeaveRequestCreated:
        """
        Submit a leave request for the calling teacher.

        Raises:
            ValidationError: a field is missing or the range is inverted
            PermissionDenied: body names a school other than the caller's
        """
        required = (
            data.teacher_name,
            data.teacher_id,
            data.subject_line,
            data.start_date,
            data.end_date,
            data.description,
        )
        if any(value is None or (isinstance(value, str) and not value.strip()) for value in required):
            raise ValidationError("All fields are required")

        if data.end_date < data.start_date:
            raise ValidationError("End date must be after or equal to start date")

        school_code = (data.school_code or self.tenant.school_code).strip().upper()
        if school_code != self.tenant.school_code:
            raise PermissionDenied("Cannot submit leave requests for another school")

        leave_request = LeaveRequest(
            teacher_id=user.id,
            teacher_user_id=user.display_id,
            teacher_name=data.teacher_name.strip(),
            teacher_email=user.email,
            school_id=self.tenant.school_id,
            school_code=school_code,
            subject_line=data.subject_line.strip(),
            description=data.description.strip(),
            start_date=data.start_date,
            end_date=data.end_date,
            status=LeaveStatus.PENDING.value,
        )
        await self.repos.leave_requests.add(leave_request)
        await self.db.commit()

        logger.info(
            f"Leave request {leave_request.id} created by {leave_request.teacher_user_id} "
            f"for {leave_request.number_of_days} day(s) in {school_code}"
        )
        return LeaveRequestCreated.model_validate(leave_request)

    async def list_for_teacher(self, user: CurrentUser) -> List[LeaveRequestOut]:
        records = await self.repos.leave_requests.list_for_teacher(user.id)
        return [LeaveRequestOut.model_validate(record) for record in records]

    async def list_for_school(self, status: Optional[str] = None) -> List[LeaveRequestOut]:
        # Unknown status values are ignored rather than rejected
        if status not in ALL_STATUSES:
            status = None
        records = await self.repos.leave_requests.list(status=status)
        return await self._with_identities(records)

    async def list_pending(self) -> List[LeaveRequestOut]:
        records = await self.repos.leave_requests.list(status=LeaveStatus.PENDING.value)
        return await self._with_identities(records)

    async def get_leave_request(self, leave_request_id: int, user: CurrentUser) -> LeaveRequestOut:
        record = await self._get_or_404(leave_request_id)
        if not user.is_admin and record.teacher_id != user.id:
            raise PermissionDenied("Unauthorized to view this leave request")
        return LeaveRequestOut.model_validate(record)

    async def update_status(
        self,
        leave_request_id: int,
        status: Optional[str],
        reviewer: CurrentUser,
        comments: Optional[str] = None,
    ) -> LeaveRequestOut:
        """
        Approve or reject a pending request.

        The transition is a single conditional UPDATE, so of two concurrent
        reviews exactly one succeeds and the other sees the stored outcome.
        """
        if status not in REVIEW_STATUSES:
            raise ValidationError("Status must be either approved or rejected")

        record = await self._get_or_404(leave_request_id)
        if record.status != LeaveStatus.PENDING.value:
            raise InvalidStateError(f"Leave request has already been {record.status}")

        updated = await self.repos.leave_requests.mark_reviewed(
            leave_request_id,
            status=status,
            reviewer_id=reviewer.display_id,
            reviewer_name=reviewer.display_name,
            reviewed_at=utcnow(),
            comments=comments.strip() if comments else None,
        )
        await self.db.commit()
        await self.repos.leave_requests.refresh(record)

        if not updated:
            raise InvalidStateError(f"Leave request has already been {record.status}")

        logger.info(f"Leave request {leave_request_id} {status} by {reviewer.display_id}")
        return LeaveRequestOut.model_validate(record)

    async def delete_leave_request(self, leave_request_id: int, user: CurrentUser) -> None:
        record = await self._get_or_404(leave_request_id)
        if record.teacher_id != user.id:
            raise PermissionDenied("Unauthorized to delete this leave request")
        if record.status != LeaveStatus.PENDING.value:
            raise InvalidStateError("Can only delete pending leave requests")

        await self.repos.leave_requests.delete(record)
        await self.db.commit()
        logger.info(f"Leave request {leave_request_id} deleted by {user.display_id}")

    async def get_stats(self) -> LeaveStats:
        counts = await self.repos.leave_requests.count_by_status()
        stats = LeaveStats(**{status: counts.get(status, 0) for status in ALL_STATUSES})
        stats.total = stats.pending + stats.approved + stats.rejected
        return stats

    async def _get_or_404(self, leave_request_id: int) -> LeaveRequest:
        record = await self.repos.leave_requests.get(leave_request_id)
        if record is None:
            raise RecordNotFoundError("Leave request not found")
        return record

    async def _with_identities(self, records: Iterable[LeaveRequest]) -> List[LeaveRequestOut]:
        """Attach teacher and reviewer summaries; falls back to the bare records"""
        records = list(records)
        items = [LeaveRequestOut.model_validate(record) for record in records]
        try:
            ids = {item.teacher_user_id for item in items}
            ids.update(item.reviewed_by for item in items if item.reviewed_by)
            people = await self.repos.users.get_many(ids)
        except Exception as e:
            logger.warning(f"Could not expand leave request identities: {e}")
            return items

        for item in items:
            item.teacher = _summary(people, item.teacher_user_id)
            if item.reviewed_by:
                item.reviewer = _summary(people, item.reviewed_by)
        return items


def _summary(people: Dict[str, SchoolUser], user_id: str) -> Optional[PersonSummary]:
    person = people.get(user_id)
    if person is None:
        return None
    return PersonSummary(user_id=person.user_id, name=person.name, email=person.email)
