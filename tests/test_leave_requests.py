from datetime import date

import pytest

from schoolerp.core.errors import InvalidStateError
from schoolerp.models import SchoolUser, inclusive_day_count
from schoolerp.repositories import TenantRepositories
from schoolerp.schemas.leave import LeaveRequestCreate
from schoolerp.services.leave_service import LeaveRequestService
from tests.conftest import add_users, current_user

pytestmark = pytest.mark.anyio

LEAVE_BODY = {
    "teacherName": "Asha Rao",
    "teacherId": "NPS-T-0001",
    "subjectLine": "Family function",
    "startDate": "2024-03-10",
    "endDate": "2024-03-12",
    "description": "Attending a wedding out of town",
}


def test_inclusive_day_count():
    assert inclusive_day_count(date(2024, 3, 10), date(2024, 3, 10)) == 1
    assert inclusive_day_count(date(2024, 3, 10), date(2024, 3, 12)) == 3
    assert inclusive_day_count(date(2024, 2, 28), date(2024, 3, 1)) == 3
    assert inclusive_day_count(date(2024, 3, 12), date(2024, 3, 10)) == 3


async def submit(client, headers, **overrides):
    body = {**LEAVE_BODY, **overrides}
    return await client.post("/api/leave/teacher/create", json=body, headers=headers)


async def test_teacher_creates_pending_request(client, tenant, token_for):
    response = await submit(client, token_for("teacher", sub="t1", user_id="NPS-T-0001"))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    leave_request = body["data"]["leaveRequest"]
    assert leave_request["numberOfDays"] == 3
    assert leave_request["status"] == "pending"
    assert leave_request["subjectLine"] == "Family function"


async def test_missing_field_is_rejected(client, tenant, token_for):
    response = await submit(client, token_for("teacher"), description="")
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "All fields are required"}


async def test_end_before_start_is_rejected(client, tenant, token_for):
    response = await submit(client, token_for("teacher"), startDate="2024-03-12", endDate="2024-03-10")
    assert response.status_code == 400
    assert response.json()["message"] == "End date must be after or equal to start date"

    async with tenant.session() as session:
        assert await TenantRepositories.for_session(session).leave_requests.count() == 0


async def test_other_school_code_in_body_is_refused(client, tenant, token_for):
    response = await submit(client, token_for("teacher"), schoolCode="OTHER")
    assert response.status_code == 403


async def test_requests_require_a_token(client, tenant):
    response = await client.get("/api/leave/teacher/my-requests")
    assert response.status_code == 401
    assert response.json()["message"] == "Authorization token is missing"


async def test_students_cannot_reach_leave_routes(client, tenant, token_for):
    response = await client.get("/api/leave/teacher/my-requests", headers=token_for("student"))
    assert response.status_code == 403


async def test_teachers_cannot_review(client, tenant, token_for):
    teacher = token_for("teacher", sub="t1")
    created = (await submit(client, teacher)).json()["data"]["leaveRequest"]

    response = await client.put(
        f"/api/leave/admin/{created['id']}/status", json={"status": "approved"}, headers=teacher
    )
    assert response.status_code == 403


async def test_review_happens_once(client, tenant, token_for):
    teacher = token_for("teacher", sub="t1")
    admin = token_for("admin", sub="a1", user_id="NPS-A-0001", name="Principal")
    created = (await submit(client, teacher)).json()["data"]["leaveRequest"]

    approved = await client.put(
        f"/api/leave/admin/{created['id']}/status",
        json={"status": "approved", "adminComments": "Enjoy"},
        headers=admin,
    )
    assert approved.status_code == 200
    leave_request = approved.json()["data"]["leaveRequest"]
    assert leave_request["status"] == "approved"
    assert leave_request["reviewedBy"] == "NPS-A-0001"
    assert leave_request["reviewedByName"] == "Principal"
    assert leave_request["adminComments"] == "Enjoy"
    assert leave_request["reviewedAt"] is not None

    again = await client.put(
        f"/api/leave/admin/{created['id']}/status", json={"status": "rejected"}, headers=admin
    )
    assert again.status_code == 400
    assert again.json()["message"] == "Leave request has already been approved"


async def test_invalid_review_status(client, tenant, token_for):
    created = (await submit(client, token_for("teacher"))).json()["data"]["leaveRequest"]
    response = await client.put(
        f"/api/leave/admin/{created['id']}/status", json={"status": "pending"}, headers=token_for("admin")
    )
    assert response.status_code == 400


async def test_review_of_missing_request(client, tenant, token_for):
    response = await client.put(
        "/api/leave/admin/999/status", json={"status": "approved"}, headers=token_for("admin")
    )
    assert response.status_code == 404


async def test_stale_reviewer_loses_the_race(tenant):
    teacher = current_user("teacher", sub="t1", user_id="NPS-T-0001")
    first_admin = current_user("admin", sub="a1", user_id="NPS-A-0001")
    second_admin = current_user("admin", sub="a2", user_id="NPS-A-0002")

    async with tenant.session() as session:
        service = LeaveRequestService(tenant, TenantRepositories.for_session(session))
        created = await service.create_leave_request(teacher, LeaveRequestCreate(**LEAVE_BODY))

    async with tenant.session() as slow_session, tenant.session() as fast_session:
        slow_repos = TenantRepositories.for_session(slow_session)
        # The slow reviewer has already loaded the request while it was pending
        assert (await slow_repos.leave_requests.get(created.id)).status == "pending"

        fast = LeaveRequestService(tenant, TenantRepositories.for_session(fast_session))
        await fast.update_status(created.id, "approved", first_admin)

        slow = LeaveRequestService(tenant, slow_repos)
        with pytest.raises(InvalidStateError) as exc_info:
            await slow.update_status(created.id, "rejected", second_admin)
        assert exc_info.value.message == "Leave request has already been approved"

    async with tenant.session() as session:
        stored = await TenantRepositories.for_session(session).leave_requests.get(created.id)
        assert stored.status == "approved"
        assert stored.reviewed_by == "NPS-A-0001"


async def test_delete_rules(client, tenant, token_for):
    owner = token_for("teacher", sub="t1")
    other = token_for("teacher", sub="t2")
    admin = token_for("admin", sub="a1")

    pending = (await submit(client, owner)).json()["data"]["leaveRequest"]
    approved = (await submit(client, owner)).json()["data"]["leaveRequest"]
    await client.put(f"/api/leave/admin/{approved['id']}/status", json={"status": "approved"}, headers=admin)

    response = await client.delete(f"/api/leave/teacher/{pending['id']}", headers=other)
    assert response.status_code == 403
    assert response.json()["message"] == "Unauthorized to delete this leave request"

    response = await client.delete(f"/api/leave/teacher/{approved['id']}", headers=other)
    assert response.status_code == 403
    assert response.json()["message"] == "Unauthorized to delete this leave request"

    response = await client.delete(f"/api/leave/teacher/{approved['id']}", headers=owner)
    assert response.status_code == 400
    assert response.json()["message"] == "Can only delete pending leave requests"

    response = await client.delete(f"/api/leave/teacher/{pending['id']}", headers=owner)
    assert response.status_code == 200

    response = await client.delete(f"/api/leave/teacher/{pending['id']}", headers=owner)
    assert response.status_code == 404


async def test_teacher_sees_only_own_requests(client, tenant, token_for):
    first = token_for("teacher", sub="t1")
    second = token_for("teacher", sub="t2")
    mine = (await submit(client, first, subjectLine="First")).json()["data"]["leaveRequest"]
    await submit(client, first, subjectLine="Second")
    await submit(client, second, subjectLine="Not mine")

    response = await client.get("/api/leave/teacher/my-requests", headers=first)
    data = response.json()["data"]
    assert data["count"] == 2
    assert [item["subjectLine"] for item in data["leaveRequests"]] == ["Second", "First"]

    response = await client.get(f"/api/leave/{mine['id']}", headers=second)
    assert response.status_code == 403

    response = await client.get(f"/api/leave/{mine['id']}", headers=token_for("admin"))
    assert response.status_code == 200


async def test_admin_listing_filters_and_expands(client, tenant, token_for):
    await add_users(
        tenant,
        SchoolUser(user_id="NPS-T-0001", name="Asha Rao", email="asha@nps.test", role="teacher"),
    )
    teacher = token_for("teacher", sub="t1", user_id="NPS-T-0001")
    admin = token_for("admin")
    first = (await submit(client, teacher)).json()["data"]["leaveRequest"]
    await submit(client, teacher)
    await client.put(f"/api/leave/admin/{first['id']}/status", json={"status": "rejected"}, headers=admin)

    everything = (await client.get("/api/leave/admin/all", headers=admin)).json()["data"]
    assert everything["count"] == 2
    assert everything["leaveRequests"][0]["teacher"]["name"] == "Asha Rao"

    rejected = (await client.get("/api/leave/admin/all?status=rejected", headers=admin)).json()["data"]
    assert rejected["count"] == 1

    # Unknown status values do not filter
    unknown = (await client.get("/api/leave/admin/all?status=bogus", headers=admin)).json()["data"]
    assert unknown["count"] == 2

    pending = (await client.get("/api/leave/admin/pending", headers=admin)).json()["data"]
    assert pending["count"] == 1


async def test_request_is_filed_under_the_callers_identity(client, tenant, token_for):
    await add_users(
        tenant,
        SchoolUser(user_id="NPS-T-0001", name="Asha Rao", role="teacher"),
        SchoolUser(user_id="NPS-T-0002", name="Victim Teacher", role="teacher"),
    )
    teacher = token_for("teacher", sub="t1", user_id="NPS-T-0001")

    response = await submit(client, teacher, teacherId="NPS-T-0002", teacherName="Victim Teacher")
    assert response.status_code == 201

    listed = (await client.get("/api/leave/admin/all", headers=token_for("admin"))).json()["data"]
    leave_request = listed["leaveRequests"][0]
    assert leave_request["teacherUserId"] == "NPS-T-0001"
    assert leave_request["teacher"]["userId"] == "NPS-T-0001"
    assert leave_request["teacher"]["name"] == "Asha Rao"


async def test_stats_total_is_sum_of_statuses(client, tenant, token_for):
    teacher = token_for("teacher", sub="t1")
    admin = token_for("admin")

    empty = (await client.get("/api/leave/admin/stats", headers=admin)).json()["data"]
    assert empty == {"total": 0, "pending": 0, "approved": 0, "rejected": 0}

    ids = [(await submit(client, teacher)).json()["data"]["leaveRequest"]["id"] for _ in range(4)]
    await client.put(f"/api/leave/admin/{ids[0]}/status", json={"status": "approved"}, headers=admin)
    await client.put(f"/api/leave/admin/{ids[1]}/status", json={"status": "rejected"}, headers=admin)

    stats = (await client.get("/api/leave/admin/stats", headers=admin)).json()["data"]
    assert stats == {"total": 4, "pending": 2, "approved": 1, "rejected": 1}
    assert stats["total"] == stats["pending"] + stats["approved"] + stats["rejected"]
