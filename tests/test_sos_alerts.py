import pytest

from schoolerp.models import SchoolUser
from tests.conftest import add_users

pytestmark = pytest.mark.anyio


@pytest.fixture
async def student_profile(tenant, anyio_backend):
    await add_users(
        tenant,
        SchoolUser(
            user_id="NPS-S-0042",
            name="Ravi Kumar",
            role="student",
            class_name="8",
            section="B",
            roll_number="17",
            mobile="9000000000",
        ),
    )


async def raise_alert(client, token_for, **body):
    headers = token_for("student", sub="s42", user_id="NPS-S-0042")
    return await client.post("/api/sos", json=body or {"location": "Library"}, headers=headers)


async def test_student_alert_takes_profile_snapshot(client, student_profile, token_for):
    response = await raise_alert(client, token_for)

    assert response.status_code == 201
    alert = response.json()["data"]["alert"]
    assert alert["status"] == "active"
    assert alert["studentId"] == "NPS-S-0042"
    assert alert["studentName"] == "Ravi Kumar"
    assert alert["studentClass"] == "8-B"
    assert alert["studentRollNo"] == "17"
    assert alert["location"] == "Library"


async def test_alert_without_profile_uses_token_identity(client, tenant, token_for):
    headers = token_for("student", sub="s7", user_id="NPS-S-0007", name="Meera")
    response = await client.post("/api/sos", json={}, headers=headers)

    alert = response.json()["data"]["alert"]
    assert alert["studentId"] == "NPS-S-0007"
    assert alert["studentName"] == "Meera"
    assert alert["studentRollNo"] == "N/A"
    assert alert["studentMobile"] == "N/A"


async def test_only_students_raise_alerts(client, tenant, token_for):
    response = await client.post("/api/sos", json={}, headers=token_for("teacher"))
    assert response.status_code == 403


async def test_lifecycle_moves_forward_only(client, student_profile, token_for):
    staff = token_for("teacher", sub="t1", user_id="NPS-T-0001")
    alert_id = (await raise_alert(client, token_for)).json()["data"]["alert"]["id"]

    response = await client.put(f"/api/sos/{alert_id}/acknowledge", headers=staff)
    assert response.status_code == 200
    alert = response.json()["data"]["alert"]
    assert alert["status"] == "acknowledged"
    assert alert["acknowledgedBy"] == "NPS-T-0001"

    response = await client.put(f"/api/sos/{alert_id}/acknowledge", headers=staff)
    assert response.status_code == 400

    response = await client.put(f"/api/sos/{alert_id}/resolve", json={"notes": "Safe"}, headers=staff)
    assert response.status_code == 200
    alert = response.json()["data"]["alert"]
    assert alert["status"] == "resolved"
    assert alert["notes"] == "Safe"

    response = await client.put(f"/api/sos/{alert_id}/resolve", headers=staff)
    assert response.status_code == 400
    response = await client.put(f"/api/sos/{alert_id}/acknowledge", headers=staff)
    assert response.status_code == 400


async def test_active_alert_can_be_resolved_directly(client, student_profile, token_for):
    alert_id = (await raise_alert(client, token_for)).json()["data"]["alert"]["id"]
    response = await client.put(f"/api/sos/{alert_id}/resolve", headers=token_for("admin"))
    assert response.json()["data"]["alert"]["status"] == "resolved"


async def test_missing_alert(client, tenant, token_for):
    response = await client.put("/api/sos/404/acknowledge", headers=token_for("admin"))
    assert response.status_code == 404


async def test_listing_and_counts(client, student_profile, token_for):
    admin = token_for("admin")
    ids = [(await raise_alert(client, token_for)).json()["data"]["alert"]["id"] for _ in range(3)]
    await client.put(f"/api/sos/{ids[0]}/acknowledge", headers=admin)
    await client.put(f"/api/sos/{ids[1]}/resolve", headers=admin)

    listed = (await client.get("/api/sos", headers=admin)).json()["data"]
    assert listed["count"] == 3

    active = (await client.get("/api/sos?status=active", headers=admin)).json()["data"]
    assert [alert["id"] for alert in active["alerts"]] == [ids[2]]

    stats = (await client.get("/api/sos/stats", headers=admin)).json()["data"]
    assert stats == {"total": 3, "active": 1, "acknowledged": 1, "resolved": 1}
