import pytest

from tests.conftest import SCHOOL_CODE

pytestmark = pytest.mark.anyio

NEW_SCHOOL = {
    "name": "Green Valley School",
    "code": "gvs-01",
    "principalName": "Dr Mehta",
    "principalEmail": "principal@gvs.test",
    "academicSettings": {"sessions": ["morning", "afternoon"]},
}


async def test_superadmin_creates_and_provisions_school(client, registry, token_for):
    superadmin = token_for("superadmin", school_code=None)

    response = await client.post("/api/schools", json=NEW_SCHOOL, headers=superadmin)

    assert response.status_code == 201
    school = response.json()["data"]["school"]
    assert school["code"] == "GVS-01"
    assert school["databaseName"] == "school_gvs_01"
    assert school["isActive"] is True
    assert "GVS-01" in registry.cached_codes()
    assert await registry.database_exists("GVS-01")

    health = (await client.get("/api/health")).json()
    assert health["directory"] == "connected"
    assert "GVS-01" in health["tenants"]


async def test_duplicate_code_is_rejected(client, token_for):
    superadmin = token_for("superadmin", school_code=None)
    await client.post("/api/schools", json=NEW_SCHOOL, headers=superadmin)

    response = await client.post("/api/schools", json={**NEW_SCHOOL, "code": "GVS-01"}, headers=superadmin)
    assert response.status_code == 400
    assert response.json()["message"] == "School with code GVS-01 already exists"


async def test_only_superadmin_creates_schools(client, school, token_for):
    response = await client.post("/api/schools", json=NEW_SCHOOL, headers=token_for("admin"))
    assert response.status_code == 403


async def test_admin_reads_own_school_only(client, school, token_for):
    admin = token_for("admin")

    response = await client.get(f"/api/schools/{SCHOOL_CODE.lower()}", headers=admin)
    assert response.status_code == 200
    assert response.json()["data"]["school"]["name"] == "NPS Public School"

    response = await client.get("/api/schools/OTHER", headers=admin)
    assert response.status_code == 403

    response = await client.get("/api/schools/OTHER", headers=token_for("superadmin", school_code=None))
    assert response.status_code == 404


async def test_settings_update_touches_settings_fields_only(client, school, token_for):
    admin = token_for("admin")
    body = {"principalName": "New Principal", "phone": "080-1234", "name": "Renamed", "code": "XYZ"}

    response = await client.put(f"/api/schools/{SCHOOL_CODE}/settings", json=body, headers=admin)

    assert response.status_code == 200
    updated = response.json()["data"]["school"]
    assert updated["principalName"] == "New Principal"
    assert updated["phone"] == "080-1234"
    assert updated["name"] == "NPS Public School"
    assert updated["code"] == SCHOOL_CODE


async def test_admin_cannot_change_access_matrix(client, school, token_for):
    response = await client.put(
        f"/api/schools/{SCHOOL_CODE}/settings",
        json={"accessMatrix": {"teacher": {"viewLeaves": False}}},
        headers=token_for("admin"),
    )
    assert response.status_code == 403


async def test_access_matrix_change_applies_to_requests(client, tenant, token_for):
    superadmin = token_for("superadmin", school_code=None)
    teacher = token_for("teacher")

    matrix = (await client.get(f"/api/schools/{SCHOOL_CODE}/access-matrix", headers=superadmin)).json()
    assert matrix["data"]["accessMatrix"]["teacher"]["viewLeaves"] == "own"
    assert (await client.get("/api/leave/teacher/my-requests", headers=teacher)).status_code == 200

    revoked = {**matrix["data"]["accessMatrix"]}
    revoked["teacher"] = {**revoked["teacher"], "viewLeaves": False}
    response = await client.put(
        f"/api/schools/{SCHOOL_CODE}/settings", json={"accessMatrix": revoked}, headers=superadmin
    )
    assert response.status_code == 200

    assert (await client.get("/api/leave/teacher/my-requests", headers=teacher)).status_code == 403


async def test_deactivated_school_loses_access(client, tenant, registry, token_for):
    superadmin = token_for("superadmin", school_code=None)
    response = await client.put(
        f"/api/schools/{SCHOOL_CODE}/settings", json={"isActive": False}, headers=superadmin
    )
    assert response.status_code == 200
    assert SCHOOL_CODE not in registry.cached_codes()

    response = await client.get("/api/leave/teacher/my-requests", headers=token_for("teacher"))
    assert response.status_code == 403
