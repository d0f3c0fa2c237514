import logging
from datetime import timedelta

import pytest

from schoolerp.core.errors import TokenError
from schoolerp.core.logging import LOGGER_NAME
from schoolerp.core.security import create_access_token, user_from_payload, verify_token
from schoolerp.schemas.auth import CurrentUser, UserRoleEnum

pytestmark = pytest.mark.anyio


async def test_health_reports_directory(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["directory"] == "connected"
    assert body["tenants"] == []


async def test_request_id_is_echoed(client):
    response = await client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"

    response = await client.get("/api/health")
    assert response.headers["X-Request-ID"]


async def test_unknown_route_uses_error_envelope(client):
    response = await client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found"}

    response = await client.post("/api/health")
    assert response.status_code == 405
    assert response.json() == {"success": False, "message": "Method Not Allowed"}


class RecordCollector(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.INFO)
        self.records = []

    def emit(self, record):
        self.records.append(record)


async def test_request_log_carries_school_code(client, school, token_for):
    app_logger = logging.getLogger(LOGGER_NAME)
    collector = RecordCollector()
    previous_level = app_logger.level
    app_logger.setLevel(logging.INFO)
    app_logger.addHandler(collector)
    try:
        response = await client.get("/api/sos/stats", headers=token_for("admin", sub="a1"))
    finally:
        app_logger.removeHandler(collector)
        app_logger.setLevel(previous_level)

    assert response.status_code == 200
    request_logs = [record for record in collector.records if getattr(record, "path", None) == "/api/sos/stats"]
    assert request_logs
    assert request_logs[-1].school_code == "NPS"
    assert request_logs[-1].user_id == "a1"


async def test_unknown_school_in_token_is_not_found(client, school, token_for):
    response = await client.get("/api/leave/teacher/my-requests", headers=token_for("teacher", school_code="NOPE"))
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "School not found"}


async def test_token_without_school_code(client, school, token_for):
    response = await client.get("/api/sos", headers=token_for("admin", school_code=None))
    assert response.status_code == 400
    assert response.json()["message"] == "School code not found"


async def test_garbage_token_is_rejected(client):
    response = await client.get("/api/sos", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_token_cookie_is_accepted(client, school, settings):
    token = create_access_token(settings, CurrentUser(id="a1", role=UserRoleEnum.ADMIN, school_code="NPS"))
    client.cookies.set("access_token", token)
    response = await client.get("/api/sos/stats")
    assert response.status_code == 200


def test_token_round_trip_keeps_identity(settings):
    user = CurrentUser(id="42", role=UserRoleEnum.TEACHER, school_code="NPS", name="Asha", user_id="NPS-T-0001")
    payload = verify_token(settings, create_access_token(settings, user))
    assert payload["iss"] == settings.TOKEN_ISSUER
    assert user_from_payload(payload) == user


def test_expired_and_foreign_tokens_fail(settings):
    user = CurrentUser(id="42", role=UserRoleEnum.TEACHER)
    expired = create_access_token(settings, user, expires_delta=timedelta(seconds=-5))
    with pytest.raises(TokenError):
        verify_token(settings, expired)

    foreign = settings.model_copy(update={"TOKEN_ISSUER": "someone-else"})
    with pytest.raises(TokenError):
        verify_token(settings, create_access_token(foreign, user))
