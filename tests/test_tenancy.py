import asyncio

import pytest

from schoolerp.core.errors import (
    PermissionDenied,
    SchoolNotFoundError,
    TenantConnectionError,
    ValidationError,
)
from schoolerp.core.tenancy import TenantRegistry, database_name_for, normalize_code
from tests.conftest import SCHOOL_CODE, create_school

pytestmark = pytest.mark.anyio


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_normalize_code_uppercases_and_strips():
    assert normalize_code(" nps ") == "NPS"
    assert normalize_code("{nps}") == "NPS"


def test_normalize_code_rejects_empty():
    with pytest.raises(ValidationError):
        normalize_code("  ")


def test_database_name_replaces_non_alphanumerics():
    assert database_name_for("NPS") == "school_nps"
    assert database_name_for("NPS-01.A") == "school_nps_01_a"


async def test_same_handle_for_every_spelling_of_a_code(registry, school):
    first = await registry.get("nps")
    assert await registry.get("NPS") is first
    assert await registry.get(" Nps ") is first
    assert registry.cached_codes() == [SCHOOL_CODE]


async def test_concurrent_first_requests_share_one_handle(registry, school):
    handles = await asyncio.gather(*(registry.get(SCHOOL_CODE) for _ in range(10)))
    assert len({id(handle) for handle in handles}) == 1


async def test_unknown_school_is_not_found(registry, school):
    with pytest.raises(SchoolNotFoundError) as exc_info:
        await registry.get("MISSING")
    assert exc_info.value.status_code == 404
    assert registry.cached_codes() == []


async def test_inactive_school_is_refused(registry, directory):
    await create_school(directory, code="OLD", is_active=False)
    with pytest.raises(PermissionDenied):
        await registry.get("OLD")


async def test_first_open_creates_tenant_tables(tenant):
    tables = await tenant.table_names()
    for table in ("leave_requests", "sos_alerts", "session_attendance", "results", "legacy_results"):
        assert table in tables


async def test_handle_is_reused_until_revalidation_is_due(directory, settings, school, monkeypatch):
    clock = FakeClock()
    registry = TenantRegistry(directory, settings, clock=clock)
    handle = await registry.get(SCHOOL_CODE)

    pings = []

    async def counting_ping():
        pings.append(clock.now)
        return True

    monkeypatch.setattr(handle, "ping", counting_ping)

    clock.now += settings.TENANT_REVALIDATE_SECONDS - 1
    assert await registry.get(SCHOOL_CODE) is handle
    assert pings == []

    clock.now += 2
    assert await registry.get(SCHOOL_CODE) is handle
    assert len(pings) == 1
    assert handle.validated_at == clock.now

    await registry.close_all()


async def test_stale_handle_failing_ping_is_rebuilt(directory, settings, school, monkeypatch):
    clock = FakeClock()
    registry = TenantRegistry(directory, settings, clock=clock)
    stale = await registry.get(SCHOOL_CODE)

    async def dead_ping():
        return False

    monkeypatch.setattr(stale, "ping", dead_ping)
    clock.now += settings.TENANT_REVALIDATE_SECONDS + 1

    fresh = await registry.get(SCHOOL_CODE)
    assert fresh is not stale
    assert await fresh.ping()
    assert registry.cached_codes() == [SCHOOL_CODE]

    await registry.close_all()


async def test_unreachable_database_raises_connection_error(directory, settings, school, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    broken = settings.model_copy(update={
        "TENANT_DATABASE_URL_TEMPLATE": f"sqlite+aiosqlite:///{blocker}/{{database_name}}.db",
    })
    registry = TenantRegistry(directory, broken)

    with pytest.raises(TenantConnectionError) as exc_info:
        await registry.get(SCHOOL_CODE)
    assert exc_info.value.status_code == 500
    assert registry.cached_codes() == []


async def test_close_and_database_exists(registry, school):
    assert await registry.close(SCHOOL_CODE) is False
    assert await registry.database_exists(SCHOOL_CODE) is True
    assert await registry.close("nps") is True
    assert registry.cached_codes() == []
    assert await registry.database_exists("MISSING") is False
