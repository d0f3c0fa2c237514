import asyncio

import pytest
from sqlalchemy import func, select

from schoolerp.models import LegacyResultRow, Result
from schoolerp.scripts import migrate_results
from schoolerp.services.result_service import ResultMigrationService
from tests.conftest import SCHOOL_CODE

pytestmark = pytest.mark.anyio


def legacy_row(student_id, subject, test_type="Midterm", academic_year="2023-24", **extra):
    values = dict(
        school_code=SCHOOL_CODE,
        student_id=student_id,
        student_name=f"Student {student_id}",
        class_name="9",
        section="A",
        academic_year=academic_year,
        test_type=test_type,
        subject=subject,
        max_marks=100,
        obtained_marks=80,
    )
    values.update(extra)
    return LegacyResultRow(**values)


async def seed(tenant, *rows):
    async with tenant.session() as session:
        session.add_all(rows)


async def migrate(tenant, settings):
    async with tenant.session() as session:
        service = ResultMigrationService(
            tenant, tenant.repositories(session), settings.DEFAULT_ACADEMIC_YEAR
        )
        return await service.migrate()


async def counts(tenant):
    async with tenant.session() as session:
        results = (await session.execute(select(func.count()).select_from(Result))).scalar_one()
        legacy = (await session.execute(select(func.count()).select_from(LegacyResultRow))).scalar_one()
    return results, legacy


async def test_rows_are_grouped_into_nested_results(tenant, settings):
    await seed(
        tenant,
        legacy_row("S1", "Maths"),
        legacy_row("S1", "Science"),
        legacy_row("S1", None),
        legacy_row("S2", "Maths"),
        legacy_row("S2", "Maths", academic_year=None),
    )

    report = await migrate(tenant, settings)

    assert report.migrated_students == 3
    assert report.total_subjects == 5
    assert report.swept_rows == 5
    assert report.errors == 0
    assert await counts(tenant) == (3, 0)

    async with tenant.session() as session:
        rows = (await session.execute(select(Result).order_by(Result.id))).scalars().all()

    s1 = rows[0]
    assert s1.student_id == "S1"
    assert s1.academic_year == "2023-24"
    assert [entry["subjectName"] for entry in s1.subjects] == ["Maths", "Science", "Unknown"]
    assert len(s1.migrated_from) == 3
    assert s1.migrated_at is not None
    assert rows[2].academic_year == settings.DEFAULT_ACADEMIC_YEAR


async def test_second_run_is_a_no_op(tenant, settings):
    await seed(tenant, legacy_row("S1", "Maths"), legacy_row("S1", "Science"))
    await migrate(tenant, settings)

    report = await migrate(tenant, settings)

    assert report.migrated_students == 0
    assert report.swept_rows == 0
    assert await counts(tenant) == (1, 0)


async def test_interrupted_run_is_finished_by_the_sweep(tenant, settings):
    await seed(tenant, legacy_row("S1", "Maths"), legacy_row("S1", "Science"))

    # Write phase completed, sweep never ran
    async with tenant.session() as session:
        repos = tenant.repositories(session)
        row_ids = [row.id for row in await repos.legacy_results.unmigrated()]
        result = Result(
            school_code=SCHOOL_CODE, student_id="S1", class_name="9", section="A",
            academic_year="2023-24", subjects=[], migrated_from=row_ids,
        )
        await repos.results.add(result)
        await repos.legacy_results.set_backlink(row_ids, result.id)

    report = await migrate(tenant, settings)

    assert report.migrated_students == 0
    assert report.swept_rows == 2
    assert await counts(tenant) == (1, 0)


async def test_backlink_to_missing_result_is_cleared(tenant, settings):
    await seed(tenant, legacy_row("S1", "Maths", migrated_to=999))

    report = await migrate(tenant, settings)
    assert report.swept_rows == 0
    assert await counts(tenant) == (0, 1)

    report = await migrate(tenant, settings)
    assert report.migrated_students == 1
    assert await counts(tenant) == (1, 0)


async def test_student_results_endpoint(client, tenant, settings, token_for):
    await seed(tenant, legacy_row("NPS-S-0001", "Maths"), legacy_row("NPS-S-0002", "Maths"))
    await migrate(tenant, settings)

    own = token_for("student", sub="s1", user_id="NPS-S-0001")
    response = await client.get("/api/results/student/NPS-S-0001", headers=own)
    assert response.status_code == 200
    results = response.json()["data"]["results"]
    assert len(results) == 1
    assert results[0]["subjects"][0]["subjectName"] == "Maths"
    assert results[0]["subjects"][0]["obtainedMarks"] == 80

    response = await client.get("/api/results/student/NPS-S-0002", headers=own)
    assert response.status_code == 403

    response = await client.get("/api/results/student/NPS-S-0002", headers=token_for("teacher"))
    assert response.status_code == 200


def test_cli_requires_school_code():
    assert migrate_results.main([]) == 1


def test_cli_help_exits_cleanly(capsys):
    assert migrate_results.main(["--help"]) == 0
    assert "school_code" in capsys.readouterr().out


def test_cli_fails_for_unknown_school(settings, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", settings.DATABASE_URL)
    monkeypatch.setenv("TENANT_DATABASE_URL_TEMPLATE", settings.TENANT_DATABASE_URL_TEMPLATE)
    monkeypatch.setenv("SECRET_KEY", settings.SECRET_KEY)

    from schoolerp.core.database import DirectoryDatabase

    async def init_directory():
        directory = DirectoryDatabase(settings.DATABASE_URL)
        await directory.init()
        await directory.close()

    asyncio.run(init_directory())
    assert migrate_results.main(["GHOST"]) == 1
