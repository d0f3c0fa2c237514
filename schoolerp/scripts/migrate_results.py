"""
Move a school's flat legacy results into nested result sheets.

Usage:
    python -m schoolerp.scripts.migrate_results <SCHOOL_CODE>

Safe to re-run: a finished run leaves nothing to migrate, and a run that
stopped after writing the nested sheets only has its cleanup redone.
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from schoolerp.core.config import Settings, get_logging_config, get_settings
from schoolerp.core.database import DirectoryDatabase
from schoolerp.core.errors import BaseAPIError
from schoolerp.core.logging import configure_logging, logger
from schoolerp.core.tenancy import TenantRegistry
from schoolerp.services.result_service import MigrationReport, ResultMigrationService


async def run_migration(school_code: str, settings: Settings) -> MigrationReport:
    directory = DirectoryDatabase(settings.DATABASE_URL)
    registry = TenantRegistry(directory, settings)
    try:
        tenant = await registry.get(school_code)
        async with tenant.session() as session:
            service = ResultMigrationService(
                tenant, tenant.repositories(session), settings.DEFAULT_ACADEMIC_YEAR
            )
            return await service.migrate()
    finally:
        await registry.close_all()
        await directory.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="migrate_results",
        description="Migrate flat legacy results into nested result sheets for one school",
    )
    parser.add_argument("school_code", help="School code, e.g. NPS")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # --help exits with 0
        return 1 if e.code else 0

    settings = get_settings()
    configure_logging(**get_logging_config(settings))

    try:
        report = asyncio.run(run_migration(args.school_code, settings))
    except BaseAPIError as e:
        logger.error(f"Migration failed for {args.school_code}: {e.message}")
        return 1
    except Exception as e:
        logger.error(f"Migration failed for {args.school_code}: {e}", exc_info=True)
        return 1

    print(f"Migrated students: {report.migrated_students}")
    print(f"Total subjects:    {report.total_subjects}")
    print(f"Legacy rows removed: {report.swept_rows}")
    print(f"Errors: {report.errors}")
    return 0 if report.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
