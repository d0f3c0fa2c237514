from logging.config import fileConfig
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy import pool
from alembic import context
from typing import Optional, Any, Dict

from schoolerp.core.config import get_settings
from schoolerp.core.tenancy import database_name_for, normalize_code
from schoolerp.models import DirectoryBase, TenantBase

# This is the Alembic Config object
config = context.config

# Interpret the config file for Python logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# alembic -x target=tenant -x school=NPS upgrade head
x_args = context.get_x_argument(as_dictionary=True)
migration_target = x_args.get("target", "directory")

target_metadata = TenantBase.metadata if migration_target == "tenant" else DirectoryBase.metadata


def get_config_section(section: str, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Retrieve configuration section with a default fallback.
    """
    section_values = config.get_section(section)
    if section_values is None:
        return default or {}
    return dict(section_values)


def get_url() -> str:
    """Directory URL, or the school's database URL for tenant migrations"""
    url = config.get_main_option("sqlalchemy.url")
    if url:
        return url

    settings = get_settings()
    if migration_target == "tenant":
        school_code = x_args.get("school")
        if not school_code:
            raise RuntimeError("Tenant migrations need -x school=<CODE>")
        return settings.tenant_database_url(database_name_for(normalize_code(school_code)))
    return settings.DATABASE_URL


def run_migrations_offline() -> None:
    """
    Run migrations in 'offline' mode.
    """
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Any) -> None:
    """
    Helper function to run migrations in the correct context
    """
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """
    Run migrations in 'online' mode.
    """
    engine = create_async_engine(get_url(), poolclass=pool.NullPool)

    async with engine.begin() as connection:
        await connection.run_sync(do_run_migrations)

    await engine.dispose()


# Entry point for migrations
if context.is_offline_mode():
    run_migrations_offline()
else:
    import asyncio
    asyncio.run(run_migrations_online())
