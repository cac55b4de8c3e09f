import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from school_api.core.config import settings
from school_api.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """An explicit sqlalchemy.url in alembic.ini wins over DATABASE_URL"""
    return config.get_main_option("sqlalchemy.url") or settings.DATABASE_URL


def _run(**options) -> None:
    # SQLite cannot ALTER most constraints in place
    options.setdefault("render_as_batch", get_url().startswith("sqlite"))
    context.configure(target_metadata=target_metadata, compare_type=True, **options)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting"""
    _run(url=get_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})


def _run_with_connection(connection: Connection) -> None:
    _run(connection=connection, compare_server_default=True)


async def run_migrations_online() -> None:
    engine = create_async_engine(get_url(), poolclass=pool.NullPool)
    try:
        async with engine.begin() as connection:
            await connection.run_sync(_run_with_connection)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
