# alembic/env.py
from logging.config import fileConfig
import asyncio

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine

from healthcare_portal.db.base import Base
import healthcare_portal.db.models  # noqa: F401  registers every table on Base.metadata
from healthcare_portal.config.settings import settings

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# The app runs on an async driver; offline SQL generation only needs the dialect.
ASYNC_URL = make_url(str(settings.database_url))
SYNC_URL = ASYNC_URL.set(drivername=ASYNC_URL.get_backend_name())
config.set_main_option("sqlalchemy.url", SYNC_URL.render_as_string(hide_password=False))

target_metadata = Base.metadata

# SQLite cannot ALTER most constraints in place
RENDER_AS_BATCH = ASYNC_URL.get_backend_name() == "sqlite"


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout for review instead of running it."""
    context.configure(
        url=SYNC_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=RENDER_AS_BATCH,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=RENDER_AS_BATCH,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(ASYNC_URL, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
