# servicedesk/db/migrations/env.py
from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# імпорт моделей реєструє таблиці в Base.metadata
from servicedesk.db import models  # noqa: E402,F401
from servicedesk.db.base import Base  # noqa: E402
from servicedesk.core.config import settings  # noqa: E402

target_metadata = Base.metadata

# async-драйвер застосунку → sync-драйвер для alembic
SYNC_DRIVERS = {
    "postgresql+asyncpg://": "postgresql+psycopg2://",
    "sqlite+aiosqlite://": "sqlite://",
}


def to_sync_url(async_url: str) -> str:
    for prefix, replacement in SYNC_DRIVERS.items():
        if async_url.startswith(prefix):
            return replacement + async_url[len(prefix):]
    return async_url


SYNC_URL = to_sync_url(settings.database_url)


def run_migrations_offline() -> None:
    """Генеруємо SQL без підключення."""
    context.configure(
        url=SYNC_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(SYNC_URL, poolclass=pool.NullPool, future=True)
    with connectable.connect() as connection:
        do_run_migrations(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
