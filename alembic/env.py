# alembic/env.py
from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.config import settings
from app.core.db import Base
from app.models import Principal  # noqa: F401  (registra la tabla en Base.metadata)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
DB_URL = settings.async_database_url


def _configure(**kwargs) -> None:
    # sqlite no soporta ALTER completo: batch mode para que las migraciones corran igual
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=DB_URL.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    # modo offline genera SQL: sacamos el driver async de la URL
    sync_url = DB_URL.replace("+aiomysql", "+pymysql").replace("+aiosqlite", "")
    _configure(url=sync_url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(DB_URL, poolclass=pool.NullPool)
    async with engine.connect() as connection:
        await connection.run_sync(_migrate)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
