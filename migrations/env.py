"""Alembic environment for the rwa_engine audit schema.

DATABASE_URL is shared with the service, which runs on asyncpg; migrations
run synchronously through psycopg2, so the driver suffix is stripped.
Alembic's own version table lives in the rwa_engine schema as well.
"""
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool, text

from rwa_engine.models.audit import SCHEMA, Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _sync_url(url: str) -> str:
    for driver in ("postgresql+asyncpg://", "postgresql+psycopg2://"):
        if url.startswith(driver):
            return "postgresql://" + url[len(driver):]
    return url


if os.environ.get("DATABASE_URL"):
    config.set_main_option("sqlalchemy.url", _sync_url(os.environ["DATABASE_URL"]))

target_metadata = Base.metadata


def _include_name(name, type_, parent_names) -> bool:
    if type_ == "schema":
        return name == SCHEMA
    return True


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        include_schemas=True,
        include_name=_include_name,
        version_table_schema=SCHEMA,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}"))
        connection.commit()
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_schemas=True,
            include_name=_include_name,
            version_table_schema=SCHEMA,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
