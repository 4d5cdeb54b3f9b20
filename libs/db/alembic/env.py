# ruff: noqa: I001
"""
Alembic environment for the `db` library.

The database URL comes from ``DATABASE_URL`` (a workspace ``.env`` is loaded
first) or, failing that, from ``sqlalchemy.url`` in the ini file. Migrations
target the ORM metadata exported by ``db`` so autogenerate sees the invoice
tables.
"""

from __future__ import annotations

import logging
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from dotenv import find_dotenv, load_dotenv

import db as _db_pkg

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = _db_pkg.metadata


def _resolve_database_url() -> str:
    # Works from the repo root and from inside libs/db.
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set. Provide it via environment or set "
            "'sqlalchemy.url' in alembic.ini."
        )
    return url


db_url = _resolve_database_url()
config.set_main_option("sqlalchemy.url", db_url)

# SQLite cannot ALTER most constraints in place; batch mode recreates tables.
_render_as_batch = db_url.startswith("sqlite")


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=_render_as_batch,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = db_url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=_render_as_batch,
        )
        with context.begin_transaction():
            context.run_migrations()
    logger.info("migrations applied url=%s", connectable.url.render_as_string(hide_password=True))


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
