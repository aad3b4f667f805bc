"""Alembic environment configuration for projects using hashcol.

Reads HASHCOL_DATABASE_URL / DATABASE_URL from environment (falling back to
alembic.ini default).  Imports the model modules listed under
``hashcol_models`` in alembic.ini so autogenerate sees every table, and runs
autogenerate output through the computed-hash rewriter.  Importing
``hashcol.migrations`` also registers the computed-hash comparator.
"""

from __future__ import annotations

import importlib
import os
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context
from hashcol.migrations import computed_hash_rewriter
from hashcol.orm import HashColBase

# Alembic Config object, provides access to .ini values
config = context.config

# Override sqlalchemy.url from environment if set
database_url = os.environ.get("HASHCOL_DATABASE_URL") or os.environ.get("DATABASE_URL")
if database_url:
    config.set_main_option("sqlalchemy.url", database_url)

# Python logging from .ini file
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Import model modules so their tables register with HashColBase.metadata
for module_name in (config.get_main_option("hashcol_models") or "").split():
    importlib.import_module(module_name)

target_metadata = HashColBase.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (SQL script output only).

    Without a connection the previous column state cannot be reflected, so
    alters are resolved as if the column were not tracked before.
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        process_revision_directives=computed_hash_rewriter(),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode (live database connection)."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            process_revision_directives=computed_hash_rewriter(),
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
