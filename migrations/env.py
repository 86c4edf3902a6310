"""
Alembic environment for the RetailHub schema.

URL precedence: TEST_DATABASE_URL, DATABASE_URL, the POSTGRES_* variables,
then ``sqlalchemy.url`` from alembic.ini.
"""
import logging
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from retailhub.db.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def _database_url() -> str:
    for name in ("TEST_DATABASE_URL", "DATABASE_URL"):
        value = os.getenv(name)
        if value:
            return value
    parts = {name: os.getenv(name) for name in (
        "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_HOST", "POSTGRES_PORT", "POSTGRES_DB",
    )}
    if all(parts.values()):
        return (
            f"postgresql://{parts['POSTGRES_USER']}:{parts['POSTGRES_PASSWORD']}"
            f"@{parts['POSTGRES_HOST']}:{parts['POSTGRES_PORT']}/{parts['POSTGRES_DB']}"
        )
    return config.get_main_option("sqlalchemy.url")


def run_migrations_offline() -> None:
    """Emit SQL to the script output without a database connection."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _database_url()
    logger.info("Running migrations against %s", url.rsplit("@", 1)[-1])
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
