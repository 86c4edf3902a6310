"""
Shared SQLAlchemy base and helpers.
"""
from datetime import datetime, UTC
from typing import Optional

from sqlalchemy.orm import declarative_base

# Side-effect import: JSONB compiles on SQLite test databases.
from .. import sqlite_compiler_shims  # noqa: F401


def now_utc():
    """Return an aware UTC datetime for default/updated timestamps."""
    return datetime.now(UTC)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a stored timestamp to aware UTC.

    SQLite hands back naive datetimes for ``DateTime(timezone=True)`` columns.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


Base = declarative_base()
