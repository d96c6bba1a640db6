"""Small helpers shared by the rollup stages and routers."""
from __future__ import annotations

from datetime import datetime, timezone


def enum_value(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC.
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)
