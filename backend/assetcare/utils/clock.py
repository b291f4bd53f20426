"""Time helpers.

All persisted timestamps are naive UTC. SQLite drops tzinfo on the way in, so
keeping every value naive avoids aware/naive comparison errors across stores.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.replace(microsecond=0).isoformat() + 'Z'
