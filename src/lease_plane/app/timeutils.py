"""UTC time helpers shared by the orchestrator and the monitoring scan."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone


class SystemClock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def require_aware_datetime(value: datetime, name: str = 'now') -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError(f'{name} must be timezone-aware')
    return value


def ttl_epoch_seconds(ttl_days: int, *, now: datetime) -> int:
    """Epoch-seconds expiry ``ttl_days`` after ``now`` for record purging."""
    require_aware_datetime(now)
    return math.floor((now + timedelta(days=ttl_days)).timestamp())


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600
