from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as naive UTC, the engine's internal timestamp form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(ts: Optional[datetime]) -> Optional[datetime]:
    """Aware timestamps are converted to UTC and made naive; naive ones pass through."""
    if ts is None or ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)
