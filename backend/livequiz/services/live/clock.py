"""Server-side clock used for every duration computed by the engine.

Timestamps are stored as naive UTC datetimes. Caller supplied times are
never used.
"""

from datetime import datetime, timezone
from typing import Optional


def now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def elapsed_seconds_since(ts: Optional[datetime]) -> float:
    """Seconds elapsed between ``ts`` and now, never negative. 0 when ``ts`` is None."""
    if ts is None:
        return 0.0
    return max(0.0, (now() - ts).total_seconds())
