from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

Timestamp = float

NEVER = "never"
MS_PER_DAY = 86_400_000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)
_MAX_MS = (datetime.max.replace(tzinfo=timezone.utc) - _EPOCH) // _ONE_MS


def to_ms(ms: Timestamp) -> Timestamp:
    """Truncate to the millisecond resolution of the wire format."""
    return ms if math.isinf(ms) else float(math.floor(ms))


def serialize_date(ms: Timestamp) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string, or ``"never"``."""
    if math.isinf(ms) or ms > _MAX_MS:
        return NEVER
    dt = _EPOCH + timedelta(milliseconds=math.floor(ms))
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def deserialize_date(value: str) -> Timestamp:
    if value == NEVER:
        return math.inf
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return float((dt - _EPOCH) // _ONE_MS)
