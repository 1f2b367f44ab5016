"""Naive-UTC datetime helpers.

All entitlement timestamps are stored as naive UTC to match the
``timestamp without time zone`` columns.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def ts_to_naive(ts: int | None) -> datetime | None:
    """Convert a Stripe Unix timestamp to naive UTC datetime."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)
