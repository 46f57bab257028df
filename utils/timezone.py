"""UTC-everywhere time handling. Eliminates timezone bugs at the source."""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere. Tests freeze time by
    patching this name in the module under test.
    """
    return datetime.now(timezone.utc)


def from_timestamp(ts: int | float) -> datetime:
    """Convert a POSIX timestamp (e.g. a JWT 'exp' claim) to a UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)
