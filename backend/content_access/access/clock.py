"""
Time helpers.

Services take a `clock` callable instead of reading the system time so that
periods, expirations and cache eviction are deterministic under test.
"""

from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]

PERIOD_FORMAT = "%Y-%m"


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite returns naive values)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def period_for(moment: datetime, tz: Optional[tzinfo] = None) -> str:
    """Calendar month (YYYY-MM) containing `moment` in the billing timezone."""
    moment = ensure_utc(moment)
    if tz is not None:
        moment = moment.astimezone(tz)
    return moment.strftime(PERIOD_FORMAT)


def is_valid_period(value: str) -> bool:
    """Check a YYYY-MM period string."""
    if not isinstance(value, str) or len(value) != 7:
        return False
    try:
        datetime.strptime(value, PERIOD_FORMAT)
    except ValueError:
        return False
    return True
