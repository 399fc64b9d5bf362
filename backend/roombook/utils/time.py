import calendar
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from ..config import get_settings


def business_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().timezone)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_local(dt: datetime, tz: tzinfo | None = None) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(tz or business_tz())


def start_of_local_day(now: datetime, tz: tzinfo) -> datetime:
    """Midnight of the local day containing ``now``, as naive UTC."""
    local = utc_naive_to_local(now, tz)
    midnight = datetime(local.year, local.month, local.day, tzinfo=tz)
    return to_utc_naive(midnight)


def subtract_months(dt: datetime, months: int) -> datetime:
    """Step back whole calendar months, clamping to the last day of the target month."""
    month_index = dt.year * 12 + (dt.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)