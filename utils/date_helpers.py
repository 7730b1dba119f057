from datetime import date, datetime, timezone
import calendar
from utils.constants import DATE_FORMAT


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    return date.today()


def parse_date(date_str: str | None) -> date | None:
    """Parse a date string in YYYY-MM-DD format, returning None on failure."""
    if not date_str:
        return None
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d"):
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue
    return None


def format_date(d: date) -> str:
    return d.strftime(DATE_FORMAT)


def to_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Fixed-width ISO-8601 UTC string, so string order matches instant order."""
    return to_utc(dt).isoformat(timespec="microseconds")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def format_display_timestamp(dt: datetime | None) -> str:
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M")


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day_to_month(year: int, month: int, day: int) -> int:
    """Clamp day to valid range for the given year/month."""
    return min(day, days_in_month(year, month))


def add_months(d, n: int, day: int | None = None):
    """Add n months to a date or datetime.

    The day becomes `day` (default: the original day), clamped to the length
    of the resulting month. Time of day and tzinfo are preserved.
    """
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    target = d.day if day is None else day
    return d.replace(year=year, month=month, day=clamp_day_to_month(year, month, target))


def last_day_after_months(d, n: int):
    """Advance n months and snap to the last calendar day of that month."""
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    return d.replace(year=year, month=month, day=days_in_month(year, month))


def add_years(d, n: int):
    """Add n years; Feb 29 becomes Feb 28 when the target year is not leap."""
    year = d.year + n
    return d.replace(year=year, day=clamp_day_to_month(year, d.month, d.day))


def iso_weekday(d) -> int:
    """1 = Monday .. 7 = Sunday."""
    return d.isoweekday()
