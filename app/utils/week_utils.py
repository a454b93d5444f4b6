import re
from datetime import date, timedelta
from typing import List, Tuple

from exceptions import MalformedInputError

WEEK_ISO_PATTERN = re.compile(r"^(\d{4})-W(\d{2})$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

MINUTES_PER_DAY = 24 * 60


def parse_week_iso(week_iso: str) -> Tuple[int, int]:
    """
    Split an ISO week identifier such as "2024-W03" into (year, week).
    Raises MalformedInputError for anything that is not a real ISO week,
    including W53 in a year that only has 52 weeks.
    """
    match = WEEK_ISO_PATTERN.match(week_iso or "")
    if not match:
        raise MalformedInputError(f"Invalid ISO week '{week_iso}' (use YYYY-Www)")

    year, week = int(match.group(1)), int(match.group(2))
    try:
        date.fromisocalendar(year, week, 1)
    except ValueError:
        raise MalformedInputError(f"Invalid ISO week '{week_iso}' (no week {week} in {year})")
    return year, week


def week_bounds(week_iso: str) -> Tuple[date, date]:
    """Return the Monday and Sunday (inclusive) of an ISO week."""
    year, week = parse_week_iso(week_iso)
    week_start = date.fromisocalendar(year, week, 1)
    return week_start, week_start + timedelta(days=6)


def week_iso_for(day: date) -> str:
    # ISO year, not calendar year: 2024-12-30 belongs to 2025-W01
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def roster_month(day: date) -> str:
    """YYYY-MM shift partition a date belongs to."""
    return day.strftime("%Y-%m")


def roster_months(start: date, end: date) -> List[str]:
    """Every YYYY-MM shift partition an inclusive date range touches."""
    months = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.append(roster_month(date(year, month, 1)))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def weeks_between(start: date, end: date) -> List[str]:
    """Distinct ISO weeks touched by an inclusive date range, in order."""
    weeks = []
    current = start - timedelta(days=start.weekday())
    while current <= end:
        weeks.append(week_iso_for(current))
        current += timedelta(days=7)
    return weeks


def parse_time_to_minutes(value: str) -> int:
    """Parse a 24-hour "HH:MM" string into minutes since midnight."""
    match = TIME_PATTERN.match(value or "") if isinstance(value, str) else None
    if not match:
        raise MalformedInputError(f"Invalid time '{value}' (use HH:MM)")
    return int(match.group(1)) * 60 + int(match.group(2))


def inclusive_days(start: date, end: date) -> int:
    return (end - start).days + 1
