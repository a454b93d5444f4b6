from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Tuple

from config import settings
from exceptions import MalformedInputError, ShiftConflictError
from models.leaves import LeaveRequest
from models.shifts import Shift
from utils.timesheet_utils import calculate_hours
from utils.week_utils import parse_time_to_minutes


def shift_interval(shift: Shift) -> Tuple[datetime, datetime]:
    """Absolute start and end of a shift; overnight shifts end on the next day."""
    start = datetime.combine(shift.date, datetime.min.time()) + timedelta(minutes=parse_time_to_minutes(shift.start))
    end = datetime.combine(shift.date, datetime.min.time()) + timedelta(minutes=parse_time_to_minutes(shift.end))
    if end < start:
        end += timedelta(days=1)
    return start, end


def validate_shift_hours(shift: Shift) -> float:
    """Returns the derived duration of a new shift, rejecting empty or >24h shifts."""
    try:
        hours = calculate_hours(shift.start, shift.end)
    except MalformedInputError as e:
        raise MalformedInputError(str(e), shift) from e

    if hours <= 0 or hours > 24:
        raise MalformedInputError("Invalid shift duration", shift)
    return hours


def shifts_overlap(first: Shift, second: Shift) -> bool:
    first_start, first_end = shift_interval(first)
    second_start, second_end = shift_interval(second)
    return first_start < second_end and second_start < first_end


def rest_hours_between(first: Shift, second: Shift) -> float:
    """Hours between the end of the earlier shift and the start of the later one."""
    first_start, first_end = shift_interval(first)
    second_start, second_end = shift_interval(second)
    if first_start <= second_start:
        gap = second_start - first_end
    else:
        gap = first_start - second_end
    return gap.total_seconds() / 3600


def neighbour_range(day: date) -> Tuple[date, date]:
    # overnight shifts from the previous day and rest windows reach one day either side
    return day - timedelta(days=1), day + timedelta(days=1)


def check_shift_conflicts(
    shift: Shift,
    existing_shifts: Iterable[Shift],
    approved_leave: Iterable[LeaveRequest],
    min_rest_hours: Optional[float] = None,
) -> None:
    """
    Raise ShiftConflictError when a shift overlaps another shift of the same
    employee, leaves less than the minimum rest between shifts, or falls on a
    day of approved leave. existing_shifts must not contain the shift itself.
    """
    if min_rest_hours is None:
        min_rest_hours = settings.MIN_REST_HOURS

    for other in existing_shifts:
        if other.employee_id != shift.employee_id or other.status == "cancelled":
            continue
        if shifts_overlap(shift, other):
            raise ShiftConflictError(
                f"Shift overlaps with existing shift on {other.date} {other.start}-{other.end}"
            )
        if rest_hours_between(shift, other) < min_rest_hours:
            raise ShiftConflictError(
                f"Insufficient rest period between shifts (minimum {min_rest_hours:g} hours)"
            )

    for leave in approved_leave:
        if leave.employee_id != shift.employee_id or leave.status != "approved":
            continue
        if leave.start_date and leave.end_date and leave.start_date <= shift.date <= leave.end_date:
            raise ShiftConflictError("Shift conflicts with approved leave request")
