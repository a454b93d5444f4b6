import logging
import math
from datetime import date
from typing import Iterable, Optional, Tuple, Union

from config import settings
from exceptions import MalformedInputError
from models.leaves import LeaveRequest
from models.shifts import Shift
from models.tenants import TenantPayrollPolicy
from models.timesheets import Timesheet
from utils.week_utils import MINUTES_PER_DAY, inclusive_days, parse_time_to_minutes, week_bounds

logger = logging.getLogger(__name__)

SUNDAY = 6  # date.weekday()
STORED_HOURS_TOLERANCE = 0.01  # under one minute


class LeaveTypePolicy:
    """Partition of leave types into paid and unpaid buckets."""

    def __init__(self, paid_types: Iterable[str], unpaid_types: Iterable[str]):
        self.paid_types = frozenset(paid_types)
        self.unpaid_types = frozenset(unpaid_types)
        both = self.paid_types & self.unpaid_types
        if both:
            raise ValueError(f"Leave types cannot be both paid and unpaid: {sorted(both)}")

    @classmethod
    def from_settings(cls, policy: Optional[TenantPayrollPolicy] = None) -> "LeaveTypePolicy":
        # a tenant list replaces the configured default for that bucket only
        paid = settings.PAID_LEAVE_TYPES
        unpaid = settings.UNPAID_LEAVE_TYPES
        if policy is not None:
            if policy.paid_leave_types is not None:
                paid = policy.paid_leave_types
            if policy.unpaid_leave_types is not None:
                unpaid = policy.unpaid_leave_types
        return cls(paid, unpaid)

    def is_paid(self, leave: LeaveRequest) -> bool:
        if leave.leave_type in self.paid_types:
            return True
        if leave.leave_type in self.unpaid_types:
            return False
        raise MalformedInputError(f"Unclassified leave type '{leave.leave_type}'", leave)


def calculate_hours(start: str, end: str) -> float:
    """Hours between two HH:MM times. Supports overnight shifts."""
    start_minutes = parse_time_to_minutes(start)
    end_minutes = parse_time_to_minutes(end)
    if end_minutes < start_minutes:
        end_minutes += MINUTES_PER_DAY  # passed midnight
    return (end_minutes - start_minutes) / 60


def shift_duration_hours(shift: Shift) -> float:
    """
    Duration of a shift in hours, derived from its start and end times.
    A stored hours value must agree with the derived one.
    """
    try:
        derived_hours = calculate_hours(shift.start, shift.end)
    except MalformedInputError as e:
        raise MalformedInputError(str(e), shift) from e

    if shift.hours is None:
        return derived_hours

    if shift.hours < 0:
        raise MalformedInputError("Negative shift duration", shift)
    if shift.hours > 24:
        raise MalformedInputError("Shift longer than 24 hours", shift)
    if not math.isclose(shift.hours, derived_hours, abs_tol=STORED_HOURS_TOLERANCE):
        raise MalformedInputError(
            f"Stored hours {shift.hours:g} disagree with {shift.start}-{shift.end} ({derived_hours:g} hours)",
            shift
        )
    return shift.hours


def split_regular_overtime(total_hours: float, threshold: float) -> Tuple[float, float]:
    regular_hours = min(total_hours, threshold)
    overtime_hours = max(0, total_hours - threshold)
    return regular_hours, overtime_hours


def count_sundays(shifts: Iterable[Shift], week_start: date, week_end: date) -> int:
    """Distinct Sundays inside the week with at least one shift."""
    sundays = {
        shift.date for shift in shifts
        if shift.date.weekday() == SUNDAY and week_start <= shift.date <= week_end
    }
    return len(sundays)


def sum_shift_hours(shifts: Iterable[Shift], employee_id: str, week_start: date, week_end: date) -> float:
    total_hours = 0.0
    for shift in shifts:
        if shift.employee_id != employee_id or not week_start <= shift.date <= week_end:
            logger.debug("Skipping shift outside %s %s..%s: %r", employee_id, week_start, week_end, shift)
            continue
        total_hours += shift_duration_hours(shift)
    return total_hours


def apportion_leave_hours(leave: LeaveRequest, week_start: date, week_end: date) -> float:
    """
    Share of a leave request's hours that falls inside [week_start, week_end].
    The request's hours cover its whole start_date..end_date span, so the
    week gets hours * overlap_days / span_days, both counted inclusively.
    """
    if leave.start_date is None or leave.end_date is None:
        raise MalformedInputError("Leave request without start_date/end_date", leave)
    if leave.hours is None:
        raise MalformedInputError("Leave request without hours", leave)
    if leave.hours < 0:
        raise MalformedInputError("Leave request with negative hours", leave)
    if leave.end_date < leave.start_date:
        raise MalformedInputError("Leave request ends before it starts", leave)

    overlap_start = max(leave.start_date, week_start)
    overlap_end = min(leave.end_date, week_end)
    if overlap_start > overlap_end:
        return 0.0

    overlap_days = inclusive_days(overlap_start, overlap_end)
    span_days = inclusive_days(leave.start_date, leave.end_date)
    return leave.hours * overlap_days / span_days


def sum_leave_hours(
    leave_requests: Iterable[LeaveRequest],
    week_start: date,
    week_end: date,
    leave_types: LeaveTypePolicy,
) -> Tuple[float, float]:
    paid_hours = 0.0
    unpaid_hours = 0.0
    for leave in leave_requests:
        if leave.status != "approved":
            continue
        hours = apportion_leave_hours(leave, week_start, week_end)
        if hours == 0:
            continue
        if leave_types.is_paid(leave):
            paid_hours += hours
        else:
            unpaid_hours += hours
    return paid_hours, unpaid_hours


def resolve_overtime_threshold(
    policy: Union[TenantPayrollPolicy, dict, None],
    default: Optional[float] = None,
) -> float:
    """
    Weekly overtime threshold for a tenant.
    Falls back to the configured default (40) when the tenant has no policy,
    the policy omits the threshold, or the value is not a usable number.
    """
    if default is None:
        default = settings.DEFAULT_OVERTIME_THRESHOLD

    threshold = None
    if isinstance(policy, TenantPayrollPolicy):
        threshold = policy.overtime_threshold
    elif isinstance(policy, dict):
        threshold = policy.get("overtime_threshold")

    if isinstance(threshold, (int, float)) and not isinstance(threshold, bool) and threshold >= 0:
        return float(threshold)

    logger.info("ConfigurationDefaulted: overtime threshold %r, using %s", threshold, default)
    return float(default)


def to_payroll_policy(policy: Union[TenantPayrollPolicy, dict, None]) -> Optional[TenantPayrollPolicy]:
    if policy is None or isinstance(policy, TenantPayrollPolicy):
        return policy
    # thresholds are resolved separately so a bad value defaults instead of failing here
    return TenantPayrollPolicy(
        paid_leave_types=policy.get("paid_leave_types"),
        unpaid_leave_types=policy.get("unpaid_leave_types"),
    )


def calculate_week_totals(
    employee_id: str,
    week_iso: str,
    shifts: Iterable[Shift],
    leave_requests: Iterable[LeaveRequest],
    policy: Union[TenantPayrollPolicy, dict, None] = None,
    leave_types: Optional[LeaveTypePolicy] = None,
) -> Timesheet:
    """
    Reduce one employee's shifts and leave requests for an ISO week into a Timesheet.

    Args:
        employee_id: employee the timesheet belongs to
        week_iso: ISO week such as "2024-W03"
        shifts: shifts already fetched for the week
        leave_requests: the employee's leave requests; only approved ones count
        policy: tenant payroll policy (model or raw document), or None
        leave_types: paid/unpaid taxonomy; built from settings and policy when omitted
    Returns:
        Timesheet with regular/overtime hours, paid/unpaid leave hours and worked Sundays.
    Raises:
        MalformedInputError: for unparseable shift times, negative durations or incomplete leave requests
    """
    week_start, week_end = week_bounds(week_iso)
    shifts = list(shifts)

    threshold = resolve_overtime_threshold(policy)
    if leave_types is None:
        leave_types = LeaveTypePolicy.from_settings(to_payroll_policy(policy))

    total_hours = sum_shift_hours(shifts, employee_id, week_start, week_end)
    regular_hours, overtime_hours = split_regular_overtime(total_hours, threshold)
    employee_shifts = [shift for shift in shifts if shift.employee_id == employee_id]
    paid_leave_hours, unpaid_leave_hours = sum_leave_hours(
        [leave for leave in leave_requests if leave.employee_id == employee_id],
        week_start,
        week_end,
        leave_types,
    )

    return Timesheet(
        employee_id=employee_id,
        week_iso=week_iso,
        regular_hours=regular_hours,
        overtime_hours=overtime_hours,
        paid_leave_hours=paid_leave_hours,
        unpaid_leave_hours=unpaid_leave_hours,
        sundays=count_sundays(employee_shifts, week_start, week_end),
    )
