import logging
from typing import List, Optional

from exceptions import MalformedInputError
from models.leaves import LeaveRequest
from models.shifts import Shift
from models.timesheets import Timesheet
from timesheet_store import TimesheetStore
from utils.timesheet_utils import calculate_week_totals
from utils.week_utils import week_bounds, week_iso_for, weeks_between

logger = logging.getLogger(__name__)


async def recompute_week_totals(store: TimesheetStore, tenant_id: str, employee_id: str, week_iso: str) -> Timesheet:
    """
    Recompute and persist the timesheet of one employee for one ISO week.
    All reads happen before the calculation and the write happens only after it
    succeeds, so a MalformedInputError or StorageError leaves the stored
    timesheet untouched.
    """
    week_start, week_end = week_bounds(week_iso)

    try:
        shifts = await store.list_shifts(tenant_id, employee_id, week_start, week_end)
        leave_requests = await store.list_approved_leave(tenant_id, employee_id)
        policy = await store.get_tenant_payroll_policy(tenant_id)

        timesheet = calculate_week_totals(employee_id, week_iso, shifts, leave_requests, policy)
        await store.upsert_timesheet(tenant_id, employee_id, week_iso, timesheet.computed_fields())

    except Exception:
        logger.exception("Error recomputing week totals for %s/%s %s", tenant_id, employee_id, week_iso)
        raise

    logger.info(
        "Timesheet recomputed for %s/%s %s: regular=%s overtime=%s paid_leave=%s unpaid_leave=%s sundays=%s",
        tenant_id, employee_id, week_iso,
        timesheet.regular_hours, timesheet.overtime_hours,
        timesheet.paid_leave_hours, timesheet.unpaid_leave_hours, timesheet.sundays,
    )
    return timesheet


async def on_shift_written(store: TimesheetStore, tenant_id: str, shift: Shift) -> Timesheet:
    """Shift write trigger: recompute the week the shift falls in."""
    return await recompute_week_totals(store, tenant_id, shift.employee_id, week_iso_for(shift.date))


async def recompute_leave_weeks(store: TimesheetStore, tenant_id: str, leave: LeaveRequest) -> List[str]:
    if leave.start_date is None or leave.end_date is None:
        raise MalformedInputError("Leave request without start_date/end_date", leave)
    weeks = weeks_between(leave.start_date, leave.end_date)
    for week_iso in weeks:
        await recompute_week_totals(store, tenant_id, leave.employee_id, week_iso)

    logger.info("Timesheets recomputed after leave change for %s/%s: %s", tenant_id, leave.employee_id, weeks)
    return weeks


async def on_leave_status_changed(
    store: TimesheetStore,
    tenant_id: str,
    before: Optional[LeaveRequest],
    after: LeaveRequest,
) -> List[str]:
    """
    Leave status trigger: when a request becomes approved, recompute every
    ISO week between its start and end date. Returns the weeks recomputed.
    """
    previous_status = before.status if before else None
    if previous_status == "approved" or after.status != "approved":
        return []
    return await recompute_leave_weeks(store, tenant_id, after)
