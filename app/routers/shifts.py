import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Query, status
from exceptions import (MalformedInputError, ShiftConflictError, StorageError,
                        get_unknown_entity_exception, get_malformed_input_exception,
                        get_conflict_exception, get_storage_exception)
from models.shifts import Shift
from schemas.shift import CreateShift, ShiftSaved, ShiftList
from timesheet_store import TimesheetStore, get_timesheet_store
from utils.recompute_utils import on_shift_written, recompute_week_totals
from utils.shift_utils import check_shift_conflicts, neighbour_range, validate_shift_hours
from utils.week_utils import week_bounds, week_iso_for

logger = logging.getLogger(__name__)

router = APIRouter()


async def write_shift(store: TimesheetStore, tenant_id: str, shift_obj: CreateShift,
                      shift_id: Optional[str] = None) -> dict:
    """
    Validate and store a shift, then recompute the timesheet of its week.
    When an update moves a shift to another week, the old week is recomputed as well.
    """
    previous = None
    if shift_id:
        previous = await store.get_shift(tenant_id, shift_id)
        if previous is None:
            raise get_unknown_entity_exception("Shift")

    shift = Shift(**shift_obj.model_dump())
    shift.hours = validate_shift_hours(shift)

    window_start, window_end = neighbour_range(shift.date)
    neighbours = await store.list_shifts(tenant_id, shift.employee_id, window_start, window_end)
    approved_leave = await store.list_approved_leave(tenant_id, shift.employee_id)
    check_shift_conflicts(
        shift,
        [other for other in neighbours if not shift_id or other.id != shift_id],
        approved_leave,
    )

    saved_id = await store.save_shift(tenant_id, shift, shift_id)
    if saved_id is None:
        raise get_unknown_entity_exception("Shift")

    logger.info("Shift %s for %s/%s on %s (%s hours)",
                "updated" if shift_id else "created", tenant_id, shift.employee_id, shift.date, shift.hours)

    week_iso = week_iso_for(shift.date)
    recomputed = True
    try:
        await on_shift_written(store, tenant_id, shift)
        if previous is not None:
            previous_week = week_iso_for(previous.date)
            if previous_week != week_iso or previous.employee_id != shift.employee_id:
                await recompute_week_totals(store, tenant_id, previous.employee_id, previous_week)
    except (MalformedInputError, StorageError) as e:
        # the shift itself is stored; the stale timesheet stays until reconciliation
        logger.warning("Timesheet not recomputed after shift write: %s", e)
        recomputed = False

    return {
        "shift_id": saved_id,
        "hours": shift.hours,
        "week_iso": week_iso,
        "timesheet_recomputed": recomputed,
        "message": f"Shift {'updated' if shift_id else 'created'} successfully",
    }


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=ShiftSaved)
async def create_shift(
    tenant_id: str,
    shift_obj: CreateShift,
    store: TimesheetStore = Depends(get_timesheet_store)
):
    """
    Create a shift for an employee and recompute that employee's weekly timesheet.
    Args:
        tenant_id (str): The tenant the shift belongs to.
        shift_obj (CreateShift): Employee, date, start and end time of the shift.
    Returns:
        dict: The new shift id, its derived hours and ISO week.
    Raises:
        HTTPException:
            - 422: If the times are not HH:MM or the duration is not within (0, 24] hours
            - 409: If the shift overlaps another shift, breaks the minimum rest window or falls on approved leave
            - 500: If the database call fails
    """
    try:
        return await write_shift(store, tenant_id, shift_obj)

    except HTTPException:
        raise

    except MalformedInputError as e:
        raise get_malformed_input_exception(e)

    except ShiftConflictError as e:
        raise get_conflict_exception(e)

    except StorageError as e:
        raise get_storage_exception(e)


@router.put("/{shift_id}", response_model=ShiftSaved)
async def update_shift(
    tenant_id: str,
    shift_id: str,
    shift_obj: CreateShift,
    store: TimesheetStore = Depends(get_timesheet_store)
):
    """
    Replace an existing shift. The shift is validated against every other shift
    of the employee, never against its own previous version.
    """
    try:
        return await write_shift(store, tenant_id, shift_obj, shift_id)

    except HTTPException:
        raise

    except MalformedInputError as e:
        raise get_malformed_input_exception(e)

    except ShiftConflictError as e:
        raise get_conflict_exception(e)

    except StorageError as e:
        raise get_storage_exception(e)


@router.get("/", response_model=ShiftList)
async def list_shifts(
    tenant_id: str,
    employee_id: str = Query(..., description="Employee whose shifts are listed"),
    week_iso: str = Query(..., description="ISO week, e.g. 2024-W03"),
    store: TimesheetStore = Depends(get_timesheet_store)
):
    try:
        week_start, week_end = week_bounds(week_iso)
        shifts = await store.list_shifts(tenant_id, employee_id, week_start, week_end)
        return {
            "week_iso": week_iso,
            "shifts": [shift.model_dump(mode="json") for shift in shifts],
        }

    except MalformedInputError as e:
        raise get_malformed_input_exception(e)

    except StorageError as e:
        raise get_storage_exception(e)
