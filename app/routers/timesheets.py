from fastapi import APIRouter, HTTPException, Depends, status
from exceptions import (MalformedInputError, StorageError, get_unknown_entity_exception,
                        get_malformed_input_exception, get_storage_exception)
from schemas.timesheet import TimesheetResponse, PayrollPolicyUpdate
from timesheet_store import TimesheetStore, get_timesheet_store
from utils.recompute_utils import recompute_week_totals
from utils.timesheet_utils import LeaveTypePolicy, resolve_overtime_threshold, to_payroll_policy
from utils.week_utils import parse_week_iso

router = APIRouter()


@router.get("/timesheets/{employee_id}/{week_iso}", response_model=TimesheetResponse)
async def get_timesheet(
    tenant_id: str,
    employee_id: str,
    week_iso: str,
    store: TimesheetStore = Depends(get_timesheet_store)
):
    """
    Get the stored timesheet of an employee for an ISO week.
    Raises:
        HTTPException:
            - 422: If week_iso is not a valid ISO week
            - 404: If no timesheet has been computed for that week yet
    """
    try:
        parse_week_iso(week_iso)
        timesheet = await store.get_timesheet(tenant_id, employee_id, week_iso)
        if not timesheet:
            raise get_unknown_entity_exception("Timesheet")
        return timesheet

    except HTTPException:
        raise

    except MalformedInputError as e:
        raise get_malformed_input_exception(e)

    except StorageError as e:
        raise get_storage_exception(e)


@router.post("/timesheets/{employee_id}/{week_iso}/recompute", response_model=TimesheetResponse)
async def recompute_timesheet(
    tenant_id: str,
    employee_id: str,
    week_iso: str,
    store: TimesheetStore = Depends(get_timesheet_store)
):
    """Recompute an employee's timesheet for an ISO week from the stored shifts and leave."""
    try:
        timesheet = await recompute_week_totals(store, tenant_id, employee_id, week_iso)
        return timesheet.model_dump()

    except MalformedInputError as e:
        raise get_malformed_input_exception(e)

    except StorageError as e:
        raise get_storage_exception(e)


@router.get("/payroll-policy")
async def get_payroll_policy(tenant_id: str, store: TimesheetStore = Depends(get_timesheet_store)):
    """Effective payroll policy of a tenant, with configured defaults filled in."""
    try:
        policy = await store.get_tenant_payroll_policy(tenant_id)
        leave_types = LeaveTypePolicy.from_settings(to_payroll_policy(policy))
        threshold = resolve_overtime_threshold(policy)
        stored = policy.get("overtime_threshold") if policy else None
        return {
            "overtime_threshold": threshold,
            "threshold_defaulted": stored is None or isinstance(stored, bool) or stored != threshold,
            "paid_leave_types": sorted(leave_types.paid_types),
            "unpaid_leave_types": sorted(leave_types.unpaid_types),
        }

    except StorageError as e:
        raise get_storage_exception(e)


@router.put("/payroll-policy", status_code=status.HTTP_200_OK)
async def update_payroll_policy(
    tenant_id: str,
    policy_obj: PayrollPolicyUpdate,
    store: TimesheetStore = Depends(get_timesheet_store)
):
    """
    Replace a tenant's payroll policy. Unset fields fall back to the defaults
    (a 40 hour overtime threshold). Stored timesheets are not
    recomputed; they pick the new policy up on their next recomputation.
    """
    policy = policy_obj.model_dump(exclude_none=True)
    try:
        LeaveTypePolicy.from_settings(to_payroll_policy(policy))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        await store.set_tenant_payroll_policy(tenant_id, policy)
        return {"message": "Payroll policy updated", "payroll_policy": policy}

    except StorageError as e:
        raise get_storage_exception(e)

