import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from datetime import datetime, timedelta, timezone
from typing import Optional

from exceptions import StorageError
from timesheet_store import TimesheetStore, get_timesheet_store
from utils.recompute_utils import recompute_week_totals
from utils.week_utils import week_bounds, week_iso_for

logger = logging.getLogger(__name__)

# Create a shared scheduler instance
scheduler = AsyncIOScheduler()


async def reconcile_previous_week(store: Optional[TimesheetStore] = None, now: Optional[datetime] = None):
    """
    Recompute last week's timesheet for every employee with shifts in it.
    Recomputation is idempotent, so this only repairs timesheets whose write
    trigger failed. Returns the number of timesheets recomputed.
    """
    store = store or get_timesheet_store()
    now = now or datetime.now(timezone.utc)
    week_iso = week_iso_for(now.date() - timedelta(days=7))
    week_start, week_end = week_bounds(week_iso)

    recomputed = 0
    for tenant_id in await store.list_tenants():
        try:
            employee_ids = await store.list_employees_with_shifts(tenant_id, week_start, week_end)
        except StorageError as e:
            logger.error("Skipping tenant %s during reconciliation: %s", tenant_id, e)
            continue

        for employee_id in employee_ids:
            try:
                await recompute_week_totals(store, tenant_id, employee_id, week_iso)
                recomputed += 1
            except (ValueError, StorageError) as e:
                # MalformedInputError, or a tenant policy with a leave type both paid and unpaid
                logger.error("Skipping %s/%s %s during reconciliation: %s", tenant_id, employee_id, week_iso, e)

    logger.info("Reconciled %d timesheets for %s", recomputed, week_iso)
    return recomputed

# Add weekly reconciliation job to scheduler
scheduler.add_job(
    reconcile_previous_week,
    "cron",
    day_of_week="mon",
    hour=1,
    minute=0,  # Run every Monday at 01:00, after the ISO week closed
    timezone="UTC"
)
