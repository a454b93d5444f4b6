"""
Shared test fixtures for the timesheet service test suite.

The MongoDB store is replaced with an in-memory TimesheetStore so that the
recompute pipeline and the routers run without a database.
"""

import os
import uuid
from copy import deepcopy
from datetime import date
from typing import Dict, List, Optional

import pytest

# Override environment BEFORE importing application modules
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("PRODUCTION_MODE", "false")

from httpx import ASGITransport, AsyncClient

from main import app
from models.leaves import LeaveRequest
from models.shifts import Shift
from timesheet_store import get_timesheet_store
from utils.week_utils import roster_months

TENANT_ID = "tenant-a"
EMPLOYEE_ID = "EMP001"


class InMemoryTimesheetStore:
    """TimesheetStore keeping canned documents in dictionaries."""

    def __init__(self):
        self.shifts: Dict[str, Dict[str, Shift]] = {}
        self.leave_requests: Dict[str, Dict[str, LeaveRequest]] = {}
        self.policies: Dict[str, dict] = {}
        self.timesheets: Dict[tuple, dict] = {}
        self.shift_queries: List[tuple] = []
        self.upserts: List[tuple] = []

    def add_shift(self, tenant_id: str, shift: Shift) -> str:
        shift_id = uuid.uuid4().hex[:24]
        self.shifts.setdefault(tenant_id, {})[shift_id] = shift.model_copy(update={"id": shift_id})
        return shift_id

    def add_leave(self, tenant_id: str, leave: LeaveRequest) -> str:
        leave_id = uuid.uuid4().hex[:24]
        self.leave_requests.setdefault(tenant_id, {})[leave_id] = leave.model_copy(update={"id": leave_id})
        return leave_id

    async def list_shifts(self, tenant_id, employee_id, start, end):
        # one query per roster month, as the MongoDB store does
        result = []
        for month in roster_months(start, end):
            self.shift_queries.append((tenant_id, employee_id, month))
            for shift in self.shifts.get(tenant_id, {}).values():
                if (shift.employee_id == employee_id and shift.roster_month == month
                        and start <= shift.date <= end and shift.status != "cancelled"):
                    result.append(shift)
        return sorted(result, key=lambda shift: (shift.date, shift.start))

    async def list_approved_leave(self, tenant_id, employee_id):
        return [
            leave for leave in self.leave_requests.get(tenant_id, {}).values()
            if leave.employee_id == employee_id and leave.status == "approved"
        ]

    async def get_tenant_payroll_policy(self, tenant_id) -> Optional[dict]:
        policy = self.policies.get(tenant_id)
        return deepcopy(policy) if policy is not None else None

    async def set_tenant_payroll_policy(self, tenant_id, policy):
        self.policies[tenant_id] = deepcopy(policy)

    async def upsert_timesheet(self, tenant_id, employee_id, week_iso, fields):
        self.upserts.append((tenant_id, employee_id, week_iso))
        document = self.timesheets.setdefault((tenant_id, employee_id, week_iso), {})
        document.update(fields)
        document.update({"employee_id": employee_id, "week_iso": week_iso})

    async def get_timesheet(self, tenant_id, employee_id, week_iso):
        document = self.timesheets.get((tenant_id, employee_id, week_iso))
        return dict(document) if document else None

    async def save_shift(self, tenant_id, shift, shift_id=None):
        if shift_id:
            if shift_id not in self.shifts.get(tenant_id, {}):
                return None
            self.shifts[tenant_id][shift_id] = shift.model_copy(update={"id": shift_id})
            return shift_id
        return self.add_shift(tenant_id, shift)

    async def get_shift(self, tenant_id, shift_id):
        return self.shifts.get(tenant_id, {}).get(shift_id)

    async def cancel_shifts(self, tenant_id, employee_id, start, end, reason):
        cancelled = []
        for shift_id, shift in self.shifts.get(tenant_id, {}).items():
            if shift.employee_id == employee_id and start <= shift.date <= end and shift.status != "cancelled":
                self.shifts[tenant_id][shift_id] = shift.model_copy(
                    update={"status": "cancelled", "cancel_reason": reason}
                )
                cancelled.append(shift)
        return cancelled

    async def create_leave_request(self, tenant_id, leave):
        return self.add_leave(tenant_id, leave)

    async def get_leave_request(self, tenant_id, leave_id):
        return self.leave_requests.get(tenant_id, {}).get(leave_id)

    async def list_leave_requests(self, tenant_id, employee_id=None, status=None):
        return [
            leave for leave in self.leave_requests.get(tenant_id, {}).values()
            if (employee_id is None or leave.employee_id == employee_id)
            and (status is None or leave.status == status)
        ]

    async def set_leave_status(self, tenant_id, leave_id, status, approver_note=None):
        leave = self.leave_requests[tenant_id][leave_id]
        self.leave_requests[tenant_id][leave_id] = leave.model_copy(
            update={"status": status, "approver_note": approver_note}
        )

    async def list_tenants(self):
        return sorted(self.shifts)

    async def list_employees_with_shifts(self, tenant_id, start, end):
        return sorted({
            shift.employee_id for shift in self.shifts.get(tenant_id, {}).values()
            if start <= shift.date <= end and shift.status != "cancelled"
        })


def make_shift(day: str, start: str = "09:00", end: str = "17:00", employee_id: str = EMPLOYEE_ID, **kwargs) -> Shift:
    return Shift(employee_id=employee_id, date=date.fromisoformat(day), start=start, end=end, **kwargs)


def make_leave(start: str, end: str, hours: float, leave_type: str = "vacation",
               status: str = "approved", employee_id: str = EMPLOYEE_ID) -> LeaveRequest:
    return LeaveRequest(
        employee_id=employee_id,
        leave_type=leave_type,
        start_date=date.fromisoformat(start),
        end_date=date.fromisoformat(end),
        hours=hours,
        status=status,
    )


@pytest.fixture
def store() -> InMemoryTimesheetStore:
    return InMemoryTimesheetStore()


@pytest.fixture
async def async_client(store):
    app.dependency_overrides[get_timesheet_store] = lambda: store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
