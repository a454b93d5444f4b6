import functools
from datetime import date, datetime, time
from typing import List, Optional, Protocol

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING
from pymongo.errors import PyMongoError
from pytz import UTC

from db import (shifts_collection, leave_requests_collection,
                tenant_settings_collection, timesheets_collection)
from exceptions import StorageError
from models.leaves import LeaveRequest
from models.shifts import Shift
from utils.week_utils import roster_months


class TimesheetStore(Protocol):
    """Storage capability used by the recompute pipeline and the routers."""

    async def list_shifts(self, tenant_id: str, employee_id: str, start: date, end: date) -> List[Shift]: ...

    async def list_approved_leave(self, tenant_id: str, employee_id: str) -> List[LeaveRequest]: ...

    async def get_tenant_payroll_policy(self, tenant_id: str) -> Optional[dict]: ...

    async def upsert_timesheet(self, tenant_id: str, employee_id: str, week_iso: str, fields: dict) -> None: ...

    async def get_timesheet(self, tenant_id: str, employee_id: str, week_iso: str) -> Optional[dict]: ...

    async def set_tenant_payroll_policy(self, tenant_id: str, policy: dict) -> None: ...

    async def save_shift(self, tenant_id: str, shift: Shift, shift_id: Optional[str] = None) -> Optional[str]: ...

    async def get_shift(self, tenant_id: str, shift_id: str) -> Optional[Shift]: ...

    async def cancel_shifts(self, tenant_id: str, employee_id: str, start: date, end: date, reason: str) -> List[Shift]: ...

    async def create_leave_request(self, tenant_id: str, leave: LeaveRequest) -> str: ...

    async def get_leave_request(self, tenant_id: str, leave_id: str) -> Optional[LeaveRequest]: ...

    async def list_leave_requests(self, tenant_id: str, employee_id: Optional[str] = None,
                                  status: Optional[str] = None) -> List[LeaveRequest]: ...

    async def set_leave_status(self, tenant_id: str, leave_id: str, status: str,
                               approver_note: Optional[str] = None) -> None: ...

    async def list_tenants(self) -> List[str]: ...

    async def list_employees_with_shifts(self, tenant_id: str, start: date, end: date) -> List[str]: ...


def wrap_storage_errors(func):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            raise StorageError(f"{func.__name__} failed: {e}") from e
    return wrapper


def to_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def to_datetime(value: date) -> datetime:
    # BSON has no date type, leave days are stored as midnight UTC
    return datetime.combine(value, time.min, tzinfo=UTC)


def shift_from_document(document: dict) -> Shift:
    return Shift(**{**document, "id": str(document["_id"])})


def leave_from_document(document: dict) -> LeaveRequest:
    return LeaveRequest(**{**document, "id": str(document["_id"])})


def leave_to_document(tenant_id: str, leave: LeaveRequest) -> dict:
    document = leave.model_dump(exclude={"id"})
    document["tenant_id"] = tenant_id
    document["start_date"] = to_datetime(leave.start_date) if leave.start_date else None
    document["end_date"] = to_datetime(leave.end_date) if leave.end_date else None
    return document


class MongoTimesheetStore:
    """
    TimesheetStore backed by the motor collections in db.py.
    Shifts are partitioned by roster_month (YYYY-MM); every query for a date
    range runs once per month partition the range touches.
    """

    def __init__(self, shifts=shifts_collection, leave_requests=leave_requests_collection,
                 tenant_settings=tenant_settings_collection, timesheets=timesheets_collection):
        self.shifts = shifts
        self.leave_requests = leave_requests
        self.tenant_settings = tenant_settings
        self.timesheets = timesheets

    @wrap_storage_errors
    async def list_shifts(self, tenant_id: str, employee_id: str, start: date, end: date) -> List[Shift]:
        shifts = []
        for month in roster_months(start, end):
            cursor = self.shifts.find({
                "tenant_id": tenant_id,
                "roster_month": month,
                "employee_id": employee_id,
                "date": {"$gte": start.isoformat(), "$lte": end.isoformat()},
                "status": {"$ne": "cancelled"},
            }).sort([("date", ASCENDING), ("start", ASCENDING)])
            async for document in cursor:
                shifts.append(shift_from_document(document))
        return shifts

    @wrap_storage_errors
    async def list_approved_leave(self, tenant_id: str, employee_id: str) -> List[LeaveRequest]:
        cursor = self.leave_requests.find({
            "tenant_id": tenant_id,
            "employee_id": employee_id,
            "status": "approved",
        })
        return [leave_from_document(document) async for document in cursor]

    @wrap_storage_errors
    async def get_tenant_payroll_policy(self, tenant_id: str) -> Optional[dict]:
        document = await self.tenant_settings.find_one({"tenant_id": tenant_id})
        if not document:
            return None
        return document.get("payroll_policy") or {}

    @wrap_storage_errors
    async def set_tenant_payroll_policy(self, tenant_id: str, policy: dict) -> None:
        await self.tenant_settings.update_one(
            {"tenant_id": tenant_id},
            {"$set": {"payroll_policy": policy, "edited_at": datetime.now(UTC)}},
            upsert=True
        )

    @wrap_storage_errors
    async def upsert_timesheet(self, tenant_id: str, employee_id: str, week_iso: str, fields: dict) -> None:
        await self.timesheets.update_one(
            {"_id": f"{tenant_id}:{employee_id}_{week_iso}"},
            {"$set": {
                **fields,
                "tenant_id": tenant_id,
                "employee_id": employee_id,
                "week_iso": week_iso,
                "computed_at": datetime.now(UTC),
            }},
            upsert=True
        )

    @wrap_storage_errors
    async def get_timesheet(self, tenant_id: str, employee_id: str, week_iso: str) -> Optional[dict]:
        document = await self.timesheets.find_one({"_id": f"{tenant_id}:{employee_id}_{week_iso}"})
        if document:
            document.pop("_id", None)
        return document

    @wrap_storage_errors
    async def save_shift(self, tenant_id: str, shift: Shift, shift_id: Optional[str] = None) -> Optional[str]:
        now = datetime.now(UTC)
        document = shift.model_dump(exclude={"id"})
        document.update({
            "tenant_id": tenant_id,
            "date": shift.date.isoformat(),
            "roster_month": shift.roster_month,
            "updated_at": now,
        })

        if shift_id:
            object_id = to_object_id(shift_id)
            if object_id is None:
                return None
            result = await self.shifts.update_one({"_id": object_id, "tenant_id": tenant_id}, {"$set": document})
            return shift_id if result.matched_count else None

        document["created_at"] = now
        result = await self.shifts.insert_one(document)
        return str(result.inserted_id)

    @wrap_storage_errors
    async def get_shift(self, tenant_id: str, shift_id: str) -> Optional[Shift]:
        object_id = to_object_id(shift_id)
        if object_id is None:
            return None
        document = await self.shifts.find_one({"_id": object_id, "tenant_id": tenant_id})
        return shift_from_document(document) if document else None

    @wrap_storage_errors
    async def cancel_shifts(self, tenant_id: str, employee_id: str, start: date, end: date, reason: str) -> List[Shift]:
        cancelled = []
        now = datetime.now(UTC)
        for month in roster_months(start, end):
            query = {
                "tenant_id": tenant_id,
                "roster_month": month,
                "employee_id": employee_id,
                "date": {"$gte": start.isoformat(), "$lte": end.isoformat()},
                "status": {"$ne": "cancelled"},
            }
            documents = await self.shifts.find(query).to_list(length=None)
            if not documents:
                continue
            await self.shifts.update_many(
                {"_id": {"$in": [document["_id"] for document in documents]}},
                {"$set": {"status": "cancelled", "cancel_reason": reason, "cancelled_at": now}}
            )
            cancelled.extend(shift_from_document(document) for document in documents)
        return cancelled

    @wrap_storage_errors
    async def create_leave_request(self, tenant_id: str, leave: LeaveRequest) -> str:
        document = leave_to_document(tenant_id, leave)
        document["created_at"] = datetime.now(UTC)
        result = await self.leave_requests.insert_one(document)
        return str(result.inserted_id)

    @wrap_storage_errors
    async def get_leave_request(self, tenant_id: str, leave_id: str) -> Optional[LeaveRequest]:
        object_id = to_object_id(leave_id)
        if object_id is None:
            return None
        document = await self.leave_requests.find_one({"_id": object_id, "tenant_id": tenant_id})
        return leave_from_document(document) if document else None

    @wrap_storage_errors
    async def list_leave_requests(self, tenant_id: str, employee_id: Optional[str] = None,
                                  status: Optional[str] = None) -> List[LeaveRequest]:
        query = {"tenant_id": tenant_id}
        if employee_id:
            query["employee_id"] = employee_id
        if status:
            query["status"] = status

        cursor = self.leave_requests.find(query).sort([("start_date", ASCENDING)])
        return [leave_from_document(document) async for document in cursor]

    @wrap_storage_errors
    async def set_leave_status(self, tenant_id: str, leave_id: str, status: str,
                               approver_note: Optional[str] = None) -> None:
        update = {"status": status, "edited_at": datetime.now(UTC)}
        if status == "approved":
            update["approved_at"] = update["edited_at"]
        if approver_note:
            update["approver_note"] = approver_note
        await self.leave_requests.update_one(
            {"_id": to_object_id(leave_id), "tenant_id": tenant_id},
            {"$set": update}
        )

    @wrap_storage_errors
    async def list_tenants(self) -> List[str]:
        return await self.shifts.distinct("tenant_id")

    @wrap_storage_errors
    async def list_employees_with_shifts(self, tenant_id: str, start: date, end: date) -> List[str]:
        return await self.shifts.distinct("employee_id", {
            "tenant_id": tenant_id,
            "roster_month": {"$in": roster_months(start, end)},
            "date": {"$gte": start.isoformat(), "$lte": end.isoformat()},
            "status": {"$ne": "cancelled"},
        })


def get_timesheet_store() -> TimesheetStore:
    return MongoTimesheetStore()
