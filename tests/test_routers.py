"""API tests for shifts, leave requests, timesheets and payroll policy."""

import pytest
from httpx import AsyncClient

from exceptions import StorageError
from tests.conftest import EMPLOYEE_ID, TENANT_ID, make_leave, make_shift

BASE = f"/tenants/{TENANT_ID}"


def shift_payload(day: str, start: str = "09:00", end: str = "17:00", employee_id: str = EMPLOYEE_ID) -> dict:
    return {"employee_id": employee_id, "date": day, "start": start, "end": end}


# ===== Shifts =====

@pytest.mark.asyncio
async def test_create_shift_recomputes_timesheet(async_client: AsyncClient):
    resp = await async_client.post(f"{BASE}/shifts/", json=shift_payload("2024-01-21", "22:00", "06:00"))
    assert resp.status_code == 201
    data = resp.json()
    assert data["hours"] == 8.0
    assert data["week_iso"] == "2024-W03"
    assert data["timesheet_recomputed"] is True

    resp = await async_client.get(f"{BASE}/timesheets/{EMPLOYEE_ID}/2024-W03")
    assert resp.status_code == 200
    assert resp.json() == {
        "employee_id": EMPLOYEE_ID,
        "week_iso": "2024-W03",
        "regular_hours": 8.0,
        "overtime_hours": 0.0,
        "paid_leave_hours": 0.0,
        "unpaid_leave_hours": 0.0,
        "sundays": 1,
    }


@pytest.mark.asyncio
async def test_create_shift_rejects_malformed_time(async_client: AsyncClient):
    resp = await async_client.post(f"{BASE}/shifts/", json=shift_payload("2024-01-15", "9am", "17:00"))
    assert resp.status_code == 422
    assert "Invalid time" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_create_overlapping_shift_conflicts(async_client: AsyncClient, store):
    store.add_shift(TENANT_ID, make_shift("2024-01-15", "09:00", "17:00"))
    resp = await async_client.post(f"{BASE}/shifts/", json=shift_payload("2024-01-15", "12:00", "20:00"))
    assert resp.status_code == 409
    assert "overlaps" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_create_shift_on_approved_leave_conflicts(async_client: AsyncClient, store):
    store.add_leave(TENANT_ID, make_leave("2024-01-15", "2024-01-19", 40))
    resp = await async_client.post(f"{BASE}/shifts/", json=shift_payload("2024-01-17"))
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_shift_is_kept_when_timesheet_write_fails(async_client: AsyncClient, store, monkeypatch):
    async def failing_upsert(*args, **kwargs):
        raise StorageError("upsert_timesheet failed: connection reset")

    monkeypatch.setattr(store, "upsert_timesheet", failing_upsert)

    resp = await async_client.post(f"{BASE}/shifts/", json=shift_payload("2024-01-15"))
    assert resp.status_code == 201
    assert resp.json()["timesheet_recomputed"] is False
    assert list(store.shifts[TENANT_ID]) == [resp.json()["shift_id"]]


@pytest.mark.asyncio
async def test_update_shift_moves_hours_between_weeks(async_client: AsyncClient, store):
    shift_id = store.add_shift(TENANT_ID, make_shift("2024-01-19"))
    await async_client.post(f"{BASE}/timesheets/{EMPLOYEE_ID}/2024-W03/recompute")

    resp = await async_client.put(f"{BASE}/shifts/{shift_id}", json=shift_payload("2024-01-22", "09:00", "19:00"))
    assert resp.status_code == 200
    assert resp.json()["week_iso"] == "2024-W04"

    old_week = await async_client.get(f"{BASE}/timesheets/{EMPLOYEE_ID}/2024-W03")
    new_week = await async_client.get(f"{BASE}/timesheets/{EMPLOYEE_ID}/2024-W04")
    assert old_week.json()["regular_hours"] == 0
    assert new_week.json()["regular_hours"] == 10


@pytest.mark.asyncio
async def test_update_shift_does_not_conflict_with_itself(async_client: AsyncClient, store):
    shift_id = store.add_shift(TENANT_ID, make_shift("2024-01-15", "09:00", "17:00"))
    resp = await async_client.put(f"{BASE}/shifts/{shift_id}", json=shift_payload("2024-01-15", "10:00", "18:00"))
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_update_unknown_shift_is_not_found(async_client: AsyncClient):
    resp = await async_client.put(f"{BASE}/shifts/does-not-exist", json=shift_payload("2024-01-15"))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_shifts_for_week(async_client: AsyncClient, store):
    store.add_shift(TENANT_ID, make_shift("2024-01-31"))
    store.add_shift(TENANT_ID, make_shift("2024-02-02"))
    store.add_shift(TENANT_ID, make_shift("2024-02-05"))

    resp = await async_client.get(f"{BASE}/shifts/", params={"employee_id": EMPLOYEE_ID, "week_iso": "2024-W05"})
    assert resp.status_code == 200
    assert [shift["date"] for shift in resp.json()["shifts"]] == ["2024-01-31", "2024-02-02"]


# ===== Leave requests =====

@pytest.mark.asyncio
async def test_leave_request_lifecycle(async_client: AsyncClient, store):
    store.add_shift(TENANT_ID, make_shift("2024-01-16"))
    store.add_shift(TENANT_ID, make_shift("2024-01-18"))

    resp = await async_client.post(f"{BASE}/leave-requests/", json={
        "employee_id": EMPLOYEE_ID,
        "leave_type": "sick",
        "start_date": "2024-01-10",
        "end_date": "2024-01-16",
        "hours": 56,
    })
    assert resp.status_code == 201
    leave_id = resp.json()["leave_id"]

    resp = await async_client.post(f"{BASE}/leave-requests/{leave_id}/approve", json={"note": "get well"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["cancelled_shifts"] == 1
    assert data["recomputed_weeks"] == ["2024-W02", "2024-W03"]

    timesheet = (await async_client.get(f"{BASE}/timesheets/{EMPLOYEE_ID}/2024-W03")).json()
    assert timesheet["paid_leave_hours"] == pytest.approx(16)
    assert timesheet["regular_hours"] == 8

    resp = await async_client.post(f"{BASE}/leave-requests/{leave_id}/approve")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_approval_stands_when_other_leave_is_malformed(async_client: AsyncClient, store):
    store.add_shift(TENANT_ID, make_shift("2024-01-17"))
    store.add_leave(TENANT_ID, make_leave("2024-01-15", "2024-01-15", 8).model_copy(update={"hours": None}))
    leave_id = store.add_leave(TENANT_ID, make_leave("2024-01-17", "2024-01-17", 8, status="pending"))

    resp = await async_client.post(f"{BASE}/leave-requests/{leave_id}/approve")
    assert resp.status_code == 200
    data = resp.json()
    assert data["timesheet_recomputed"] is False
    assert data["cancelled_shifts"] == 1
    assert data["recomputed_weeks"] == []
    assert store.leave_requests[TENANT_ID][leave_id].status == "approved"
    assert store.upserts == []


@pytest.mark.asyncio
async def test_approval_can_be_retried_after_storage_failure(async_client: AsyncClient, store, monkeypatch):
    store.add_shift(TENANT_ID, make_shift("2024-01-17"))
    leave_id = store.add_leave(TENANT_ID, make_leave("2024-01-17", "2024-01-17", 8, status="pending"))
    cancel_shifts = store.cancel_shifts

    async def failing_cancel(*args, **kwargs):
        raise StorageError("cancel_shifts failed: connection reset")

    monkeypatch.setattr(store, "cancel_shifts", failing_cancel)
    resp = await async_client.post(f"{BASE}/leave-requests/{leave_id}/approve")
    assert resp.status_code == 500
    assert store.leave_requests[TENANT_ID][leave_id].status == "pending"

    monkeypatch.setattr(store, "cancel_shifts", cancel_shifts)
    resp = await async_client.post(f"{BASE}/leave-requests/{leave_id}/approve")
    assert resp.status_code == 200
    assert resp.json()["timesheet_recomputed"] is True
    assert resp.json()["recomputed_weeks"] == ["2024-W03"]


@pytest.mark.asyncio
async def test_reject_leave_request(async_client: AsyncClient, store):
    leave_id = store.add_leave(TENANT_ID, make_leave("2024-01-15", "2024-01-15", 8, status="pending"))

    resp = await async_client.post(f"{BASE}/leave-requests/{leave_id}/reject")
    assert resp.status_code == 200
    assert store.leave_requests[TENANT_ID][leave_id].status == "rejected"
    assert store.upserts == []

    resp = await async_client.get(f"{BASE}/leave-requests/", params={"status": "rejected"})
    assert [leave["leave_id"] for leave in resp.json()["leave_data"]] == [leave_id]


@pytest.mark.asyncio
async def test_leave_request_with_unknown_type_is_rejected(async_client: AsyncClient):
    resp = await async_client.post(f"{BASE}/leave-requests/", json={
        "employee_id": EMPLOYEE_ID,
        "leave_type": "sabbatical",
        "start_date": "2024-01-15",
        "end_date": "2024-01-15",
        "hours": 8,
    })
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_leave_request_ending_before_start_is_rejected(async_client: AsyncClient):
    resp = await async_client.post(f"{BASE}/leave-requests/", json={
        "employee_id": EMPLOYEE_ID,
        "leave_type": "vacation",
        "start_date": "2024-01-16",
        "end_date": "2024-01-15",
        "hours": 8,
    })
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_approve_unknown_leave_is_not_found(async_client: AsyncClient):
    resp = await async_client.post(f"{BASE}/leave-requests/unknown/approve")
    assert resp.status_code == 404


# ===== Timesheets and payroll policy =====

@pytest.mark.asyncio
async def test_get_missing_timesheet(async_client: AsyncClient):
    resp = await async_client.get(f"{BASE}/timesheets/{EMPLOYEE_ID}/2024-W03")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_invalid_week_is_unprocessable(async_client: AsyncClient):
    resp = await async_client.post(f"{BASE}/timesheets/{EMPLOYEE_ID}/2024-03/recompute")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_payroll_policy_drives_overtime(async_client: AsyncClient, store):
    for day in ["2024-01-15", "2024-01-16", "2024-01-17", "2024-01-18", "2024-01-19"]:
        store.add_shift(TENANT_ID, make_shift(day, "08:00", "17:00"))

    resp = await async_client.get(f"{BASE}/payroll-policy")
    assert resp.json()["overtime_threshold"] == 40
    assert resp.json()["threshold_defaulted"] is True

    resp = await async_client.put(f"{BASE}/payroll-policy", json={"overtime_threshold": 44})
    assert resp.status_code == 200
    assert store.policies[TENANT_ID] == {"overtime_threshold": 44}

    resp = await async_client.post(f"{BASE}/timesheets/{EMPLOYEE_ID}/2024-W03/recompute")
    assert resp.status_code == 200
    assert resp.json()["regular_hours"] == 44
    assert resp.json()["overtime_hours"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("stored,defaulted", [(-3, True), ("44", True), (True, True), (44, False), (40, False)])
async def test_payroll_policy_reports_defaulted_threshold(async_client: AsyncClient, store, stored, defaulted):
    store.policies[TENANT_ID] = {"overtime_threshold": stored}

    resp = await async_client.get(f"{BASE}/payroll-policy")
    assert resp.status_code == 200
    assert resp.json()["threshold_defaulted"] is defaulted
    assert resp.json()["overtime_threshold"] == (40 if defaulted else stored)


@pytest.mark.asyncio
async def test_payroll_policy_rejects_overlapping_leave_types(async_client: AsyncClient):
    resp = await async_client.put(f"{BASE}/payroll-policy", json={
        "paid_leave_types": ["vacation"],
        "unpaid_leave_types": ["vacation"],
    })
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_payroll_policy_rejects_negative_threshold(async_client: AsyncClient):
    resp = await async_client.put(f"{BASE}/payroll-policy", json={"overtime_threshold": -5})
    assert resp.status_code == 422
