from datetime import date, datetime
from pydantic import BaseModel, field_validator
from typing import Optional


class LeaveRequest(BaseModel):
    id: Optional[str] = None
    employee_id: str
    leave_type: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    hours: Optional[float] = None # total hours for the whole start_date..end_date span
    note: Optional[str] = None
    approver_note: Optional[str] = None
    status: str = "pending" # or approved/rejected

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def strip_time(cls, value):
        if isinstance(value, datetime):
            return value.date()
        return value
