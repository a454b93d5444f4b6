from pydantic import BaseModel, Field
from typing import Optional, List


class TimesheetResponse(BaseModel):
    employee_id: str
    week_iso: str
    regular_hours: float
    overtime_hours: float
    paid_leave_hours: float
    unpaid_leave_hours: float
    sundays: int


class PayrollPolicyUpdate(BaseModel):
    overtime_threshold: Optional[float] = Field(
        None,
        ge=0,
        description="Weekly hours above which worked hours count as overtime. Defaults to 40 when unset."
    )
    paid_leave_types: Optional[List[str]] = Field(None, description="Leave types paid to the employee.")
    unpaid_leave_types: Optional[List[str]] = Field(None, description="Leave types that are not paid.")
