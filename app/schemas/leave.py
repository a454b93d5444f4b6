from datetime import date
from pydantic import BaseModel, Field
from typing import Optional, List


class CreateLeave(BaseModel):
    employee_id: str = Field(..., min_length=1)
    leave_type: str
    start_date: date
    end_date: date
    hours: float = Field(..., ge=0, description="Total leave hours for the whole start_date..end_date span.")
    note: Optional[str] = None


class LeaveDecision(BaseModel):
    note: Optional[str] = Field(None, description="Optional note from the approver.")


class LeaveList(BaseModel):
    leave_data: List[dict] = Field(
        ...,
        description="list of dictionaries"
    )
    class Config:
        json_schema_extra = {
            "example": {
                "leave_data": [
                    {
                        "leave_id": "65a4f0c2e1b2c3d4e5f60718",
                        "employee_id": "EMP001",
                        "leave_type": "sick",
                        "hours": 56,
                        "start_date": "2024-01-10",
                        "end_date": "2024-01-16",
                        "status": "approved"
                    }
                ]
            }
        }
