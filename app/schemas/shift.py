from datetime import date
from pydantic import BaseModel, Field
from typing import Optional, List


class CreateShift(BaseModel):
    employee_id: str = Field(..., min_length=1, description="Employee the shift belongs to.")
    date: date # calendar date the shift starts on
    start: str = Field(..., description="Start time, HH:MM (24-hour).")
    end: str = Field(..., description="End time, HH:MM (24-hour). Earlier than start for overnight shifts.")
    role: Optional[str] = Field(None, description="Role worked during the shift.")


class ShiftSaved(BaseModel):
    shift_id: str
    hours: float
    week_iso: str
    timesheet_recomputed: bool
    message: str


class ShiftList(BaseModel):
    week_iso: str
    shifts: List[dict] = Field(
        ...,
        description="list of dictionaries"
    )
    class Config:
        json_schema_extra = {
            "example": {
                "week_iso": "2024-W03",
                "shifts": [
                    {
                        "employee_id": "EMP001",
                        "date": "2024-01-15",
                        "start": "22:00",
                        "end": "06:00",
                        "hours": 8.0,
                        "status": "scheduled"
                    }
                ]
            }
        }
