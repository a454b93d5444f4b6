from datetime import date, datetime
from pydantic import BaseModel, field_validator
from typing import Optional

from utils.week_utils import roster_month


class Shift(BaseModel):
    id: Optional[str] = None
    employee_id: str
    date: date
    start: str # HH:MM, 24-hour
    end: str # HH:MM, less than start for overnight shifts
    hours: Optional[float] = None # derived from start/end when absent
    role: Optional[str] = None
    status: str = "scheduled" # or cancelled
    cancel_reason: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def strip_time(cls, value):
        if isinstance(value, datetime):
            return value.date()
        return value

    @property
    def roster_month(self) -> str:
        return roster_month(self.date)
