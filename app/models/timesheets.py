from pydantic import BaseModel


class Timesheet(BaseModel):
    employee_id: str
    week_iso: str
    regular_hours: float = 0
    overtime_hours: float = 0
    paid_leave_hours: float = 0
    unpaid_leave_hours: float = 0
    sundays: int = 0

    def computed_fields(self) -> dict:
        """The five aggregated fields, written on every recomputation."""
        return self.model_dump(exclude={"employee_id", "week_iso"})
