from pydantic import BaseModel
from typing import Optional, List


class TenantPayrollPolicy(BaseModel):
    overtime_threshold: Optional[float] = None
    paid_leave_types: Optional[List[str]] = None
    unpaid_leave_types: Optional[List[str]] = None
