from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


class ClockOutRequest(BaseModel):
    notes: Optional[str] = None


class AttendanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    attendance_date: date
    clock_in_time: datetime
    clock_out_time: Optional[datetime] = None
    total_hours: Optional[Decimal] = None
    status: Literal["present", "auto_closed"]
    notes: Optional[str] = None


class AttendanceStatus(BaseModel):
    is_clocked_in: bool
    session: Optional[AttendanceOut] = None
