from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

from services.auth_service.models import EmployeeOut

DriverSalesStatus = Literal["dispatched", "accounted"]


# ---- Salary ----


class SalaryRateUpdateRequest(BaseModel):
    rate_type: str = "per_bag"
    rate_amount: Decimal


class SalaryRateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    rate_type: str
    rate_amount: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime


class SalaryPeriod(BaseModel):
    year: int
    month: int
    start_date: date
    end_date: date


class SalarySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee: EmployeeOut
    salary_rate: Optional[SalaryRateOut] = None
    total_bags: int
    total_earnings: Decimal
    total_bonuses: Decimal = Decimal("0")
    period: SalaryPeriod


# ---- Driver sales ----


class DispatchRequest(BaseModel):
    driver_id: int
    driver_assistant_id: Optional[int] = None
    bags_dispatched: int
    notes: Optional[str] = None


class AccountSalesRequest(BaseModel):
    bags_sold_270: int = 0
    bags_sold_250: int = 0
    bags_returned: int = 0
    total_revenue: Decimal
    receptionist_notes: Optional[str] = None


class DriverSalesOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    driver_id: int
    driver_name: Optional[str] = None
    driver_assistant_id: Optional[int] = None
    assistant_name: Optional[str] = None
    receptionist_id: int
    receptionist_name: Optional[str] = None
    bags_dispatched: int
    bags_sold_270: int
    bags_sold_250: int
    bags_returned: int
    total_revenue: Decimal
    expected_revenue: Decimal
    revenue_discrepancy: Optional[Decimal] = None
    delivery_date: date
    status: DriverSalesStatus
    driver_notes: Optional[str] = None
    receptionist_notes: Optional[str] = None
    dispatched_at: datetime
    accounted_at: Optional[datetime] = None


# ---- Bonuses ----

BonusStatus = Literal["pending", "approved", "rejected"]


class BonusCreateRequest(BaseModel):
    employee_id: int
    amount: Decimal
    reason: str
    bonus_date: Optional[date] = None


class BonusUpdateRequest(BaseModel):
    amount: Optional[Decimal] = None
    reason: Optional[str] = None
    bonus_date: Optional[date] = None


class BonusReviewRequest(BaseModel):
    comment: Optional[str] = None


class BonusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    employee_name: Optional[str] = None
    amount: Decimal
    reason: str
    bonus_date: date
    status: BonusStatus
    created_by: int
    created_by_name: Optional[str] = None
    approved_by: Optional[int] = None
    approved_by_name: Optional[str] = None
    approved_at: Optional[datetime] = None
    review_comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime
