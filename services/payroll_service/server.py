from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.constants import API_PREFIX
from shared.database import get_db
from shared.models import Employee
from shared.responses import ok
from services.auth_service.dependencies import get_current_employee
from services.payroll_service.models import (
    SalaryRateUpdateRequest, SalaryRateOut, SalarySummary, DispatchRequest,
    AccountSalesRequest, DriverSalesOut, BonusCreateRequest, BonusUpdateRequest,
    BonusReviewRequest, BonusOut,
)
from services.payroll_service.tools import (
    get_salary_rates, update_salary_rate, compute_salary_summary, dispatch_driver,
    account_driver_sales, list_driver_sales,
)
from services.payroll_service.bonus_tools import (
    create_bonus, update_bonus, delete_bonus, review_bonus, list_bonuses,
)

router = APIRouter(prefix=API_PREFIX, tags=["payroll"])


# ============================================
# SALARY
# ============================================


@router.get("/salary/rates/{employee_id}")
def get_salary_rates_endpoint(
    employee_id: int,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    rates = get_salary_rates(employee_id, employee, db)
    return ok([SalaryRateOut.model_validate(r) for r in rates])


@router.put("/salary/rates/{employee_id}")
def update_salary_rate_endpoint(
    employee_id: int,
    body: SalaryRateUpdateRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    rate = update_salary_rate(employee_id, body.rate_type, body.rate_amount, employee, db)
    return ok(SalaryRateOut.model_validate(rate), "Salary rate updated successfully")


@router.get("/salary/summary/{employee_id}")
def salary_summary_endpoint(
    employee_id: int,
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    summary = compute_salary_summary(employee_id, employee, db, year=year, month=month)
    return ok(SalarySummary.model_validate(summary, from_attributes=True))


# ============================================
# DRIVER SALES
# ============================================


@router.post("/driver-sales/dispatch", status_code=201)
def dispatch_driver_endpoint(
    body: DispatchRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    sales_log = dispatch_driver(
        body.driver_id, body.driver_assistant_id, body.bags_dispatched, body.notes,
        employee, db,
    )
    return ok(DriverSalesOut.model_validate(sales_log), "Driver dispatched successfully")


@router.put("/driver-sales/{log_id}/account")
def account_driver_sales_endpoint(
    log_id: int,
    body: AccountSalesRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    sales_log, warnings = account_driver_sales(
        log_id,
        body.bags_sold_270,
        body.bags_sold_250,
        body.bags_returned,
        body.total_revenue,
        body.receptionist_notes,
        employee,
        db,
    )
    return ok(
        DriverSalesOut.model_validate(sales_log),
        "Driver sales accounted successfully",
        warnings=warnings,
    )


@router.get("/driver-sales/{driver_id}")
def list_driver_sales_endpoint(
    driver_id: int,
    status: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    logs = list_driver_sales(
        driver_id, employee, db, status=status, start_date=start_date, end_date=end_date,
    )
    return ok([DriverSalesOut.model_validate(log) for log in logs])


# ============================================
# BONUSES
# ============================================


@router.get("/bonuses")
def list_bonuses_endpoint(
    employee_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    bonuses = list_bonuses(
        employee, db, employee_id=employee_id, status=status,
        start_date=start_date, end_date=end_date,
    )
    return ok([BonusOut.model_validate(b) for b in bonuses])


@router.post("/bonuses", status_code=201)
def create_bonus_endpoint(
    body: BonusCreateRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    bonus = create_bonus(
        body.employee_id, body.amount, body.reason, employee, db, bonus_date=body.bonus_date,
    )
    return ok(BonusOut.model_validate(bonus), "Bonus created successfully")


@router.put("/bonuses/{bonus_id}/approve")
def approve_bonus_endpoint(
    bonus_id: int,
    body: Optional[BonusReviewRequest] = None,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    bonus = review_bonus(bonus_id, "approve", body.comment if body else None, employee, db)
    return ok(BonusOut.model_validate(bonus), "Bonus approved successfully")


@router.put("/bonuses/{bonus_id}/reject")
def reject_bonus_endpoint(
    bonus_id: int,
    body: Optional[BonusReviewRequest] = None,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    bonus = review_bonus(bonus_id, "reject", body.comment if body else None, employee, db)
    return ok(BonusOut.model_validate(bonus), "Bonus rejected successfully")


@router.put("/bonuses/{bonus_id}")
def update_bonus_endpoint(
    bonus_id: int,
    body: BonusUpdateRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    bonus = update_bonus(
        bonus_id, employee, db,
        amount=body.amount, reason=body.reason, bonus_date=body.bonus_date,
    )
    return ok(BonusOut.model_validate(bonus), "Bonus updated successfully")


@router.delete("/bonuses/{bonus_id}")
def delete_bonus_endpoint(
    bonus_id: int,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    delete_bonus(bonus_id, employee, db)
    return ok(None, "Bonus deleted successfully")
