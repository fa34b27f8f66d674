import calendar
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select, update, func
from sqlalchemy.orm import Session

from shared.activity import record_activity
from shared.config_loader import settings
from shared.constants import (
    DRIVER, DRIVER_ASSISTANT, PACKER, DRIVER_SALES_STATUSES, STOCK_OUT, STOCK_RETURN,
    DEFAULT_RATE_TYPE, normalize_role,
)
from shared.exceptions import (
    ValidationError, NotFoundError, InvalidStateError, ForbiddenError, ConflictError,
)
from shared.logger import get_logger
from shared.models import DriverSalesLog, Employee, PackingLog, SalaryRate
from services.auth_service.policy import authorize, is_allowed
from services.inventory_service.tools import record_movement, compute_current_inventory
from services.payroll_service.bonus_tools import approved_bonus_total
from services.workflow_service.intake_tools import require_employee

logger = get_logger("payroll.tools")


def _get_employee(db: Session, employee_id: int, lock: bool = False) -> Employee:
    employee = db.get(Employee, employee_id, with_for_update=lock)
    if employee is None:
        raise NotFoundError(f"Employee {employee_id} not found")
    return employee


def _ensure_self_or(operation: str, employee_id: int, actor: Employee) -> None:
    if actor.id != employee_id and not is_allowed(operation, actor):
        raise ForbiddenError("You can only view your own records")


# ============================================
# SALARY RATES
# ============================================


def get_salary_rates(employee_id: int, actor: Employee, db: Session) -> list[SalaryRate]:
    _ensure_self_or("salary.view_any", employee_id, actor)
    _get_employee(db, employee_id)
    return list(
        db.execute(
            select(SalaryRate)
            .where(SalaryRate.employee_id == employee_id, SalaryRate.is_active.is_(True))
            .order_by(SalaryRate.created_at.desc(), SalaryRate.id.desc())
        ).scalars().all()
    )


def update_salary_rate(
    employee_id: int,
    rate_type: str | None,
    rate_amount: Decimal,
    actor: Employee,
    db: Session,
) -> SalaryRate:
    """Versioned rate change: the current active rate is retired, never edited."""
    authorize("salary.rate_update", actor)

    rate_type = (rate_type or DEFAULT_RATE_TYPE).strip()
    if not rate_type:
        raise ValidationError("rate_type is required")
    if rate_amount is None or Decimal(rate_amount) < 0:
        raise ValidationError("rate_amount cannot be negative")

    # Locking the employee row serialises concurrent rate changes for the same person.
    employee = _get_employee(db, employee_id, lock=True)

    now = datetime.utcnow()
    db.execute(
        update(SalaryRate)
        .where(
            SalaryRate.employee_id == employee_id,
            SalaryRate.rate_type == rate_type,
            SalaryRate.is_active.is_(True),
        )
        .values(is_active=False, updated_at=now)
        .execution_options(synchronize_session="fetch")
    )

    rate = SalaryRate(
        employee_id=employee_id,
        rate_type=rate_type,
        rate_amount=Decimal(rate_amount),
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(rate)
    db.flush()

    record_activity(
        db, actor.id, "salary_rate_updated",
        f"Set {rate_type} rate for {employee.name} to {rate.rate_amount}",
    )
    logger.info(f"Salary rate {rate.id} active for employee {employee_id} ({rate_type})")
    return rate


# ============================================
# SALARY SUMMARY
# ============================================


def salary_period(year: int | None, month: int | None) -> dict:
    today = datetime.utcnow().date()
    year = today.year if year is None else year
    month = today.month if month is None else month
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if not 1 <= year <= 9999:
        raise ValidationError("year must be between 1 and 9999")

    last_day = calendar.monthrange(year, month)[1]
    return {
        "year": year,
        "month": month,
        "start_date": date(year, month, 1),
        "end_date": date(year, month, last_day),
    }


def _active_rate(db: Session, employee_id: int) -> SalaryRate | None:
    return db.execute(
        select(SalaryRate)
        .where(SalaryRate.employee_id == employee_id, SalaryRate.is_active.is_(True))
        .order_by(SalaryRate.created_at.desc(), SalaryRate.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def _bags_for_period(db: Session, employee: Employee, period: dict) -> int:
    role = normalize_role(employee.role)
    start, end = period["start_date"], period["end_date"]

    if role == PACKER:
        query = select(func.coalesce(func.sum(PackingLog.bags_packed), 0)).where(
            PackingLog.packer_id == employee.id,
            PackingLog.status == "approved",
            PackingLog.packing_date.between(start, end),
        )
    elif role in (DRIVER, DRIVER_ASSISTANT):
        column = (
            DriverSalesLog.driver_id if role == DRIVER else DriverSalesLog.driver_assistant_id
        )
        query = select(
            func.coalesce(func.sum(DriverSalesLog.bags_sold_270 + DriverSalesLog.bags_sold_250), 0)
        ).where(
            column == employee.id,
            DriverSalesLog.status == "accounted",
            DriverSalesLog.delivery_date.between(start, end),
        )
    else:
        return 0

    return int(db.execute(query).scalar_one())


def compute_salary_summary(
    employee_id: int,
    actor: Employee,
    db: Session,
    year: int | None = None,
    month: int | None = None,
) -> dict:
    """Monthly earnings derived from approved packing logs or accounted sales.

    Recomputed on every call from independent reads. Approved bonuses in the
    period are reported beside the earnings. An employee without an
    active rate earns 0 rather than raising.
    """
    _ensure_self_or("salary.view_any", employee_id, actor)
    period = salary_period(year, month)
    employee = _get_employee(db, employee_id)

    rate = _active_rate(db, employee_id)
    total_bags = _bags_for_period(db, employee, period)
    rate_amount = Decimal(rate.rate_amount) if rate else Decimal("0")

    return {
        "employee": employee,
        "salary_rate": rate,
        "total_bags": total_bags,
        "total_earnings": Decimal(total_bags) * rate_amount,
        "total_bonuses": approved_bonus_total(
            db, employee_id, period["start_date"], period["end_date"]
        ),
        "period": period,
    }


# ============================================
# DRIVER DISPATCH / SETTLEMENT
# ============================================


def dispatch_driver(
    driver_id: int,
    driver_assistant_id: int | None,
    bags_dispatched: int,
    notes: str | None,
    actor: Employee,
    db: Session,
) -> DriverSalesLog:
    authorize("driver_sales.dispatch", actor)

    if bags_dispatched is None or bags_dispatched <= 0:
        raise ValidationError("bags_dispatched must be greater than zero")
    require_employee(db, driver_id, DRIVER, "Driver")
    if driver_assistant_id is not None:
        require_employee(db, driver_assistant_id, DRIVER_ASSISTANT, "Driver assistant")

    stock = compute_current_inventory(db)
    if bags_dispatched > stock:
        logger.warning(f"Dispatching {bags_dispatched} bags with only {stock} in stock")

    now = datetime.utcnow()
    sales_log = DriverSalesLog(
        driver_id=driver_id,
        driver_assistant_id=driver_assistant_id,
        receptionist_id=actor.id,
        bags_dispatched=bags_dispatched,
        bags_sold_270=0,
        bags_sold_250=0,
        bags_returned=0,
        total_revenue=Decimal("0"),
        expected_revenue=Decimal(bags_dispatched * settings.STANDARD_BAG_PRICE),
        delivery_date=now.date(),
        status="dispatched",
        driver_notes=notes,
        dispatched_at=now,
    )
    db.add(sales_log)
    db.flush()

    record_movement(
        db,
        -bags_dispatched,
        STOCK_OUT,
        f"Driver dispatch {sales_log.id}",
        employee_id=actor.id,
        source_type="driver_dispatch",
        source_id=sales_log.id,
    )
    record_activity(
        db, actor.id, "driver_dispatched",
        f"Dispatched {bags_dispatched} bags to driver {driver_id}",
    )
    logger.info(f"Driver sales log {sales_log.id}: {bags_dispatched} bags dispatched")
    return sales_log


def account_driver_sales(
    log_id: int,
    bags_sold_270: int,
    bags_sold_250: int,
    bags_returned: int,
    total_revenue: Decimal,
    receptionist_notes: str | None,
    actor: Employee,
    db: Session,
) -> tuple[DriverSalesLog, list[str]]:
    """Settle a dispatch. ``total_revenue`` is stored as submitted; mismatches
    against the price list come back as warnings, not errors."""
    authorize("driver_sales.account", actor)

    counts = {
        "bags_sold_270": bags_sold_270,
        "bags_sold_250": bags_sold_250,
        "bags_returned": bags_returned,
    }
    for field, value in counts.items():
        if value is None or value < 0:
            raise ValidationError(f"{field} cannot be negative")
    if total_revenue is None or Decimal(total_revenue) < 0:
        raise ValidationError("total_revenue cannot be negative")

    sales_log = db.get(DriverSalesLog, log_id)
    if sales_log is None:
        raise NotFoundError(f"Driver sales log {log_id} not found")
    if sales_log.status != "dispatched":
        raise InvalidStateError(f"Driver sales log {log_id} has already been accounted")

    accounted = bags_sold_270 + bags_sold_250 + bags_returned
    if accounted > sales_log.bags_dispatched:
        raise ValidationError(
            f"Sold and returned bags ({accounted}) exceed bags dispatched "
            f"({sales_log.bags_dispatched})"
        )

    total_revenue = Decimal(total_revenue)
    computed = Decimal(
        bags_sold_270 * settings.PREMIUM_BAG_PRICE + bags_sold_250 * settings.STANDARD_BAG_PRICE
    )
    discrepancy = computed - total_revenue

    warnings = []
    if discrepancy != 0:
        warnings.append(
            f"Submitted revenue {total_revenue} differs from computed revenue {computed}"
        )
    if accounted < sales_log.bags_dispatched:
        warnings.append(f"{sales_log.bags_dispatched - accounted} dispatched bags are unaccounted for")

    result = db.execute(
        update(DriverSalesLog)
        .where(DriverSalesLog.id == log_id, DriverSalesLog.status == "dispatched")
        .values(
            **counts,
            total_revenue=total_revenue,
            revenue_discrepancy=discrepancy,
            receptionist_notes=receptionist_notes,
            status="accounted",
            accounted_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConflictError(
            f"Driver sales log {log_id} was modified by another request; reload and retry"
        )
    db.refresh(sales_log)

    if bags_returned:
        record_movement(
            db,
            bags_returned,
            STOCK_RETURN,
            f"Returned from driver dispatch {log_id}",
            employee_id=actor.id,
            source_type="driver_dispatch",
            source_id=log_id,
        )

    for warning in warnings:
        logger.warning(f"Driver sales log {log_id}: {warning}")
    record_activity(
        db, actor.id, "driver_sales_accounted",
        f"Accounted driver sales log {log_id}: revenue {total_revenue}",
    )
    return sales_log, warnings


def list_driver_sales(
    driver_id: int,
    actor: Employee,
    db: Session,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[DriverSalesLog]:
    _ensure_self_or("driver_sales.view_any", driver_id, actor)
    if status and status not in DRIVER_SALES_STATUSES:
        raise ValidationError(f"Invalid status. Allowed: {list(DRIVER_SALES_STATUSES)}")

    query = (
        select(DriverSalesLog)
        .where(DriverSalesLog.driver_id == driver_id)
        .order_by(DriverSalesLog.delivery_date.desc(), DriverSalesLog.dispatched_at.desc())
    )
    if status:
        query = query.where(DriverSalesLog.status == status)
    if start_date:
        query = query.where(DriverSalesLog.delivery_date >= start_date)
    if end_date:
        query = query.where(DriverSalesLog.delivery_date <= end_date)
    return list(db.execute(query).scalars().all())
