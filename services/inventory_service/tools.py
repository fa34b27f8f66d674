from datetime import date, datetime, time

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from shared.activity import record_activity
from shared.config_loader import settings
from shared.constants import STOCK_IN, STOCK_OUT, STOCK_RETURN, STOCK_ADJUSTMENT
from shared.exceptions import ValidationError
from shared.logger import get_logger
from shared.models import Employee, InventoryLog
from services.auth_service.policy import authorize

logger = get_logger("inventory.tools")

OPERATION_TYPES = (STOCK_IN, STOCK_OUT, STOCK_RETURN, STOCK_ADJUSTMENT)


def record_movement(
    db: Session,
    quantity_change: int,
    operation_type: str,
    reason: str,
    employee_id: int | None = None,
    source_type: str | None = None,
    source_id: int | None = None,
) -> InventoryLog:
    """Append one signed movement to the stock ledger."""
    if operation_type not in OPERATION_TYPES:
        raise ValueError(f"Unknown inventory operation '{operation_type}'")

    entry = InventoryLog(
        product_name=settings.PRODUCT_NAME,
        quantity_change=quantity_change,
        operation_type=operation_type,
        reason=reason,
        source_type=source_type,
        source_id=source_id,
        employee_id=employee_id,
        created_at=datetime.utcnow(),
    )
    db.add(entry)
    db.flush()
    logger.info(f"Stock {operation_type} {quantity_change:+d} ({reason})")
    return entry


def compute_current_inventory(db: Session) -> int:
    """Current stock is the running total of the movement ledger, never a stored counter."""
    total = db.execute(
        select(func.coalesce(func.sum(InventoryLog.quantity_change), 0))
        .where(InventoryLog.product_name == settings.PRODUCT_NAME)
    ).scalar_one()
    return int(total)


def inventory_stats(db: Session) -> dict:
    current = compute_current_inventory(db)
    total_movements = db.execute(
        select(func.count(InventoryLog.id))
        .where(InventoryLog.product_name == settings.PRODUCT_NAME)
    ).scalar_one()
    recent = db.execute(
        select(InventoryLog)
        .where(InventoryLog.product_name == settings.PRODUCT_NAME)
        .order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc())
        .limit(10)
    ).scalars().all()

    return {
        "product_name": settings.PRODUCT_NAME,
        "current_stock": current,
        "low_stock_threshold": settings.LOW_STOCK_THRESHOLD,
        "is_low_stock": current < settings.LOW_STOCK_THRESHOLD,
        "total_movements": total_movements,
        "recent_movements": list(recent),
    }


def list_inventory_logs(
    db: Session,
    operation_type: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 100,
) -> list[InventoryLog]:
    if operation_type and operation_type not in OPERATION_TYPES:
        raise ValidationError(f"Invalid operation_type. Allowed: {list(OPERATION_TYPES)}")
    if date_from and date_to and date_from > date_to:
        date_from, date_to = date_to, date_from

    query = (
        select(InventoryLog)
        .where(InventoryLog.product_name == settings.PRODUCT_NAME)
        .order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc())
        .limit(limit)
    )
    if operation_type:
        query = query.where(InventoryLog.operation_type == operation_type)
    if date_from:
        query = query.where(InventoryLog.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.where(InventoryLog.created_at <= datetime.combine(date_to, time.max))

    return list(db.execute(query).scalars().all())


def adjust_inventory(
    bags_added: int,
    bags_removed: int,
    notes: str | None,
    actor: Employee,
    db: Session,
) -> InventoryLog:
    authorize("inventory.adjust", actor)

    if bags_added < 0 or bags_removed < 0:
        raise ValidationError("Bag counts cannot be negative")
    change = bags_added - bags_removed
    if change == 0:
        raise ValidationError("Adjustment must change the stock level")

    current = compute_current_inventory(db)
    if current + change < 0:
        raise ValidationError(
            f"Adjustment would make stock negative (current stock {current})"
        )

    entry = record_movement(
        db,
        change,
        STOCK_ADJUSTMENT,
        notes or f"Manual adjustment: {bags_added} added, {bags_removed} removed",
        employee_id=actor.id,
        source_type="adjustment",
    )
    record_activity(
        db, actor.id, "inventory_adjusted",
        f"Inventory adjusted: {bags_added} added, {bags_removed} removed. "
        f"New stock: {current + change}",
    )
    return entry
