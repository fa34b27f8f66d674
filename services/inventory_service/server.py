from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.config_loader import settings
from shared.constants import API_PREFIX
from shared.database import get_db
from shared.models import Employee
from shared.responses import ok
from services.auth_service.dependencies import get_current_employee
from services.inventory_service.models import (
    AdjustmentRequest, CurrentInventory, InventoryLogOut, InventoryStats,
)
from services.inventory_service.tools import (
    compute_current_inventory, inventory_stats, list_inventory_logs, adjust_inventory,
)

router = APIRouter(prefix=f"{API_PREFIX}/inventory", tags=["inventory"])


@router.get("/current")
def current_inventory_endpoint(
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    """Stock derived from the movement ledger."""
    return ok(CurrentInventory(
        product_name=settings.PRODUCT_NAME,
        current_stock=compute_current_inventory(db),
    ))


@router.get("/stats")
def inventory_stats_endpoint(
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return ok(InventoryStats.model_validate(inventory_stats(db), from_attributes=True))


@router.get("/logs")
def inventory_logs_endpoint(
    operation_type: Optional[str] = Query(None, description="in, out, return or adjustment"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    logs = list_inventory_logs(db, operation_type, date_from, date_to, limit)
    return ok([InventoryLogOut.model_validate(entry) for entry in logs])


@router.post("/adjust", status_code=201)
def adjust_inventory_endpoint(
    body: AdjustmentRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    entry = adjust_inventory(body.bags_added, body.bags_removed, body.notes, employee, db)
    return ok(InventoryLogOut.model_validate(entry), "Inventory adjustment recorded successfully")
