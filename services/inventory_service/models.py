from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

OperationType = Literal["in", "out", "return", "adjustment"]


class AdjustmentRequest(BaseModel):
    bags_added: int = Field(0, ge=0)
    bags_removed: int = Field(0, ge=0)
    notes: Optional[str] = None


class InventoryLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_name: str
    quantity_change: int
    operation_type: OperationType
    reason: Optional[str] = None
    source_type: Optional[str] = None
    source_id: Optional[int] = None
    employee_id: Optional[int] = None
    performed_by_name: Optional[str] = None
    created_at: datetime


class CurrentInventory(BaseModel):
    product_name: str
    current_stock: int


class InventoryStats(BaseModel):
    product_name: str
    current_stock: int
    low_stock_threshold: int
    is_low_stock: bool
    total_movements: int
    recent_movements: list[InventoryLogOut]
