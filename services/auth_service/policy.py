"""Central role policy.

Every core operation names itself here once; tools call ``authorize`` before
touching any record. Operations missing from the table are denied.
"""

from shared.constants import (
    ADMIN, DIRECTOR, MANAGER, RECEPTIONIST, STOREKEEPER, PACKER, LOADER,
    ELEVATED_ROLES, normalize_role,
)
from shared.exceptions import ForbiddenError
from shared.models import Employee

POLICY: dict[str, frozenset[str]] = {
    # employee directory
    "employee.create": frozenset({ADMIN, DIRECTOR, MANAGER}),
    # intake / assignments
    "batch.create": frozenset({LOADER, STOREKEEPER, ADMIN, DIRECTOR}),
    "intake.create": frozenset({STOREKEEPER, ADMIN, DIRECTOR}),
    "assignment.create": frozenset({STOREKEEPER, ADMIN, DIRECTOR}),
    "assignment.review": frozenset({MANAGER}),
    "assignment.resubmit": frozenset({STOREKEEPER, ADMIN, DIRECTOR}),
    # work logs
    "work_log.submit": frozenset({PACKER, ADMIN, DIRECTOR}),
    "work_log.review": frozenset({MANAGER}),
    # packing logs
    "packing_log.create": frozenset({STOREKEEPER, ADMIN, DIRECTOR}),
    "packing_log.update": frozenset({STOREKEEPER, ADMIN, DIRECTOR}),
    "packing_log.delete": frozenset({STOREKEEPER, ADMIN, DIRECTOR}),
    "packing_log.confirm": frozenset({PACKER}),
    "packing_log.dispute": frozenset({PACKER}),
    "packing_log.review": frozenset({MANAGER}),
    # salary
    "salary.rate_update": frozenset({ADMIN, DIRECTOR, MANAGER}),
    "salary.view_any": frozenset({ADMIN, DIRECTOR, MANAGER, RECEPTIONIST}),
    # bonuses
    "bonus.create": frozenset({ADMIN, DIRECTOR, MANAGER}),
    "bonus.update": frozenset({ADMIN, DIRECTOR, MANAGER}),
    "bonus.delete": frozenset({ADMIN, DIRECTOR, MANAGER}),
    "bonus.review": frozenset({ADMIN, DIRECTOR}),
    "bonus.view_any": frozenset({ADMIN, DIRECTOR, MANAGER}),
    # driver dispatch
    "driver_sales.dispatch": frozenset({RECEPTIONIST, ADMIN, DIRECTOR}),
    "driver_sales.account": frozenset({RECEPTIONIST, ADMIN, DIRECTOR}),
    "driver_sales.view_any": frozenset({RECEPTIONIST, MANAGER, ADMIN, DIRECTOR}),
    # inventory
    "inventory.adjust": frozenset({STOREKEEPER, MANAGER, ADMIN, DIRECTOR}),
}


def allowed_roles(operation: str) -> frozenset[str]:
    return POLICY.get(operation, frozenset())


def is_allowed(operation: str, actor: Employee) -> bool:
    return normalize_role(actor.role) in allowed_roles(operation)


def is_elevated(actor: Employee) -> bool:
    return normalize_role(actor.role) in ELEVATED_ROLES


def authorize(operation: str, actor: Employee) -> None:
    """Raise ForbiddenError unless the actor's role may perform ``operation``."""
    if not is_allowed(operation, actor):
        raise ForbiddenError(
            f"Role '{actor.role}' is not allowed to perform {operation}"
        )
