API_PREFIX = "/api"

# Employee roles, as stored on employees.role
ADMIN = "Admin"
DIRECTOR = "Director"
MANAGER = "Manager"
RECEPTIONIST = "Receptionist"
STOREKEEPER = "StoreKeeper"
DRIVER = "Driver"
DRIVER_ASSISTANT = "Driver Assistant"
PACKER = "Packer"
LOADER = "Loader"

ROLES = (
    ADMIN, DIRECTOR, MANAGER, RECEPTIONIST, STOREKEEPER, DRIVER,
    DRIVER_ASSISTANT, PACKER, LOADER, "Sales", "Security", "Cleaner", "Operator",
)
ELEVATED_ROLES = (ADMIN, DIRECTOR)

EMPLOYEE_ACTIVE = "active"
EMPLOYEE_INACTIVE = "inactive"

BATCH_RECEIVED = "received"

ASSIGNMENT_STATUSES = ("pending_review", "approved", "rejected")
WORK_LOG_STATUSES = ("pending", "approved", "rejected")
PACKING_LOG_STATUSES = ("pending", "confirmed", "disputed", "approved", "rejected")
DRIVER_SALES_STATUSES = ("dispatched", "accounted")
BONUS_STATUSES = ("pending", "approved", "rejected")

# inventory_logs.operation_type
STOCK_IN = "in"
STOCK_OUT = "out"
STOCK_RETURN = "return"
STOCK_ADJUSTMENT = "adjustment"

DEFAULT_RATE_TYPE = "per_bag"


def normalize_role(role: str | None) -> str | None:
    """Map any casing of a role name onto its canonical spelling."""
    if role is None:
        return None
    lowered = role.strip().lower()
    for canonical in ROLES:
        if canonical.lower() == lowered:
            return canonical
    return role
