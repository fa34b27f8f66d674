from sqlalchemy import select, func
from sqlalchemy.orm import Session

from shared.activity import record_activity
from shared.config_loader import settings
from shared.constants import ROLES, ADMIN, normalize_role
from shared.exceptions import InvalidCredentials, InactiveAccount, ValidationError, ConflictError
from shared.logger import get_logger
from shared.models import Employee
from services.auth_service.authenticator import hash_pin, verify_pin
from services.auth_service.policy import authorize
from services.auth_service.token_manager import create_access_token

logger = get_logger("auth.tools")


def login(email: str, pin: str, db: Session) -> dict:
    employee = db.execute(
        select(Employee).where(func.lower(Employee.email) == email.lower())
    ).scalar_one_or_none()

    if not employee or not verify_pin(pin, employee.pin_hash):
        logger.warning(f"Failed login attempt for email: {email}")
        raise InvalidCredentials()

    if not employee.is_active:
        logger.warning(f"Login attempt on inactive account: {employee.id}")
        raise InactiveAccount()

    access_token = create_access_token(employee.id, employee.role)
    record_activity(db, employee.id, "login", f"{employee.name} logged in")

    logger.info(f"Login for employee: {employee.id} ({employee.role})")

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "employee": employee,
    }


def create_employee(
    name: str,
    email: str,
    phone: str | None,
    role: str,
    pin: str,
    actor: Employee,
    db: Session,
) -> Employee:
    authorize("employee.create", actor)

    canonical_role = normalize_role(role)
    if canonical_role not in ROLES:
        raise ValidationError(f"Unknown role '{role}'. Allowed: {list(ROLES)}")

    existing = db.execute(
        select(Employee).where(func.lower(Employee.email) == email.lower())
    ).scalar_one_or_none()
    if existing:
        raise ConflictError("Email already registered")

    employee = Employee(
        name=name,
        email=email,
        phone=phone,
        role=canonical_role,
        pin_hash=hash_pin(pin),
        status="active",
    )
    db.add(employee)
    db.flush()

    record_activity(
        db, actor.id, "employee_created", f"Created {canonical_role} account {email}"
    )
    logger.info(f"Created employee: {employee.id} ({canonical_role})")

    return employee


def list_employees(db: Session, role: str | None = None, active_only: bool = False) -> list[Employee]:
    query = select(Employee).order_by(Employee.name)
    if role:
        query = query.where(func.lower(Employee.role) == role.lower())
    if active_only:
        query = query.where(Employee.status == "active")
    return list(db.execute(query).scalars().all())


def bootstrap_admin(db: Session) -> Employee | None:
    """Create the first Admin account when the employee table is empty."""
    if not settings.BOOTSTRAP_ADMIN_EMAIL or not settings.BOOTSTRAP_ADMIN_PIN:
        return None

    count = db.execute(select(func.count(Employee.id))).scalar_one()
    if count:
        return None

    admin = Employee(
        name="Administrator",
        email=settings.BOOTSTRAP_ADMIN_EMAIL,
        role=ADMIN,
        pin_hash=hash_pin(settings.BOOTSTRAP_ADMIN_PIN),
        status="active",
    )
    db.add(admin)
    db.flush()
    logger.info(f"Bootstrapped admin account: {admin.email}")
    return admin
