from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select, func, delete
from sqlalchemy.orm import Session

from shared.activity import record_activity
from shared.constants import BONUS_STATUSES
from shared.exceptions import (
    ValidationError, NotFoundError, InvalidStateError, ForbiddenError, ConflictError,
)
from shared.logger import get_logger
from shared.models import Bonus, Employee
from services.auth_service.policy import authorize, is_allowed
from services.workflow_service.review import (
    ReviewPolicy, load, review, resubmit, transition, ensure_submitter,
)

logger = get_logger("payroll.bonuses")

BONUS_REVIEW = ReviewPolicy(
    label="Bonus",
    model=Bonus,
    statuses=BONUS_STATUSES,
    reviewable=("pending",),
    approved="approved",
    rejected="rejected",
    resubmit_to="pending",
    comment_field="review_comment",
    reject_comment_required=False,
    review_operation="bonus.review",
    resubmit_operation="bonus.update",
)


def _check_amount(amount) -> Decimal:
    if amount is None or Decimal(amount) <= 0:
        raise ValidationError("amount must be greater than zero")
    return Decimal(amount)


def _check_reason(reason: str | None) -> str:
    if not reason or not reason.strip():
        raise ValidationError("A reason is required")
    return reason.strip()


def approved_bonus_total(db: Session, employee_id: int, start: date, end: date) -> Decimal:
    total = db.execute(
        select(func.coalesce(func.sum(Bonus.amount), 0)).where(
            Bonus.employee_id == employee_id,
            Bonus.status == "approved",
            Bonus.bonus_date.between(start, end),
        )
    ).scalar_one()
    return Decimal(total)


# ---------- Create / edit ----------


def create_bonus(
    employee_id: int,
    amount: Decimal,
    reason: str,
    actor: Employee,
    db: Session,
    bonus_date: date | None = None,
) -> Bonus:
    authorize("bonus.create", actor)
    amount = _check_amount(amount)
    reason = _check_reason(reason)

    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError(f"Employee {employee_id} not found")

    now = datetime.utcnow()
    bonus = Bonus(
        employee_id=employee_id,
        amount=amount,
        reason=reason,
        bonus_date=bonus_date or now.date(),
        status="pending",
        created_by=actor.id,
        created_at=now,
        updated_at=now,
    )
    db.add(bonus)
    db.flush()

    record_activity(
        db, actor.id, "bonus_created",
        f"Created bonus of {amount} for {employee.name}",
    )
    logger.info(f"Bonus {bonus.id}: {amount} for employee {employee_id}")
    return bonus


def update_bonus(
    bonus_id: int,
    actor: Employee,
    db: Session,
    amount: Decimal | None = None,
    reason: str | None = None,
    bonus_date: date | None = None,
) -> Bonus:
    """Edit a pending bonus, or correct a rejected one and send it back for approval."""
    authorize("bonus.update", actor)
    bonus = load(db, BONUS_REVIEW, bonus_id)
    ensure_submitter(BONUS_REVIEW, bonus, actor)

    if bonus.status not in ("pending", "rejected"):
        raise InvalidStateError(
            f"Bonus {bonus_id} is '{bonus.status}'; only pending or rejected bonuses can be edited"
        )

    values = {
        "amount": _check_amount(amount) if amount is not None else bonus.amount,
        "reason": _check_reason(reason) if reason is not None else bonus.reason,
        "bonus_date": bonus_date if bonus_date is not None else bonus.bonus_date,
    }
    if bonus.status == "rejected":
        values.update(approved_by=None, approved_at=None)
        bonus = resubmit(db, BONUS_REVIEW, bonus_id, values, actor, record=bonus)
        activity = "bonus_resubmitted"
    else:
        bonus = transition(db, BONUS_REVIEW, bonus, ("pending",), {**values, "status": "pending"})
        activity = "bonus_updated"

    record_activity(db, actor.id, activity, f"Bonus {bonus_id} now {bonus.amount}")
    return bonus


def delete_bonus(bonus_id: int, actor: Employee, db: Session) -> None:
    authorize("bonus.delete", actor)
    bonus = load(db, BONUS_REVIEW, bonus_id)
    ensure_submitter(BONUS_REVIEW, bonus, actor)

    if bonus.status != "pending":
        raise InvalidStateError("Only pending bonuses can be deleted")

    result = db.execute(
        delete(Bonus)
        .where(Bonus.id == bonus.id, Bonus.status == "pending")
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConflictError(f"Bonus {bonus_id} was modified by another request; reload and retry")
    db.expunge(bonus)

    record_activity(db, actor.id, "bonus_deleted", f"Deleted bonus {bonus_id}")
    logger.info(f"Bonus {bonus_id} deleted by employee {actor.id}")


# ---------- Review ----------


def review_bonus(
    bonus_id: int, action: str, comment: str | None, actor: Employee, db: Session
) -> Bonus:
    authorize(BONUS_REVIEW.review_operation, actor)
    bonus = load(db, BONUS_REVIEW, bonus_id)
    if bonus.created_by == actor.id:
        raise ForbiddenError("A bonus cannot be reviewed by the employee who created it")

    extra = {"approved_by": actor.id, "approved_at": datetime.utcnow()}
    if action == "approve":
        extra["review_comment"] = comment.strip() if comment and comment.strip() else None

    bonus = review(db, BONUS_REVIEW, bonus_id, action, comment, actor, extra)

    record_activity(
        db, actor.id, f"bonus_{action}",
        f"{bonus.status.capitalize()} bonus {bonus_id} ({bonus.amount})",
    )
    return bonus


# ---------- Projections ----------


def list_bonuses(
    actor: Employee,
    db: Session,
    employee_id: int | None = None,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Bonus]:
    """All bonuses for payroll staff; everyone else only sees their own."""
    if status and status not in BONUS_STATUSES:
        raise ValidationError(f"Invalid status. Allowed: {list(BONUS_STATUSES)}")

    if not is_allowed("bonus.view_any", actor):
        if employee_id is not None and employee_id != actor.id:
            raise ForbiddenError("You can only view your own records")
        employee_id = actor.id

    query = select(Bonus).order_by(Bonus.created_at.desc(), Bonus.id.desc())
    if employee_id is not None:
        query = query.where(Bonus.employee_id == employee_id)
    if status:
        query = query.where(Bonus.status == status)
    if start_date:
        query = query.where(Bonus.bonus_date >= start_date)
    if end_date:
        query = query.where(Bonus.bonus_date <= end_date)
    return list(db.execute(query).scalars().all())
