import random
import time
from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from shared.activity import record_activity
from shared.constants import (
    ASSIGNMENT_STATUSES, LOADER, PACKER, BATCH_RECEIVED, normalize_role,
)
from shared.exceptions import ValidationError, NotFoundError, InvalidStateError
from shared.logger import get_logger
from shared.models import Assignment, Batch, Employee, WorkLog, PackingLog
from services.auth_service.policy import authorize
from services.workflow_service.review import (
    ReviewPolicy, load, review, resubmit, ensure_submitter,
)

logger = get_logger("workflow.intake")

ASSIGNMENT_REVIEW = ReviewPolicy(
    label="Assignment",
    model=Assignment,
    statuses=ASSIGNMENT_STATUSES,
    reviewable=("pending_review",),
    approved="approved",
    rejected="rejected",
    resubmit_to="pending_review",
    comment_field="rejection_comment",
    reject_comment_required=True,
    review_operation="assignment.review",
    resubmit_operation="assignment.resubmit",
)


# ---------- Helpers ----------


def generate_batch_number() -> str:
    """WB-<epoch ms>-<0..999>, e.g. WB-1718000000000-42."""
    return f"WB-{int(time.time() * 1000)}-{random.randint(0, 999)}"


def require_employee(db: Session, employee_id: int, role: str, label: str) -> Employee:
    """Referenced employees must exist, be active and hold the expected role."""
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise ValidationError(f"{label} {employee_id} does not exist")
    if not employee.is_active:
        raise ValidationError(f"{label} {employee.name} is not active")
    if normalize_role(employee.role) != role:
        raise ValidationError(f"Employee {employee.name} is not a {role}")
    return employee


def _lock_batch(db: Session, batch_id: int) -> Batch:
    batch = db.get(Batch, batch_id, with_for_update=True)
    if batch is None:
        raise NotFoundError(f"Batch {batch_id} not found")
    return batch


def allocated_bags(db: Session, batch_id: int, exclude_id: int | None = None) -> int:
    """Bags already committed from a batch: every assignment that is not rejected."""
    query = select(func.coalesce(func.sum(Assignment.bags_assigned), 0)).where(
        Assignment.batch_id == batch_id,
        Assignment.status != "rejected",
    )
    if exclude_id is not None:
        query = query.where(Assignment.id != exclude_id)
    return int(db.execute(query).scalar_one())


def _check_capacity(db: Session, batch: Batch, bags: int, exclude_id: int | None = None) -> None:
    committed = allocated_bags(db, batch.id, exclude_id)
    remaining = batch.bags_received - committed
    if bags > remaining:
        logger.warning(
            f"Over-allocation refused on batch {batch.batch_number}: "
            f"{bags} requested, {remaining} remaining"
        )
        raise ValidationError(
            f"Cannot assign {bags} bags; only {remaining} of "
            f"{batch.bags_received} remain in batch {batch.batch_number}"
        )


def _require_positive(value: int, field: str) -> None:
    if value is None or value <= 0:
        raise ValidationError(f"{field} must be greater than zero")


# ---------- Batches / intake ----------


def create_batch(
    loader_id: int, bags_received: int, notes: str | None, actor: Employee, db: Session
) -> Batch:
    authorize("batch.create", actor)
    _require_positive(bags_received, "bags_received")
    require_employee(db, loader_id, LOADER, "Loader")

    batch = Batch(
        batch_number=generate_batch_number(),
        loader_id=loader_id,
        bags_received=bags_received,
        status=BATCH_RECEIVED,
        notes=notes,
        created_at=datetime.utcnow(),
    )
    db.add(batch)
    db.flush()

    record_activity(
        db, actor.id, "water_bag_batch_created",
        f"Created water bag batch {batch.batch_number} with {bags_received} bags",
    )
    logger.info(f"Batch {batch.batch_number} received: {bags_received} bags")
    return batch


def create_intake(
    loader_id: int,
    packer_id: int,
    bags_submitted: int,
    notes: str | None,
    actor: Employee,
    db: Session,
) -> tuple[Batch, Assignment]:
    """Storekeeper records a loader's delivery and hands it to a packer for review."""
    authorize("intake.create", actor)
    _require_positive(bags_submitted, "bags_submitted")
    require_employee(db, loader_id, LOADER, "Loader")
    require_employee(db, packer_id, PACKER, "Packer")

    now = datetime.utcnow()
    batch = Batch(
        batch_number=generate_batch_number(),
        loader_id=loader_id,
        bags_received=bags_submitted,
        status=BATCH_RECEIVED,
        notes=notes,
        created_at=now,
    )
    db.add(batch)
    db.flush()

    assignment = Assignment(
        batch_id=batch.id,
        packer_id=packer_id,
        storekeeper_id=actor.id,
        bags_assigned=bags_submitted,
        status="pending_review",
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    db.add(assignment)
    db.flush()

    record_activity(
        db, actor.id, "water_bag_intake_submitted",
        f"Intake submitted for {bags_submitted} bags (batch {batch.batch_number})",
    )
    logger.info(
        f"Intake {assignment.id}: {bags_submitted} bags, batch {batch.batch_number}, "
        f"packer {packer_id}"
    )
    return batch, assignment


def create_assignment(
    batch_id: int,
    packer_id: int,
    bags_assigned: int,
    notes: str | None,
    actor: Employee,
    db: Session,
) -> Assignment:
    authorize("assignment.create", actor)
    _require_positive(bags_assigned, "bags_assigned")
    require_employee(db, packer_id, PACKER, "Packer")

    batch = _lock_batch(db, batch_id)
    _check_capacity(db, batch, bags_assigned)

    now = datetime.utcnow()
    assignment = Assignment(
        batch_id=batch.id,
        packer_id=packer_id,
        storekeeper_id=actor.id,
        bags_assigned=bags_assigned,
        status="pending_review",
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    db.add(assignment)
    db.flush()

    record_activity(
        db, actor.id, "water_bag_submission_created",
        f"Submitted {bags_assigned} bags from batch {batch.batch_number} for review",
    )
    logger.info(f"Assignment {assignment.id}: {bags_assigned} bags from {batch.batch_number}")
    return assignment


# ---------- Review / resubmit ----------


def review_assignment(
    assignment_id: int,
    action: str,
    comment: str | None,
    actor: Employee,
    db: Session,
) -> Assignment:
    authorize(ASSIGNMENT_REVIEW.review_operation, actor)
    assignment = load(db, ASSIGNMENT_REVIEW, assignment_id)

    if action == "approve" and assignment.status == "pending_review":
        # Capacity is re-checked under the batch lock so approval commits atomically.
        batch = _lock_batch(db, assignment.batch_id)
        _check_capacity(db, batch, assignment.bags_assigned, exclude_id=assignment.id)

    extra = {"reviewed_by": actor.id, "reviewed_at": datetime.utcnow()}
    if action == "approve":
        extra["review_comment"] = comment or None

    assignment = review(db, ASSIGNMENT_REVIEW, assignment_id, action, comment, actor, extra)

    record_activity(
        db, actor.id, f"water_bag_submission_{action}",
        f"{'Approved' if action == 'approve' else 'Rejected'} submission for assignment {assignment_id}",
    )
    return assignment


def resubmit_assignment(
    assignment_id: int,
    bags_assigned: int,
    notes: str | None,
    actor: Employee,
    db: Session,
) -> Assignment:
    authorize(ASSIGNMENT_REVIEW.resubmit_operation, actor)
    assignment = load(db, ASSIGNMENT_REVIEW, assignment_id)
    ensure_submitter(ASSIGNMENT_REVIEW, assignment, actor)

    if assignment.status != "rejected":
        raise InvalidStateError(
            f"Assignment {assignment_id} is '{assignment.status}'; only rejected "
            "submissions can be resubmitted"
        )
    _require_positive(bags_assigned, "bags_assigned")

    batch = _lock_batch(db, assignment.batch_id)
    _check_capacity(db, batch, bags_assigned, exclude_id=assignment.id)

    values = {
        "bags_assigned": bags_assigned,
        "notes": notes if notes is not None else assignment.notes,
        "review_comment": None,
        "reviewed_by": None,
        "reviewed_at": None,
    }
    assignment = resubmit(db, ASSIGNMENT_REVIEW, assignment_id, values, actor, record=assignment)

    record_activity(
        db, actor.id, "water_bag_submission_resubmitted",
        f"Resubmitted assignment {assignment_id} with {bags_assigned} bags",
    )
    return assignment


# ---------- Projections ----------


def list_batches(db: Session) -> list[Batch]:
    return list(
        db.execute(select(Batch).order_by(Batch.created_at.desc(), Batch.id.desc()))
        .scalars().all()
    )


def list_assignments(db: Session, status: str | None = None) -> list[Assignment]:
    if status and status not in ASSIGNMENT_STATUSES:
        raise ValidationError(f"Invalid status. Allowed: {list(ASSIGNMENT_STATUSES)}")

    query = select(Assignment).order_by(Assignment.created_at.desc(), Assignment.id.desc())
    if status:
        query = query.where(Assignment.status == status)
    return list(db.execute(query).scalars().all())


def list_batch_assignments(batch_id: int, db: Session) -> list[Assignment]:
    if db.get(Batch, batch_id) is None:
        raise NotFoundError(f"Batch {batch_id} not found")
    return list(
        db.execute(
            select(Assignment)
            .where(Assignment.batch_id == batch_id)
            .order_by(Assignment.created_at, Assignment.id)
        ).scalars().all()
    )


def dashboard_stats(db: Session) -> dict:
    def count(model, *criteria) -> int:
        return db.execute(select(func.count(model.id)).where(*criteria)).scalar_one()

    return {
        "total_batches": count(Batch),
        "pending_reviews": count(Assignment, Assignment.status == "pending_review"),
        "approved_assignments": count(Assignment, Assignment.status == "approved"),
        "pending_work_logs": count(WorkLog, WorkLog.status == "pending"),
        "approved_work_logs": count(WorkLog, WorkLog.status == "approved"),
        "pending_packing_approvals": count(
            PackingLog, PackingLog.status.in_(("confirmed", "disputed"))
        ),
    }
