from datetime import date, datetime

from sqlalchemy import select, func, delete
from sqlalchemy.orm import Session

from shared.activity import record_activity
from shared.constants import PACKING_LOG_STATUSES, PACKER, STOCK_IN
from shared.exceptions import (
    ValidationError, NotFoundError, InvalidStateError, ForbiddenError, ConflictError,
)
from shared.logger import get_logger
from shared.models import Assignment, Employee, PackingLog
from services.auth_service.policy import authorize
from services.inventory_service.tools import record_movement
from services.workflow_service.intake_tools import require_employee
from services.workflow_service.work_log_tools import packed_against
from services.workflow_service.review import (
    ReviewPolicy, load, review, resubmit, transition, ensure_submitter,
)

logger = get_logger("workflow.packing")

PACKING_LOG_REVIEW = ReviewPolicy(
    label="Packing log",
    model=PackingLog,
    statuses=PACKING_LOG_STATUSES,
    reviewable=("confirmed", "disputed"),
    approved="approved",
    rejected="rejected",
    resubmit_to="pending",
    comment_field="modification_comment",
    reject_comment_required=True,
    review_operation="packing_log.review",
    resubmit_operation="packing_log.update",
)


def _check_bags(
    db: Session,
    bags_packed: int,
    assignment_id: int | None,
    packer_id: int,
    log_id: int | None = None,
) -> None:
    """Bags claimed on an assignment, across all of its live logs, never exceed
    what was assigned."""
    if bags_packed is None or bags_packed <= 0:
        raise ValidationError("bags_packed must be greater than zero")
    if assignment_id is None:
        return

    # Row lock serialises concurrent claims against the same assignment.
    assignment = db.get(Assignment, assignment_id, with_for_update=True)
    if assignment is None:
        raise NotFoundError(f"Assignment {assignment_id} not found")
    if assignment.packer_id != packer_id:
        raise ValidationError(f"Assignment {assignment_id} belongs to a different packer")
    if assignment.status != "approved":
        raise InvalidStateError(
            f"Assignment {assignment_id} is '{assignment.status}'; packing can only be "
            "logged against approved assignments"
        )

    already = packed_against(db, assignment_id, exclude_packing_log_id=log_id)
    if already + bags_packed > assignment.bags_assigned:
        raise ValidationError(
            f"Cannot record {bags_packed} bags; {already} of {assignment.bags_assigned} "
            f"assigned bags on assignment {assignment_id} are already logged"
        )


def _check_packing_date(packing_date: date) -> None:
    if packing_date > datetime.utcnow().date():
        raise ValidationError("Packing date cannot be in the future")


def _ensure_named_packer(log: PackingLog, actor: Employee) -> None:
    if log.packer_id != actor.id:
        raise ForbiddenError("Only the packer named on this log can respond to it")


# ---------- Create / edit ----------


def create_packing_log(
    packer_id: int,
    bags_packed: int,
    packing_date: date,
    notes: str | None,
    actor: Employee,
    db: Session,
    assignment_id: int | None = None,
) -> PackingLog:
    authorize("packing_log.create", actor)
    require_employee(db, packer_id, PACKER, "Packer")
    _check_bags(db, bags_packed, assignment_id, packer_id)
    _check_packing_date(packing_date)

    now = datetime.utcnow()
    log = PackingLog(
        packer_id=packer_id,
        storekeeper_id=actor.id,
        assignment_id=assignment_id,
        bags_packed=bags_packed,
        packing_date=packing_date,
        status="pending",
        storekeeper_notes=notes,
        created_at=now,
        updated_at=now,
    )
    db.add(log)
    db.flush()

    record_activity(
        db, actor.id, "packing_log_created",
        f"Created packing log for packer {packer_id}: {bags_packed} bags on {packing_date}",
    )
    logger.info(f"Packing log {log.id}: {bags_packed} bags for packer {packer_id}")
    return log


def update_packing_log(
    log_id: int,
    actor: Employee,
    db: Session,
    bags_packed: int | None = None,
    packing_date: date | None = None,
    notes: str | None = None,
) -> PackingLog:
    """Edit a pending log, or correct and resubmit a rejected one.

    Either way the log ends up ``pending`` with packer responses cleared, so the
    packer has to confirm or dispute the corrected figures again.
    """
    authorize("packing_log.update", actor)
    log = load(db, PACKING_LOG_REVIEW, log_id)
    ensure_submitter(PACKING_LOG_REVIEW, log, actor)

    if log.status not in ("pending", "rejected"):
        raise InvalidStateError(
            f"Packing log {log_id} is '{log.status}'; only pending or rejected logs can be edited"
        )

    new_bags = bags_packed if bags_packed is not None else log.bags_packed
    new_date = packing_date if packing_date is not None else log.packing_date
    _check_bags(db, new_bags, log.assignment_id, log.packer_id, log_id=log.id)
    _check_packing_date(new_date)

    values = {
        "bags_packed": new_bags,
        "packing_date": new_date,
        "storekeeper_notes": notes if notes is not None else log.storekeeper_notes,
        "disputed_bags": None,
        "dispute_reason": None,
        "confirmed_at": None,
    }
    if log.status == "rejected":
        # A fresh review cycle starts without the previous reviewer.
        values.update(manager_id=None, manager_notes=None)
        log = resubmit(db, PACKING_LOG_REVIEW, log_id, values, actor, record=log)
        activity = "packing_log_resubmitted"
    else:
        log = transition(db, PACKING_LOG_REVIEW, log, ("pending",), {**values, "status": "pending"})
        activity = "packing_log_updated"

    record_activity(db, actor.id, activity, f"Packing log {log_id} now records {new_bags} bags")
    return log


def delete_packing_log(log_id: int, actor: Employee, db: Session) -> None:
    authorize("packing_log.delete", actor)
    log = load(db, PACKING_LOG_REVIEW, log_id)
    ensure_submitter(PACKING_LOG_REVIEW, log, actor)

    if log.status == "approved":
        raise InvalidStateError("Approved packing logs cannot be deleted")

    result = db.execute(
        delete(PackingLog)
        .where(PackingLog.id == log.id, PackingLog.status == log.status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConflictError(
            f"Packing log {log_id} was modified by another request; reload and retry"
        )
    db.expunge(log)

    record_activity(db, actor.id, "packing_log_deleted", f"Deleted packing log {log_id}")
    logger.info(f"Packing log {log_id} deleted by employee {actor.id}")


# ---------- Packer response ----------


def confirm_packing_log(
    log_id: int, packer_notes: str | None, actor: Employee, db: Session
) -> PackingLog:
    authorize("packing_log.confirm", actor)
    log = load(db, PACKING_LOG_REVIEW, log_id)
    _ensure_named_packer(log, actor)

    log = transition(db, PACKING_LOG_REVIEW, log, ("pending",), {
        "status": "confirmed",
        "packer_notes": packer_notes,
        "confirmed_at": datetime.utcnow(),
    })

    record_activity(db, actor.id, "packing_log_confirmed", f"Confirmed packing log {log_id}")
    logger.info(f"Packing log {log_id} confirmed by packer {actor.id}")
    return log


def dispute_packing_log(
    log_id: int,
    disputed_bags: int,
    dispute_reason: str,
    packer_notes: str | None,
    actor: Employee,
    db: Session,
) -> PackingLog:
    authorize("packing_log.dispute", actor)

    if disputed_bags is None or disputed_bags < 0:
        raise ValidationError("disputed_bags cannot be negative")
    if not dispute_reason or not dispute_reason.strip():
        raise ValidationError("A dispute reason is required")

    log = load(db, PACKING_LOG_REVIEW, log_id)
    _ensure_named_packer(log, actor)

    log = transition(db, PACKING_LOG_REVIEW, log, ("pending",), {
        "status": "disputed",
        "disputed_bags": disputed_bags,
        "dispute_reason": dispute_reason.strip(),
        "packer_notes": packer_notes,
    })

    record_activity(
        db, actor.id, "packing_log_disputed",
        f"Disputed packing log {log_id}: claims {disputed_bags} bags",
    )
    logger.info(f"Packing log {log_id} disputed by packer {actor.id}")
    return log


# ---------- Manager review ----------


def approve_packing_log(
    log_id: int,
    manager_notes: str | None,
    actor: Employee,
    db: Session,
    final_bags: int | None = None,
) -> PackingLog:
    authorize(PACKING_LOG_REVIEW.review_operation, actor)

    extra = {
        "manager_id": actor.id,
        "manager_notes": manager_notes,
        "approved_at": datetime.utcnow(),
    }
    if final_bags is not None:
        if final_bags < 0:
            raise ValidationError("final_bags cannot be negative")
        log = load(db, PACKING_LOG_REVIEW, log_id)
        if log.assignment_id is not None:
            assignment = db.get(Assignment, log.assignment_id, with_for_update=True)
            if assignment is not None:
                already = packed_against(db, assignment.id, exclude_packing_log_id=log.id)
                if already + final_bags > assignment.bags_assigned:
                    raise ValidationError(
                        f"final_bags ({final_bags}) plus {already} bags already logged "
                        f"exceeds bags_assigned ({assignment.bags_assigned})"
                    )
        extra["bags_packed"] = final_bags

    log = review(db, PACKING_LOG_REVIEW, log_id, "approve", None, actor, extra)

    if log.bags_packed:
        record_movement(
            db,
            log.bags_packed,
            STOCK_IN,
            f"Approved packing log {log.id}",
            employee_id=actor.id,
            source_type="packing_log",
            source_id=log.id,
        )

    record_activity(
        db, actor.id, "packing_log_approved",
        f"Approved packing log {log_id} with {log.bags_packed} bags",
    )
    return log


def reject_packing_log(
    log_id: int,
    modification_comment: str | None,
    manager_notes: str | None,
    actor: Employee,
    db: Session,
) -> PackingLog:
    extra = {"manager_id": actor.id, "manager_notes": manager_notes}
    log = review(db, PACKING_LOG_REVIEW, log_id, "reject", modification_comment, actor, extra)

    record_activity(
        db, actor.id, "packing_log_rejected",
        f"Rejected packing log {log_id}: {log.modification_comment}",
    )
    return log


# ---------- Projections ----------


def list_packing_logs(
    db: Session,
    packer_id: int,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[PackingLog]:
    if status and status not in PACKING_LOG_STATUSES:
        raise ValidationError(f"Invalid status. Allowed: {list(PACKING_LOG_STATUSES)}")

    query = (
        select(PackingLog)
        .where(PackingLog.packer_id == packer_id)
        .order_by(PackingLog.packing_date.desc(), PackingLog.created_at.desc())
    )
    if status:
        query = query.where(PackingLog.status == status)
    if start_date:
        query = query.where(PackingLog.packing_date >= start_date)
    if end_date:
        query = query.where(PackingLog.packing_date <= end_date)
    return list(db.execute(query).scalars().all())


def list_pending_approvals(db: Session) -> list[PackingLog]:
    """The manager's queue: confirmed or disputed logs, newest first."""
    return list(
        db.execute(
            select(PackingLog)
            .where(PackingLog.status.in_(PACKING_LOG_REVIEW.reviewable))
            .order_by(PackingLog.created_at.desc(), PackingLog.id.desc())
        ).scalars().all()
    )


def packing_log_stats(db: Session) -> dict:
    counts = dict(
        db.execute(
            select(PackingLog.status, func.count(PackingLog.id)).group_by(PackingLog.status)
        ).all()
    )
    total_bags_approved = db.execute(
        select(func.coalesce(func.sum(PackingLog.bags_packed), 0))
        .where(PackingLog.status == "approved")
    ).scalar_one()

    stats = {status: counts.get(status, 0) for status in PACKING_LOG_STATUSES}
    stats["total"] = sum(stats.values())
    stats["total_bags_approved"] = int(total_bags_approved)
    return stats
