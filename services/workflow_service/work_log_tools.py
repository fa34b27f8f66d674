from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from shared.activity import record_activity
from shared.constants import WORK_LOG_STATUSES, STOCK_IN
from shared.exceptions import ValidationError, NotFoundError, InvalidStateError, ForbiddenError
from shared.logger import get_logger
from shared.models import Assignment, Employee, PackingLog, WorkLog
from services.auth_service.policy import authorize, is_elevated
from services.inventory_service.tools import record_movement
from services.workflow_service.review import ReviewPolicy, review

logger = get_logger("workflow.work_logs")

# Work logs are never resubmitted; a rejected log is replaced by a new submission.
WORK_LOG_REVIEW = ReviewPolicy(
    label="Work log",
    model=WorkLog,
    statuses=WORK_LOG_STATUSES,
    reviewable=("pending",),
    approved="approved",
    rejected="rejected",
    resubmit_to=None,
    comment_field="modification_comment",
    reject_comment_required=False,
    review_operation="work_log.review",
)


def packed_against(
    db: Session, assignment_id: int, exclude_packing_log_id: int | None = None
) -> int:
    """Bags already reported on an assignment by work logs and packing logs
    that are not rejected."""
    work_logs = db.execute(
        select(func.coalesce(func.sum(WorkLog.bags_packed), 0)).where(
            WorkLog.assignment_id == assignment_id,
            WorkLog.status != "rejected",
        )
    ).scalar_one()

    packing_query = select(func.coalesce(func.sum(PackingLog.bags_packed), 0)).where(
        PackingLog.assignment_id == assignment_id,
        PackingLog.status != "rejected",
    )
    if exclude_packing_log_id is not None:
        packing_query = packing_query.where(PackingLog.id != exclude_packing_log_id)
    packing_logs = db.execute(packing_query).scalar_one()

    return int(work_logs) + int(packing_logs)


def submit_work_log(
    assignment_id: int, bags_packed: int, actor: Employee, db: Session
) -> WorkLog:
    authorize("work_log.submit", actor)

    if bags_packed is None or bags_packed <= 0:
        raise ValidationError("bags_packed must be greater than zero")

    assignment = db.get(Assignment, assignment_id, with_for_update=True)
    if assignment is None:
        raise NotFoundError(f"Assignment {assignment_id} not found")
    if assignment.packer_id != actor.id and not is_elevated(actor):
        raise ForbiddenError("Work can only be logged against your own assignments")
    if assignment.status != "approved":
        raise InvalidStateError(
            f"Assignment {assignment_id} is '{assignment.status}'; work can only be "
            "logged against approved assignments"
        )

    already = packed_against(db, assignment_id)
    if already + bags_packed > assignment.bags_assigned:
        raise ValidationError(
            f"Cannot log {bags_packed} bags; {already} of {assignment.bags_assigned} "
            "assigned bags are already logged"
        )

    now = datetime.utcnow()
    work_log = WorkLog(
        assignment_id=assignment.id,
        packer_id=assignment.packer_id,
        bags_assigned=assignment.bags_assigned,
        bags_packed=bags_packed,
        status="pending",
        created_at=now,
        updated_at=now,
    )
    db.add(work_log)
    db.flush()

    record_activity(
        db, actor.id, "work_log_submitted",
        f"Logged {bags_packed} packed bags for assignment {assignment_id}",
    )
    logger.info(f"Work log {work_log.id}: {bags_packed} bags on assignment {assignment_id}")
    return work_log


def review_work_log(
    log_id: int, action: str, comment: str | None, actor: Employee, db: Session
) -> WorkLog:
    extra = {"reviewed_by": actor.id, "reviewed_at": datetime.utcnow()}
    work_log = review(db, WORK_LOG_REVIEW, log_id, action, comment, actor, extra)

    if work_log.status == "approved":
        record_movement(
            db,
            work_log.bags_packed,
            STOCK_IN,
            f"Approved work log {work_log.id}",
            employee_id=actor.id,
            source_type="work_log",
            source_id=work_log.id,
        )

    record_activity(
        db, actor.id, f"work_log_{action}",
        f"{work_log.status.capitalize()} work log {work_log.id} ({work_log.bags_packed} bags)",
    )
    return work_log


def list_work_logs(
    db: Session, packer_id: int | None = None, status: str | None = None
) -> list[WorkLog]:
    if status and status not in WORK_LOG_STATUSES:
        raise ValidationError(f"Invalid status. Allowed: {list(WORK_LOG_STATUSES)}")

    query = select(WorkLog).order_by(WorkLog.created_at.desc(), WorkLog.id.desc())
    if packer_id is not None:
        query = query.where(WorkLog.packer_id == packer_id)
    if status:
        query = query.where(WorkLog.status == status)
    return list(db.execute(query).scalars().all())
