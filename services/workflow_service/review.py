"""Reviewable submissions.

Assignments, packer work logs, packing logs and bonuses share one lifecycle shape::

    <submitted> --approve--> approved
    <submitted> --reject---> rejected --resubmit--> <submitted>

Each record type is described by a ``ReviewPolicy``. Transitions are written
as conditional updates keyed on the status that was read, so two reviewers
racing on the same record cannot both succeed.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from sqlalchemy import update
from sqlalchemy.orm import Session

from shared.exceptions import (
    ValidationError, NotFoundError, InvalidStateError, ForbiddenError, ConflictError,
)
from shared.logger import get_logger
from shared.models import Employee
from services.auth_service.policy import authorize, is_elevated

logger = get_logger("workflow.review")

ReviewAction = Literal["approve", "reject"]


@dataclass(frozen=True)
class ReviewPolicy:
    label: str
    model: type
    statuses: tuple[str, ...]
    reviewable: tuple[str, ...]
    approved: str
    rejected: str
    resubmit_to: str | None
    comment_field: str
    reject_comment_required: bool
    review_operation: str
    resubmit_operation: str | None = None

    def check_status(self, status: str) -> None:
        if status not in self.statuses:
            raise ValueError(f"{self.label}: unknown status '{status}'")


def load(db: Session, policy: ReviewPolicy, record_id: int, lock: bool = False):
    if lock:
        record = db.get(policy.model, record_id, with_for_update=True)
    else:
        record = db.get(policy.model, record_id)
    if record is None:
        raise NotFoundError(f"{policy.label} {record_id} not found")
    return record


def transition(
    db: Session,
    policy: ReviewPolicy,
    record,
    sources: tuple[str, ...],
    values: dict[str, Any],
):
    """Move ``record`` to ``values['status']`` if it is currently in ``sources``.

    Raises InvalidStateError when the observed status does not permit the move
    and ConflictError when the row changed between the read and the write.
    """
    target = values["status"]
    policy.check_status(target)

    observed = record.status
    if observed not in sources:
        raise InvalidStateError(
            f"{policy.label} {record.id} is '{observed}'; "
            f"expected one of {list(sources)}"
        )

    model = policy.model
    values = {**values, "updated_at": datetime.utcnow()}
    result = db.execute(
        update(model)
        .where(model.id == record.id, model.status == observed)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning(
            f"Concurrent modification of {policy.label} {record.id} "
            f"(expected '{observed}')"
        )
        raise ConflictError(
            f"{policy.label} {record.id} was modified by another request; reload and retry"
        )

    db.refresh(record)
    return record


def review(
    db: Session,
    policy: ReviewPolicy,
    record_id: int,
    action: ReviewAction,
    comment: str | None,
    actor: Employee,
    extra: dict[str, Any] | None = None,
):
    """Approve or reject a submission that is awaiting review."""
    authorize(policy.review_operation, actor)

    if action not in ("approve", "reject"):
        raise ValidationError("Action must be either 'approve' or 'reject'")

    comment = comment.strip() if comment else None
    if action == "reject" and policy.reject_comment_required and not comment:
        raise ValidationError(f"A comment is required to reject a {policy.label.lower()}")

    record = load(db, policy, record_id)

    values = dict(extra or {})
    if action == "approve":
        values["status"] = policy.approved
    else:
        values["status"] = policy.rejected
        values[policy.comment_field] = comment

    record = transition(db, policy, record, policy.reviewable, values)
    logger.info(f"{policy.label} {record.id} {values['status']} by employee {actor.id}")
    return record


def resubmit(
    db: Session,
    policy: ReviewPolicy,
    record_id: int,
    values: dict[str, Any],
    actor: Employee,
    record=None,
):
    """Return a rejected submission to review, by its submitter or an elevated role."""
    if policy.resubmit_to is None or policy.resubmit_operation is None:
        raise InvalidStateError(f"{policy.label} cannot be resubmitted")

    authorize(policy.resubmit_operation, actor)

    if record is None:
        record = load(db, policy, record_id)
    ensure_submitter(policy, record, actor)

    values = {**values, "status": policy.resubmit_to, policy.comment_field: None}
    record = transition(db, policy, record, (policy.rejected,), values)
    logger.info(f"{policy.label} {record.id} resubmitted by employee {actor.id}")
    return record


def ensure_submitter(policy: ReviewPolicy, record, actor: Employee) -> None:
    if record.submitter_id != actor.id and not is_elevated(actor):
        raise ForbiddenError(
            f"Only the original submitter may modify this {policy.label.lower()}"
        )
