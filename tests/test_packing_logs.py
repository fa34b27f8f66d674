from datetime import datetime, timedelta

import pytest

from shared.exceptions import (
    ValidationError, InvalidStateError, ForbiddenError, NotFoundError,
)
from shared.models import PackingLog
from services.inventory_service.tools import compute_current_inventory
from services.workflow_service.intake_tools import create_intake, review_assignment
from services.workflow_service.work_log_tools import submit_work_log
from services.workflow_service.packing_tools import (
    create_packing_log, update_packing_log, delete_packing_log, confirm_packing_log,
    dispute_packing_log, approve_packing_log, reject_packing_log, list_packing_logs,
    list_pending_approvals, packing_log_stats,
)


def today():
    return datetime.utcnow().date()


@pytest.fixture
def log(db, staff):
    return create_packing_log(staff.packer.id, 50, today(), "evening shift", staff.storekeeper, db)


def test_create_packing_log(db, staff, log):
    assert log.status == "pending"
    assert log.storekeeper_id == staff.storekeeper.id
    assert log.storekeeper_notes == "evening shift"
    assert log.packer_name == "Pat Packer"


def test_create_rejects_future_date(db, staff):
    with pytest.raises(ValidationError):
        create_packing_log(
            staff.packer.id, 10, today() + timedelta(days=1), None, staff.storekeeper, db,
        )


def test_create_rejects_non_packer(db, staff):
    with pytest.raises(ValidationError):
        create_packing_log(staff.loader.id, 10, today(), None, staff.storekeeper, db)


def test_create_forbidden_for_packer(db, staff):
    with pytest.raises(ForbiddenError):
        create_packing_log(staff.packer.id, 10, today(), None, staff.packer, db)


def approved_assignment(db, staff, bags):
    _, assignment = create_intake(
        staff.loader.id, staff.packer.id, bags, None, staff.storekeeper, db,
    )
    return review_assignment(assignment.id, "approve", None, staff.manager, db)


def test_bags_packed_bounded_by_assignment(db, staff):
    assignment = approved_assignment(db, staff, 40)
    with pytest.raises(ValidationError):
        create_packing_log(
            staff.packer.id, 41, today(), None, staff.storekeeper, db,
            assignment_id=assignment.id,
        )
    with pytest.raises(ValidationError):
        create_packing_log(
            staff.packer2.id, 10, today(), None, staff.storekeeper, db,
            assignment_id=assignment.id,
        )

    log = create_packing_log(
        staff.packer.id, 40, today(), None, staff.storekeeper, db,
        assignment_id=assignment.id,
    )
    assert log.assignment_id == assignment.id


def test_packing_logs_share_the_assignment_allowance(db, staff):
    assignment = approved_assignment(db, staff, 30)
    first = create_packing_log(
        staff.packer.id, 30, today(), None, staff.storekeeper, db,
        assignment_id=assignment.id,
    )
    with pytest.raises(ValidationError):
        create_packing_log(
            staff.packer.id, 30, today(), None, staff.storekeeper, db,
            assignment_id=assignment.id,
        )

    confirm_packing_log(first.id, None, staff.packer, db)
    approve_packing_log(first.id, None, staff.manager, db)
    assert compute_current_inventory(db) == 30


def test_rejected_packing_log_frees_its_bags(db, staff):
    assignment = approved_assignment(db, staff, 30)
    first = create_packing_log(
        staff.packer.id, 20, today(), None, staff.storekeeper, db,
        assignment_id=assignment.id,
    )
    dispute_packing_log(first.id, 15, "short count", None, staff.packer, db)
    reject_packing_log(first.id, "recount", None, staff.manager, db)

    second = create_packing_log(
        staff.packer.id, 25, today(), None, staff.storekeeper, db,
        assignment_id=assignment.id,
    )
    # resubmitting the rejected log would push the assignment past 30
    with pytest.raises(ValidationError):
        update_packing_log(first.id, staff.storekeeper, db, bags_packed=10)
    log = update_packing_log(first.id, staff.storekeeper, db, bags_packed=5)
    assert log.status == "pending"

    # editing a log does not count its own previous figure against itself
    log = update_packing_log(second.id, staff.storekeeper, db, bags_packed=25)
    assert log.bags_packed == 25


def test_final_bags_counted_against_other_logs(db, staff):
    assignment = approved_assignment(db, staff, 30)
    create_packing_log(
        staff.packer.id, 20, today(), None, staff.storekeeper, db,
        assignment_id=assignment.id,
    )
    second = create_packing_log(
        staff.packer.id, 10, today(), None, staff.storekeeper, db,
        assignment_id=assignment.id,
    )
    dispute_packing_log(second.id, 12, "two extra", None, staff.packer, db)

    with pytest.raises(ValidationError):
        approve_packing_log(second.id, None, staff.manager, db, final_bags=12)
    log = approve_packing_log(second.id, None, staff.manager, db, final_bags=10)
    assert log.status == "approved"


def test_packing_log_and_work_log_share_the_allowance(db, staff):
    assignment = approved_assignment(db, staff, 30)
    submit_work_log(assignment.id, 20, staff.packer, db)
    with pytest.raises(ValidationError):
        create_packing_log(
            staff.packer.id, 11, today(), None, staff.storekeeper, db,
            assignment_id=assignment.id,
        )


def test_packing_log_needs_approved_assignment(db, staff):
    _, pending = create_intake(
        staff.loader.id, staff.packer.id, 30, None, staff.storekeeper, db,
    )
    with pytest.raises(InvalidStateError):
        create_packing_log(
            staff.packer.id, 10, today(), None, staff.storekeeper, db,
            assignment_id=pending.id,
        )

    rejected = review_assignment(pending.id, "reject", "wrong count", staff.manager, db)
    assert rejected.status == "rejected"
    with pytest.raises(InvalidStateError):
        create_packing_log(
            staff.packer.id, 10, today(), None, staff.storekeeper, db,
            assignment_id=pending.id,
        )


def test_dispute_then_approve_with_final_bags(db, staff, log):
    log = dispute_packing_log(log.id, 45, "miscount", None, staff.packer, db)
    assert log.status == "disputed"
    assert log.disputed_bags == 45
    assert log.dispute_reason == "miscount"

    log = approve_packing_log(log.id, "recounted", staff.manager, db, final_bags=45)
    assert log.status == "approved"
    assert log.bags_packed == 45
    assert log.manager_id == staff.manager.id
    assert log.approved_at is not None
    assert compute_current_inventory(db) == 45


def test_confirm_then_approve(db, staff, log):
    log = confirm_packing_log(log.id, "all good", staff.packer, db)
    assert log.status == "confirmed"
    assert log.confirmed_at is not None

    log = approve_packing_log(log.id, None, staff.manager, db)
    assert log.bags_packed == 50
    assert compute_current_inventory(db) == 50


def test_only_named_packer_may_respond(db, staff, log):
    with pytest.raises(ForbiddenError):
        confirm_packing_log(log.id, None, staff.packer2, db)
    with pytest.raises(ForbiddenError):
        dispute_packing_log(log.id, 40, "short", None, staff.packer2, db)


def test_dispute_requires_reason_and_non_negative_bags(db, staff, log):
    with pytest.raises(ValidationError):
        dispute_packing_log(log.id, 40, "  ", None, staff.packer, db)
    with pytest.raises(ValidationError):
        dispute_packing_log(log.id, -1, "short", None, staff.packer, db)


def test_confirm_twice_is_invalid(db, staff, log):
    confirm_packing_log(log.id, None, staff.packer, db)
    with pytest.raises(InvalidStateError):
        confirm_packing_log(log.id, None, staff.packer, db)


def test_approve_pending_log_is_invalid(db, staff, log):
    with pytest.raises(InvalidStateError):
        approve_packing_log(log.id, None, staff.manager, db)
    db.refresh(log)
    assert log.status == "pending"


def test_reject_requires_modification_comment(db, staff, log):
    confirm_packing_log(log.id, None, staff.packer, db)
    with pytest.raises(ValidationError):
        reject_packing_log(log.id, None, None, staff.manager, db)
    db.refresh(log)
    assert log.status == "confirmed"


def test_review_is_manager_only(db, staff, log):
    confirm_packing_log(log.id, None, staff.packer, db)
    with pytest.raises(ForbiddenError):
        approve_packing_log(log.id, None, staff.storekeeper, db)


def test_reject_and_resubmit(db, staff, log):
    dispute_packing_log(log.id, 45, "miscount", None, staff.packer, db)
    log = reject_packing_log(log.id, "recount the pallet", "see me", staff.manager, db)
    assert log.status == "rejected"
    assert log.modification_comment == "recount the pallet"
    assert log.manager_id == staff.manager.id

    with pytest.raises(ForbiddenError):
        update_packing_log(log.id, staff.storekeeper2, db, bags_packed=45)

    log = update_packing_log(log.id, staff.storekeeper, db, bags_packed=45)
    assert log.status == "pending"
    assert log.bags_packed == 45
    assert log.modification_comment is None
    assert log.disputed_bags is None
    assert log.manager_id is None
    assert log.manager_notes is None

    log = confirm_packing_log(log.id, None, staff.packer, db)
    assert log.status == "confirmed"


def test_edit_pending_log(db, staff, log):
    log = update_packing_log(log.id, staff.storekeeper, db, notes="corrected")
    assert log.status == "pending"
    assert log.storekeeper_notes == "corrected"
    assert log.bags_packed == 50


def test_cannot_edit_confirmed_log(db, staff, log):
    confirm_packing_log(log.id, None, staff.packer, db)
    with pytest.raises(InvalidStateError):
        update_packing_log(log.id, staff.storekeeper, db, bags_packed=10)


def test_delete_packing_log(db, staff, log):
    delete_packing_log(log.id, staff.storekeeper, db)
    assert db.get(PackingLog, log.id) is None
    with pytest.raises(NotFoundError):
        delete_packing_log(log.id, staff.storekeeper, db)


def test_cannot_delete_approved_log(db, staff, log):
    confirm_packing_log(log.id, None, staff.packer, db)
    approve_packing_log(log.id, None, staff.manager, db)
    with pytest.raises(InvalidStateError):
        delete_packing_log(log.id, staff.storekeeper, db)


def test_pending_approvals_newest_first(db, staff):
    older = create_packing_log(staff.packer.id, 10, today(), None, staff.storekeeper, db)
    older.created_at = datetime.utcnow() - timedelta(hours=2)
    newer = create_packing_log(staff.packer.id, 20, today(), None, staff.storekeeper, db)
    untouched = create_packing_log(staff.packer2.id, 30, today(), None, staff.storekeeper, db)
    db.flush()

    confirm_packing_log(older.id, None, staff.packer, db)
    dispute_packing_log(newer.id, 15, "torn bags", None, staff.packer, db)

    queue = list_pending_approvals(db)
    assert [entry.id for entry in queue] == [newer.id, older.id]
    assert untouched.id not in [entry.id for entry in queue]


def test_list_and_stats(db, staff, log):
    other = create_packing_log(staff.packer.id, 30, today(), None, staff.storekeeper, db)
    confirm_packing_log(log.id, None, staff.packer, db)
    approve_packing_log(log.id, None, staff.manager, db)

    assert len(list_packing_logs(db, staff.packer.id)) == 2
    assert [entry.id for entry in list_packing_logs(db, staff.packer.id, "pending")] == [other.id]
    assert list_packing_logs(db, staff.packer2.id) == []
    assert list_packing_logs(db, staff.packer.id, end_date=today() - timedelta(days=1)) == []

    stats = packing_log_stats(db)
    assert stats["total"] == 2
    assert stats["approved"] == 1
    assert stats["pending"] == 1
    assert stats["total_bags_approved"] == 50
