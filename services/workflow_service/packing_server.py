from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.constants import API_PREFIX
from shared.database import get_db
from shared.models import Employee
from shared.responses import ok
from services.auth_service.dependencies import get_current_employee
from services.workflow_service.models import (
    PackingLogCreateRequest, PackingLogUpdateRequest, PackingLogConfirmRequest,
    PackingLogDisputeRequest, PackingLogApproveRequest, PackingLogRejectRequest,
    PackingLogOut, PackingLogStats,
)
from services.workflow_service.packing_tools import (
    create_packing_log, update_packing_log, delete_packing_log, confirm_packing_log,
    dispute_packing_log, approve_packing_log, reject_packing_log, list_packing_logs,
    list_pending_approvals, packing_log_stats,
)

router = APIRouter(prefix=API_PREFIX, tags=["packing-logs"])


@router.post("/packing-logs", status_code=201)
def create_packing_log_endpoint(
    body: PackingLogCreateRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    log = create_packing_log(
        body.packer_id, body.bags_packed, body.packing_date, body.notes, employee, db,
        assignment_id=body.assignment_id,
    )
    return ok(PackingLogOut.model_validate(log), "Packing log created successfully")


@router.get("/packing-logs/stats")
def packing_log_stats_endpoint(
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return ok(PackingLogStats(**packing_log_stats(db)))


@router.get("/packing-logs/{packer_id}")
def list_packing_logs_endpoint(
    packer_id: int,
    status: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    logs = list_packing_logs(db, packer_id, status, start_date, end_date)
    return ok([PackingLogOut.model_validate(log) for log in logs])


@router.put("/packing-logs/{log_id}")
def update_packing_log_endpoint(
    log_id: int,
    body: PackingLogUpdateRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    """Edit a pending log or resubmit a rejected one."""
    log = update_packing_log(
        log_id, employee, db,
        bags_packed=body.bags_packed,
        packing_date=body.packing_date,
        notes=body.notes,
    )
    return ok(PackingLogOut.model_validate(log), "Packing log updated successfully")


@router.delete("/packing-logs/{log_id}")
def delete_packing_log_endpoint(
    log_id: int,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    delete_packing_log(log_id, employee, db)
    return ok(None, "Packing log deleted successfully")


@router.put("/packing-logs/{log_id}/confirm")
def confirm_packing_log_endpoint(
    log_id: int,
    body: PackingLogConfirmRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    log = confirm_packing_log(log_id, body.packer_notes, employee, db)
    return ok(PackingLogOut.model_validate(log), "Packing log confirmed successfully")


@router.put("/packing-logs/{log_id}/dispute")
def dispute_packing_log_endpoint(
    log_id: int,
    body: PackingLogDisputeRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    log = dispute_packing_log(
        log_id, body.disputed_bags, body.dispute_reason, body.packer_notes, employee, db,
    )
    return ok(PackingLogOut.model_validate(log), "Packing log disputed successfully")


@router.put("/packing-logs/{log_id}/approve")
def approve_packing_log_endpoint(
    log_id: int,
    body: PackingLogApproveRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    log = approve_packing_log(
        log_id, body.manager_notes, employee, db, final_bags=body.final_bags,
    )
    return ok(PackingLogOut.model_validate(log), "Packing log approved successfully")


@router.put("/packing-logs/{log_id}/reject")
def reject_packing_log_endpoint(
    log_id: int,
    body: PackingLogRejectRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    log = reject_packing_log(
        log_id, body.modification_comment, body.manager_notes, employee, db,
    )
    return ok(PackingLogOut.model_validate(log), "Packing log rejected")


@router.get("/pending-approvals")
def pending_approvals_endpoint(
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return ok([PackingLogOut.model_validate(log) for log in list_pending_approvals(db)])
