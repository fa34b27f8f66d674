from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.constants import API_PREFIX, PACKER, LOADER
from shared.database import get_db
from shared.models import Employee
from shared.responses import ok
from services.auth_service.dependencies import get_current_employee
from services.auth_service.models import EmployeeOut
from services.auth_service.tools import list_employees
from services.workflow_service.models import (
    BatchCreateRequest, IntakeRequest, AssignmentCreateRequest, ReviewRequest,
    ResubmitRequest, WorkLogCreateRequest, BatchOut, AssignmentOut, IntakeOut,
    WorkLogOut, DashboardStats,
)
from services.workflow_service.intake_tools import (
    create_batch, create_intake, create_assignment, review_assignment,
    resubmit_assignment, list_batches, list_assignments, list_batch_assignments,
    dashboard_stats,
)
from services.workflow_service.work_log_tools import (
    submit_work_log, review_work_log, list_work_logs,
)

router = APIRouter(prefix=f"{API_PREFIX}/water-bags", tags=["water-bags"])


# ============================================
# BATCHES / INTAKE
# ============================================


@router.get("/batches")
def list_batches_endpoint(
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return ok([BatchOut.model_validate(b) for b in list_batches(db)])


@router.post("/batches", status_code=201)
def create_batch_endpoint(
    body: BatchCreateRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    batch = create_batch(body.loader_id, body.bags_received, body.notes, employee, db)
    return ok(BatchOut.model_validate(batch), "Water bag batch created successfully")


@router.get("/batches/{batch_id}/assignments")
def list_batch_assignments_endpoint(
    batch_id: int,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    assignments = list_batch_assignments(batch_id, db)
    return ok([AssignmentOut.model_validate(a) for a in assignments])


@router.post("/intake", status_code=201)
def create_intake_endpoint(
    body: IntakeRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    """Storekeeper records a loader delivery and submits it for manager review."""
    batch, assignment = create_intake(
        body.loader_id, body.packer_id, body.bags_submitted, body.notes, employee, db,
    )
    return ok(
        IntakeOut(
            batch=BatchOut.model_validate(batch),
            assignment=AssignmentOut.model_validate(assignment),
        ),
        "Intake submitted for review",
    )


# ============================================
# ASSIGNMENTS
# ============================================


@router.get("/assignments")
def list_assignments_endpoint(
    status: Optional[str] = Query(None, description="pending_review, approved or rejected"),
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return ok([AssignmentOut.model_validate(a) for a in list_assignments(db, status)])


@router.post("/assignments", status_code=201)
def create_assignment_endpoint(
    body: AssignmentCreateRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    assignment = create_assignment(
        body.batch_id, body.packer_id, body.bags_assigned, body.notes, employee, db,
    )
    return ok(AssignmentOut.model_validate(assignment), "Assignment submitted for review")


@router.put("/assignments/{assignment_id}/review")
def review_assignment_endpoint(
    assignment_id: int,
    body: ReviewRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    assignment = review_assignment(assignment_id, body.action, body.comment, employee, db)
    return ok(AssignmentOut.model_validate(assignment), f"Submission {assignment.status}")


@router.put("/assignments/{assignment_id}/resubmit")
def resubmit_assignment_endpoint(
    assignment_id: int,
    body: ResubmitRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    assignment = resubmit_assignment(
        assignment_id, body.bags_assigned, body.notes, employee, db,
    )
    return ok(AssignmentOut.model_validate(assignment), "Submission resubmitted for review")


# ============================================
# WORK LOGS
# ============================================


@router.get("/work-logs")
def list_work_logs_endpoint(
    packer_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    logs = list_work_logs(db, packer_id=packer_id, status=status)
    return ok([WorkLogOut.model_validate(log) for log in logs])


@router.post("/work-logs", status_code=201)
def submit_work_log_endpoint(
    body: WorkLogCreateRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    work_log = submit_work_log(body.assignment_id, body.bags_packed, employee, db)
    return ok(WorkLogOut.model_validate(work_log), "Work log submitted for review")


@router.put("/work-logs/{log_id}/review")
def review_work_log_endpoint(
    log_id: int,
    body: ReviewRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    work_log = review_work_log(log_id, body.action, body.comment, employee, db)
    return ok(WorkLogOut.model_validate(work_log), f"Work log {work_log.status}")


# ============================================
# DIRECTORY / DASHBOARD
# ============================================


@router.get("/packers")
def list_packers_endpoint(
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    packers = list_employees(db, role=PACKER, active_only=True)
    return ok([EmployeeOut.model_validate(p) for p in packers])


@router.get("/loaders")
def list_loaders_endpoint(
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    loaders = list_employees(db, role=LOADER, active_only=True)
    return ok([EmployeeOut.model_validate(l) for l in loaders])


@router.get("/dashboard-stats")
def dashboard_stats_endpoint(
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return ok(DashboardStats(**dashboard_stats(db)))
