from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.constants import API_PREFIX
from shared.database import get_db
from shared.models import Employee
from shared.responses import ok
from services.auth_service.dependencies import get_current_employee
from services.attendance_service.models import ClockOutRequest, AttendanceOut, AttendanceStatus
from services.attendance_service.tools import clock_in, clock_out, attendance_status

router = APIRouter(prefix=f"{API_PREFIX}/attendance", tags=["attendance"])


@router.post("/clock-in", status_code=201)
def clock_in_endpoint(
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    session = clock_in(employee, db)
    return ok(AttendanceOut.model_validate(session), "Clocked in successfully")


@router.post("/clock-out")
def clock_out_endpoint(
    body: ClockOutRequest | None = None,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    session = clock_out(employee, db, notes=body.notes if body else None)
    return ok(AttendanceOut.model_validate(session), "Clocked out successfully")


@router.get("/status")
def attendance_status_endpoint(
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return ok(AttendanceStatus.model_validate(attendance_status(employee, db), from_attributes=True))
