from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.database import get_db
from shared.constants import API_PREFIX
from shared.models import Employee
from shared.responses import ok
from services.auth_service.models import (
    LoginRequest, CreateEmployeeRequest, EmployeeOut, LoginResponse,
)
from services.auth_service.tools import login, create_employee, list_employees
from services.auth_service.dependencies import get_current_employee

router = APIRouter(prefix=API_PREFIX, tags=["auth"])


@router.post("/login")
def login_endpoint(body: LoginRequest, db: Session = Depends(get_db)):
    result = login(email=body.email, pin=body.pin, db=db)
    return ok(LoginResponse.model_validate(result, from_attributes=True), "Login successful")


@router.get("/me")
def me_endpoint(employee: Employee = Depends(get_current_employee)):
    return ok(EmployeeOut.model_validate(employee))


@router.get("/employees")
def list_employees_endpoint(
    role: Optional[str] = Query(None, description="Filter by role"),
    active_only: bool = Query(False),
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    employees = list_employees(db, role=role, active_only=active_only)
    return ok([EmployeeOut.model_validate(e) for e in employees])


@router.post("/employees", status_code=201)
def create_employee_endpoint(
    body: CreateEmployeeRequest,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    created = create_employee(
        name=body.name,
        email=body.email,
        phone=body.phone,
        role=body.role,
        pin=body.pin,
        actor=employee,
        db=db,
    )
    return ok(EmployeeOut.model_validate(created), "Employee created successfully")
