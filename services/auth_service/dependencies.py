from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from shared.database import get_db
from shared.models import Employee
from shared.exceptions import InactiveAccount
from services.auth_service.token_manager import decode_token

_bearer = HTTPBearer()


def get_current_employee(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer),
    db: Session = Depends(get_db),
) -> Employee:
    """Extract and validate the access token, return the Employee ORM object."""
    payload = decode_token(credentials.credentials)

    if not payload or payload.get("type") != "access" or not str(payload.get("sub", "")).isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    employee = db.get(Employee, int(payload["sub"]))
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Employee not found",
        )
    if not employee.is_active:
        raise InactiveAccount()

    return employee
