from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    pin: str = Field(min_length=4, max_length=12)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    employee: "EmployeeOut"


class CreateEmployeeRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = None
    role: str
    pin: str = Field(min_length=4, max_length=12)


class EmployeeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    status: str
    created_at: datetime


LoginResponse.model_rebuild()
