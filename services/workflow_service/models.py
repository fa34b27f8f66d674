from datetime import date, datetime
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

NonNegativeInt = Annotated[int, Field(strict=True, ge=0)]

AssignmentStatus = Literal["pending_review", "approved", "rejected"]
WorkLogStatus = Literal["pending", "approved", "rejected"]
PackingLogStatus = Literal["pending", "confirmed", "disputed", "approved", "rejected"]


# ---- Requests ----


class BatchCreateRequest(BaseModel):
    loader_id: int
    bags_received: int
    notes: Optional[str] = None


class IntakeRequest(BaseModel):
    loader_id: int
    packer_id: int
    bags_submitted: int
    notes: Optional[str] = None


class AssignmentCreateRequest(BaseModel):
    batch_id: int
    packer_id: int
    bags_assigned: int
    notes: Optional[str] = None


class ReviewRequest(BaseModel):
    action: Literal["approve", "reject"]
    comment: Optional[str] = None


class ResubmitRequest(BaseModel):
    bags_assigned: int
    notes: Optional[str] = None


class WorkLogCreateRequest(BaseModel):
    assignment_id: int
    bags_packed: int


class PackingLogCreateRequest(BaseModel):
    packer_id: int
    bags_packed: int
    packing_date: date
    notes: Optional[str] = None
    assignment_id: Optional[int] = None


class PackingLogUpdateRequest(BaseModel):
    bags_packed: Optional[int] = None
    packing_date: Optional[date] = None
    notes: Optional[str] = None


class PackingLogConfirmRequest(BaseModel):
    packer_notes: Optional[str] = None


class PackingLogDisputeRequest(BaseModel):
    disputed_bags: NonNegativeInt
    dispute_reason: str = Field(min_length=1)
    packer_notes: Optional[str] = None


class PackingLogApproveRequest(BaseModel):
    manager_notes: Optional[str] = None
    final_bags: Optional[NonNegativeInt] = None


class PackingLogRejectRequest(BaseModel):
    modification_comment: Optional[str] = None
    manager_notes: Optional[str] = None


# ---- Responses ----


class BatchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    batch_number: str
    loader_id: int
    loader_name: Optional[str] = None
    bags_received: int
    bags_allocated: int
    remaining_capacity: int
    status: str
    notes: Optional[str] = None
    created_at: datetime


class AssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    batch_id: int
    batch_number: Optional[str] = None
    packer_id: int
    packer_name: Optional[str] = None
    loader_name: Optional[str] = None
    storekeeper_id: int
    bags_assigned: int
    status: AssignmentStatus
    notes: Optional[str] = None
    review_comment: Optional[str] = None
    rejection_comment: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class IntakeOut(BaseModel):
    batch: BatchOut
    assignment: AssignmentOut


class WorkLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    assignment_id: int
    batch_number: Optional[str] = None
    packer_id: int
    packer_name: Optional[str] = None
    bags_assigned: int
    bags_packed: int
    status: WorkLogStatus
    modification_comment: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class PackingLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    packer_id: int
    packer_name: Optional[str] = None
    storekeeper_id: int
    storekeeper_name: Optional[str] = None
    manager_id: Optional[int] = None
    manager_name: Optional[str] = None
    assignment_id: Optional[int] = None
    bags_packed: int
    packing_date: date
    status: PackingLogStatus
    disputed_bags: Optional[int] = None
    dispute_reason: Optional[str] = None
    packer_notes: Optional[str] = None
    storekeeper_notes: Optional[str] = None
    manager_notes: Optional[str] = None
    modification_comment: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None


class PackingLogStats(BaseModel):
    total: int
    pending: int
    confirmed: int
    disputed: int
    approved: int
    rejected: int
    total_bags_approved: int


class DashboardStats(BaseModel):
    total_batches: int
    pending_reviews: int
    approved_assignments: int
    pending_work_logs: int
    approved_work_logs: int
    pending_packing_approvals: int
