from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class AdmissionSubmit(BaseModel):
    """Public application form. `data` carries personal info, academics, parents and document URLs."""

    college_id: UUID = Field(..., description="College applied to")
    email: EmailStr
    data: Dict[str, Any] = Field(default_factory=dict)


class PendingAdmissionResponse(BaseModel):
    id: UUID
    college_id: UUID
    email: Optional[str] = None
    data: Dict[str, Any]
    created_at: datetime
    applicant_name: str = Field(..., description="Resolved display name")
    applicant_email: str = Field(..., description="Resolved email; empty when the application has none")


class AdmissionReject(BaseModel):
    # Not validated here: a blank reason is a ReasonRequired error, not a 422
    reason: Optional[str] = None


class RejectedAdmissionResponse(BaseModel):
    id: UUID
    college_id: UUID
    pending_admission_id: Optional[UUID] = None
    email: Optional[str] = None
    rejected_by: str
    rejected_reason: str
    rejected_at: datetime
    application_data: Dict[str, Any]

    class Config:
        from_attributes = True


class ApprovedStudentResponse(BaseModel):
    """Student role row created by approval."""

    user_id: UUID
    email: str
    full_name: Optional[str] = None
    college_id: UUID
    created_at: datetime

    class Config:
        from_attributes = True
