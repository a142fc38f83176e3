from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from collegedesk.auth.identity_provider import IdentityProvider, get_identity_provider
from collegedesk.auth.rbac import require_admin_or_staff
from collegedesk.auth.schemas import CurrentUser
from collegedesk.core.exceptions import ServiceError
from collegedesk.db.session import get_db

from .schemas import (
    AdmissionReject,
    AdmissionSubmit,
    ApprovedStudentResponse,
    PendingAdmissionResponse,
    RejectedAdmissionResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/admissions", tags=["admissions"])


@router.post(
    "",
    response_model=PendingAdmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_application(
    payload: AdmissionSubmit,
    db: AsyncSession = Depends(get_db),
) -> PendingAdmissionResponse:
    """Public admission form submission."""
    try:
        return await service.submit_application(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/pending", response_model=List[PendingAdmissionResponse])
async def list_pending(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin_or_staff),
) -> List[PendingAdmissionResponse]:
    """Pending applications of the current college, newest first."""
    try:
        return await service.list_pending(db, current_user.college_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/rejected", response_model=List[RejectedAdmissionResponse])
async def list_rejected(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin_or_staff),
) -> List[RejectedAdmissionResponse]:
    try:
        return await service.list_rejected(db, current_user.college_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{pending_id}/approve", response_model=ApprovedStudentResponse)
async def approve_application(
    pending_id: UUID,
    db: AsyncSession = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    current_user: CurrentUser = Depends(require_admin_or_staff),
) -> ApprovedStudentResponse:
    """Create the student account (default password) and remove the pending application."""
    try:
        return await service.approve(db, provider, current_user.college_id, pending_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{pending_id}/reject", response_model=RejectedAdmissionResponse)
async def reject_application(
    pending_id: UUID,
    payload: AdmissionReject,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin_or_staff),
) -> RejectedAdmissionResponse:
    try:
        rejected_by = await service.reviewer_name(db, current_user.id, current_user.email)
        return await service.reject(db, current_user.college_id, pending_id, payload.reason, rejected_by)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
