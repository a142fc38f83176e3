"""
Admission workflow: Submitted -> Approved | Rejected.

A pending row is moved, never status-flagged. Approval creates identity + student row and
deletes the pending row; rejection archives a copy with the reason and deletes the pending row.
Each step commits on its own and checks before it writes, so a run interrupted half-way can be
repeated without duplicating identities, student rows or archive rows.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from collegedesk.api.v1.colleges.service import ensure_college
from collegedesk.auth.identity_provider import IdentityProvider
from collegedesk.auth.models import AdminAccount, Profile, StaffAccount, StudentAccount
from collegedesk.core.config import settings
from collegedesk.core.exceptions import (
    AdmissionNotFound,
    MissingEmail,
    ReasonRequired,
    RoleConflict,
    StoreError,
)
from collegedesk.core.models import PendingAdmission, RejectedAdmission

from .field_resolution import applicant_email, applicant_name
from .schemas import (
    AdmissionSubmit,
    ApprovedStudentResponse,
    PendingAdmissionResponse,
    RejectedAdmissionResponse,
)

logger = logging.getLogger(__name__)


def _as_record(p: PendingAdmission) -> Dict[str, Any]:
    """JSON-safe copy of the pending row; the shape field resolution and the archive work on."""
    return {
        "id": str(p.id),
        "college_id": str(p.college_id),
        "email": p.email,
        "data": dict(p.data or {}),
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def _pending_to_response(p: PendingAdmission) -> PendingAdmissionResponse:
    record = _as_record(p)
    return PendingAdmissionResponse(
        id=p.id,
        college_id=p.college_id,
        email=p.email,
        data=record["data"],
        created_at=p.created_at,
        applicant_name=applicant_name(record),
        applicant_email=applicant_email(record),
    )


async def submit_application(db: AsyncSession, payload: AdmissionSubmit) -> PendingAdmissionResponse:
    """Store a new application. Duplicate submissions by the same email become separate rows."""
    await ensure_college(db, payload.college_id)
    pending = PendingAdmission(
        college_id=payload.college_id,
        email=str(payload.email),
        data=payload.data,
    )
    try:
        db.add(pending)
        await db.commit()
        await db.refresh(pending)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to submit application") from e
    logger.info("Application %s submitted to college %s", pending.id, pending.college_id)
    return _pending_to_response(pending)


async def list_pending(db: AsyncSession, college_id: UUID) -> List[PendingAdmissionResponse]:
    try:
        result = await db.execute(
            select(PendingAdmission)
            .where(PendingAdmission.college_id == college_id)
            .order_by(PendingAdmission.created_at.desc())
        )
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load pending applications") from e
    return [_pending_to_response(p) for p in result.scalars().all()]


async def list_rejected(db: AsyncSession, college_id: UUID) -> List[RejectedAdmissionResponse]:
    try:
        result = await db.execute(
            select(RejectedAdmission)
            .where(RejectedAdmission.college_id == college_id)
            .order_by(RejectedAdmission.rejected_at.desc())
        )
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load rejected applications") from e
    return [RejectedAdmissionResponse.model_validate(r) for r in result.scalars().all()]


async def _get_pending(db: AsyncSession, college_id: UUID, pending_id: UUID) -> PendingAdmission:
    try:
        result = await db.execute(
            select(PendingAdmission).where(
                PendingAdmission.id == pending_id,
                PendingAdmission.college_id == college_id,
            )
        )
        pending = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load application") from e
    if pending is None:
        raise AdmissionNotFound()
    return pending


async def _delete_pending(db: AsyncSession, pending_id: UUID) -> None:
    try:
        await db.execute(delete(PendingAdmission).where(PendingAdmission.id == pending_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to remove pending application") from e


async def _holds_staff_role(db: AsyncSession, college_id: UUID, email: str) -> bool:
    for model in (AdminAccount, StaffAccount):
        result = await db.execute(
            select(model.id).where(
                func.lower(model.email) == email.lower(),
                model.college_id == college_id,
            )
        )
        if result.first() is not None:
            return True
    return False


async def approve(
    db: AsyncSession,
    provider: IdentityProvider,
    college_id: UUID,
    pending_id: UUID,
) -> ApprovedStudentResponse:
    """
    1. resolve email and name from the application (MissingEmail if no email)
    2. create the identity with the default password, email confirmed
    3. insert the students row
    4. delete the pending row
    No rollback between steps.
    """
    pending = await _get_pending(db, college_id, pending_id)
    record = _as_record(pending)
    email = applicant_email(record)
    if not email:
        raise MissingEmail()
    full_name = applicant_name(record)

    try:
        if await _holds_staff_role(db, college_id, email):
            raise RoleConflict("Applicant email already belongs to an admin or staff member of this college")
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to check existing roles") from e

    identity = await provider.get_identity_by_email(email)
    if identity is None:
        identity = await provider.admin_create_identity(
            email,
            settings.default_student_password,
            email_confirm=True,
            user_metadata={"full_name": full_name},
        )
    else:
        logger.info("Approval of %s reuses existing identity %s", pending_id, identity.id)
    user_id = identity.id

    try:
        result = await db.execute(
            select(StudentAccount).where(
                StudentAccount.user_id == user_id,
                StudentAccount.college_id == college_id,
            )
        )
        student = result.scalar_one_or_none()
        if student is None:
            student = StudentAccount(user_id=user_id, email=email, college_id=college_id, full_name=full_name)
            db.add(student)
            await db.commit()
            await db.refresh(student)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Student insert failed for approved application %s; identity %s kept", pending_id, user_id)
        raise StoreError("Failed to create student record") from e

    await _delete_pending(db, pending_id)
    logger.info("Application %s approved: student %s in college %s", pending_id, user_id, college_id)
    return ApprovedStudentResponse.model_validate(student)


async def reviewer_name(db: AsyncSession, user_id: UUID, email: Optional[str]) -> str:
    """Name stored as `rejected_by`: profile name, else email, else "Admin"."""
    try:
        result = await db.execute(select(Profile.full_name).where(Profile.user_id == user_id))
        full_name = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load user profile") from e
    return full_name or email or "Admin"


async def reject(
    db: AsyncSession,
    college_id: UUID,
    pending_id: UUID,
    reason: Optional[str],
    rejected_by: str,
) -> RejectedAdmissionResponse:
    """Archive the application with the reason, then delete the pending row."""
    if not reason or not reason.strip():
        raise ReasonRequired()

    pending = await _get_pending(db, college_id, pending_id)
    record = _as_record(pending)

    try:
        result = await db.execute(
            select(RejectedAdmission).where(RejectedAdmission.pending_admission_id == pending.id)
        )
        rejected = result.scalars().first()
        if rejected is None:
            rejected = RejectedAdmission(
                college_id=college_id,
                pending_admission_id=pending.id,
                email=applicant_email(record) or None,
                rejected_by=rejected_by,
                rejected_reason=reason,
                rejected_at=datetime.now(timezone.utc),
                application_data=record,
            )
            db.add(rejected)
            await db.commit()
            await db.refresh(rejected)
        else:
            logger.info("Application %s already archived; removing pending row only", pending_id)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to archive rejected application") from e

    await _delete_pending(db, pending_id)
    logger.info("Application %s rejected by %s", pending_id, rejected_by)
    return RejectedAdmissionResponse.model_validate(rejected)
