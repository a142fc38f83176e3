import logging
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from collegedesk.api.v1.colleges.service import ensure_college
from collegedesk.auth.identity_provider import IdentityProvider
from collegedesk.auth.models import Profile, StudentAccount
from collegedesk.auth.roles import (
    ROLE_MODELS,
    RoleMember,
    assign_role,
    list_users_by_college,
    resolve_role,
)
from collegedesk.core.enums import UserRole
from collegedesk.core.exceptions import ProfileNotFound, ServiceError, StoreError

from .schemas import (
    ProfileResponse,
    ProfileUpdate,
    UserCreate,
    UserGroup,
    UserListResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


def _member_to_response(member: RoleMember) -> UserResponse:
    return UserResponse(
        user_id=member.record.user_id,
        email=member.record.email,
        full_name=member.full_name,
        role=member.role,
        college_id=member.record.college_id,
        college_name=member.college_name,
        created_at=member.record.created_at,
    )


def _matches(member: RoleMember, search: str) -> bool:
    term = search.lower()
    if term in (member.record.email or "").lower():
        return True
    return bool(member.full_name) and term in member.full_name.lower()


def _paginate(members: List[RoleMember], search: Optional[str], page: int, page_size: int) -> UserGroup:
    if search:
        members = [m for m in members if _matches(m, search)]
    total = len(members)
    offset = (page - 1) * page_size
    total_pages = (total + page_size - 1) // page_size if page_size else 0
    return UserGroup(
        items=[_member_to_response(m) for m in members[offset:offset + page_size]],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


async def list_users(
    session_factory: async_sessionmaker,
    college_id: UUID,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> UserListResponse:
    """Admins, staff and students of the college; search matches email or full name."""
    groups = await list_users_by_college(session_factory, college_id)
    return UserListResponse(
        admins=_paginate(groups[UserRole.ADMIN], search, page, page_size),
        staff=_paginate(groups[UserRole.STAFF], search, page, page_size),
        students=_paginate(groups[UserRole.STUDENT], search, page, page_size),
    )


async def create_user(
    db: AsyncSession,
    provider: IdentityProvider,
    college_id: UUID,
    payload: UserCreate,
) -> UserResponse:
    """
    Create identity (email confirmed) then the role row. Not transactional: if the role insert
    fails the identity stays and can be assigned a role later.
    """
    college = await ensure_college(db, college_id)
    email = str(payload.email)
    full_name = payload.full_name or email.split("@")[0]
    identity = await provider.admin_create_identity(
        email,
        payload.password,
        email_confirm=True,
        user_metadata={"full_name": full_name},
    )

    model = ROLE_MODELS[payload.role]
    fields = {"user_id": identity.id, "email": email, "college_id": college_id}
    if model is StudentAccount:
        fields["full_name"] = full_name
    record = model(**fields)
    try:
        db.add(record)
        await db.commit()
        await db.refresh(record)
    except IntegrityError as e:
        await db.rollback()
        raise ServiceError("User already has a role in this college", status.HTTP_409_CONFLICT) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Role insert failed for new identity %s", identity.id)
        raise StoreError("Failed to assign role") from e

    logger.info("Created %s %s in college %s", payload.role.value, identity.id, college_id)
    return UserResponse(
        user_id=identity.id,
        email=email,
        full_name=full_name,
        role=payload.role,
        college_id=college_id,
        college_name=college.name,
        created_at=record.created_at,
    )


async def update_user_role(
    db: AsyncSession,
    college_id: UUID,
    user_id: UUID,
    role: UserRole,
) -> UserResponse:
    """Move a member of the college to another role."""
    current = await resolve_role(db, user_id, college_id)
    if current is None:
        raise ServiceError("User not found", status.HTTP_404_NOT_FOUND)
    college = current.college
    record = await assign_role(db, user_id, role, college_id)
    profile = await _get_profile(db, user_id)
    return UserResponse(
        user_id=user_id,
        email=record.email,
        full_name=profile.full_name if profile else None,
        role=role,
        college_id=college_id,
        college_name=college.name if college else None,
        created_at=record.created_at,
    )


async def delete_user(
    db: AsyncSession,
    provider: IdentityProvider,
    college_id: UUID,
    user_id: UUID,
    role: UserRole,
) -> None:
    """Remove the role row, then the identity itself (profile and sessions go with it)."""
    model = ROLE_MODELS[role]
    try:
        result = await db.execute(
            select(model.id).where(model.user_id == user_id, model.college_id == college_id)
        )
        if result.scalar_one_or_none() is None:
            raise ServiceError("User not found", status.HTTP_404_NOT_FOUND)
        await db.execute(delete(model).where(model.user_id == user_id, model.college_id == college_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to delete user") from e

    await provider.admin_delete_identity(user_id)
    logger.info("Deleted %s %s from college %s", role.value, user_id, college_id)


async def _get_profile(db: AsyncSession, user_id: UUID) -> Optional[Profile]:
    try:
        result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load user profile") from e
    return result.scalar_one_or_none()


async def get_profile(db: AsyncSession, user_id: UUID) -> ProfileResponse:
    profile = await _get_profile(db, user_id)
    if not profile:
        raise ProfileNotFound()
    return ProfileResponse.model_validate(profile)


async def update_profile(
    db: AsyncSession,
    user_id: UUID,
    payload: ProfileUpdate,
) -> ProfileResponse:
    profile = await _get_profile(db, user_id)
    if not profile:
        raise ProfileNotFound()
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)
    try:
        await db.commit()
        await db.refresh(profile)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to update profile") from e
    return ProfileResponse.model_validate(profile)
