"""
Role resolution over the three disjoint role tables (admins, staff, students).

Lookup priority is admin > staff > student; it only matters if an identity was ever
left in more than one table for the same college.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Type
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from collegedesk.auth.models import AdminAccount, Profile, StaffAccount, StudentAccount
from collegedesk.core.enums import UserRole
from collegedesk.core.exceptions import ProfileNotFound, StoreError
from collegedesk.core.models import College

logger = logging.getLogger(__name__)

# Priority order
ROLE_MODELS: Dict[UserRole, Type] = {
    UserRole.ADMIN: AdminAccount,
    UserRole.STAFF: StaffAccount,
    UserRole.STUDENT: StudentAccount,
}


@dataclass
class ResolvedRole:
    role: UserRole
    record: object
    college: Optional[College] = None


@dataclass
class RoleMember:
    """Role row joined with its college name and profile name, for listings."""

    role: UserRole
    record: object
    college_name: str
    full_name: Optional[str]


def redirect_target(role: UserRole) -> str:
    return f"/{role.value}-dashboard"


async def resolve_role(
    db: AsyncSession,
    user_id: UUID,
    college_id: UUID,
) -> Optional[ResolvedRole]:
    """First role row of the identity in the college, by priority; None if it has none."""
    try:
        for role, model in ROLE_MODELS.items():
            result = await db.execute(
                select(model).where(model.user_id == user_id, model.college_id == college_id)
            )
            record = result.scalars().first()
            if record is not None:
                college = await db.get(College, college_id)
                return ResolvedRole(role=role, record=record, college=college)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to resolve user role") from e
    return None


async def _lookup_by_email(
    session_factory: async_sessionmaker,
    model: Type,
    email: str,
    college_id: UUID,
):
    async with session_factory() as session:
        result = await session.execute(
            select(model).where(
                func.lower(model.email) == email.strip().lower(),
                model.college_id == college_id,
            )
        )
        return result.scalars().first()


async def find_role_by_email(
    session_factory: async_sessionmaker,
    email: str,
    college_id: UUID,
) -> Optional[ResolvedRole]:
    """Look the email up in all three tables at once; first match by priority wins."""
    try:
        records = await asyncio.gather(
            *(_lookup_by_email(session_factory, model, email, college_id) for model in ROLE_MODELS.values())
        )
    except SQLAlchemyError as e:
        raise StoreError("Failed to look up user role") from e
    for role, record in zip(ROLE_MODELS.keys(), records):
        if record is not None:
            return ResolvedRole(role=role, record=record)
    return None


async def assign_role(
    db: AsyncSession,
    user_id: UUID,
    role: UserRole,
    college_id: UUID,
):
    """
    Move an identity into exactly one role table.
    Order: delete from all tables, resolve email from profile, insert. Steps are committed
    separately, so a missing profile leaves the identity without any role.
    """
    try:
        for model in ROLE_MODELS.values():
            await db.execute(delete(model).where(model.user_id == user_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to clear existing roles") from e

    try:
        profile = (
            await db.execute(select(Profile).where(Profile.user_id == user_id))
        ).scalar_one_or_none()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load user profile") from e
    if profile is None:
        logger.warning("Role assignment for %s aborted: no profile; identity left without a role", user_id)
        raise ProfileNotFound()

    model = ROLE_MODELS[role]
    fields = {"user_id": user_id, "email": profile.email, "college_id": college_id}
    if model is StudentAccount:
        fields["full_name"] = profile.full_name
    record = model(**fields)
    try:
        db.add(record)
        await db.commit()
        await db.refresh(record)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to assign role") from e
    logger.info("Assigned role %s to %s in college %s", role.value, user_id, college_id)
    return record


async def _members_of(
    session_factory: async_sessionmaker,
    role: UserRole,
    college_id: UUID,
) -> List[RoleMember]:
    model = ROLE_MODELS[role]
    async with session_factory() as session:
        result = await session.execute(
            select(model, College.name, Profile.full_name)
            .join(College, College.id == model.college_id)
            .outerjoin(Profile, Profile.user_id == model.user_id)
            .where(model.college_id == college_id)
            .order_by(model.created_at.desc())
        )
        return [
            RoleMember(role=role, record=record, college_name=college_name, full_name=full_name)
            for record, college_name, full_name in result.all()
        ]


async def list_users_by_college(
    session_factory: async_sessionmaker,
    college_id: UUID,
) -> Dict[UserRole, List[RoleMember]]:
    """Admins, staff and students of a college, newest first, fetched concurrently."""
    try:
        groups: Tuple[List[RoleMember], ...] = tuple(
            await asyncio.gather(
                *(_members_of(session_factory, role, college_id) for role in ROLE_MODELS)
            )
        )
    except SQLAlchemyError as e:
        raise StoreError("Failed to load users") from e
    return dict(zip(ROLE_MODELS.keys(), groups))
