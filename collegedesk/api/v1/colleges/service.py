from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from collegedesk.core.exceptions import InvalidReference, StoreError
from collegedesk.core.models import College

from .schemas import CollegeResponse


async def list_colleges(db: AsyncSession) -> List[CollegeResponse]:
    """All colleges by name. Used by the login and admission forms to pick a tenant."""
    try:
        result = await db.execute(select(College).order_by(College.name))
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load colleges") from e
    return [CollegeResponse.model_validate(c) for c in result.scalars().all()]


async def get_college(db: AsyncSession, college_id: UUID) -> Optional[CollegeResponse]:
    try:
        college = await db.get(College, college_id)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load college") from e
    if not college:
        return None
    return CollegeResponse.model_validate(college)


async def ensure_college(db: AsyncSession, college_id: UUID) -> College:
    """College row for a client-supplied id; InvalidReference when unknown."""
    try:
        college = await db.get(College, college_id)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load college") from e
    if college is None:
        raise InvalidReference("College not found")
    return college
