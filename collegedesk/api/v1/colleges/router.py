from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from collegedesk.core.exceptions import ServiceError
from collegedesk.db.session import get_db

from .schemas import CollegeResponse
from . import service

router = APIRouter(prefix="/api/v1/colleges", tags=["colleges"])


@router.get("", response_model=List[CollegeResponse])
async def list_colleges(
    db: AsyncSession = Depends(get_db),
) -> List[CollegeResponse]:
    """Public list of colleges, ordered by name."""
    try:
        return await service.list_colleges(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{college_id}", response_model=CollegeResponse)
async def get_college(
    college_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> CollegeResponse:
    try:
        college = await service.get_college(db, college_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not college:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="College not found")
    return college
