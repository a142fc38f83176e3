from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from collegedesk.auth.dependencies import get_current_user
from collegedesk.auth.identity_provider import IdentityProvider, get_identity_provider
from collegedesk.auth.rbac import require_admin
from collegedesk.auth.schemas import CurrentUser
from collegedesk.core.enums import UserRole
from collegedesk.core.exceptions import ServiceError
from collegedesk.db.session import get_db, get_session_factory

from .schemas import ProfileResponse, ProfileUpdate, RoleUpdate, UserCreate, UserListResponse, UserResponse
from . import service

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = Query(None, description="Case-insensitive match on email or full name"),
    page: int = Query(1, ge=1),
    page_size: int = Query(service.DEFAULT_PAGE_SIZE, ge=1, le=100),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: CurrentUser = Depends(require_admin),
) -> UserListResponse:
    """Admins, staff and students of the current college. Admin only."""
    try:
        return await service.list_users(
            session_factory, current_user.college_id, search=search, page=page, page_size=page_size
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    current_user: CurrentUser = Depends(require_admin),
) -> UserResponse:
    try:
        return await service.create_user(db, provider, current_user.college_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/me/profile", response_model=ProfileResponse)
async def get_my_profile(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ProfileResponse:
    try:
        return await service.get_profile(db, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/me/profile", response_model=ProfileResponse)
async def update_my_profile(
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ProfileResponse:
    try:
        return await service.update_profile(db, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: UUID,
    payload: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> UserResponse:
    """Move a user to another role in the current college. Admin only."""
    try:
        return await service.update_user_role(db, current_user.college_id, user_id, payload.role)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    role: UserRole = Query(..., description="Role table the user is listed under"),
    db: AsyncSession = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    current_user: CurrentUser = Depends(require_admin),
) -> None:
    try:
        await service.delete_user(db, provider, current_user.college_id, user_id, role)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
