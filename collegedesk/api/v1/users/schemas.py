from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from collegedesk.core.enums import UserRole


class UserResponse(BaseModel):
    """One role assignment in a college, with profile name for display."""

    user_id: UUID
    email: str
    full_name: Optional[str] = None
    role: UserRole
    college_id: UUID
    college_name: Optional[str] = None
    created_at: datetime


class UserGroup(BaseModel):
    items: List[UserResponse] = Field(..., description="Users on this page")
    total: int = Field(..., ge=0, description="Total count matching the search")
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1, le=100)
    total_pages: int = Field(..., ge=0)


class UserListResponse(BaseModel):
    """Each role group is searched and paginated independently."""

    admins: UserGroup
    staff: UserGroup
    students: UserGroup


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole
    full_name: Optional[str] = Field(None, description="Defaults to the part of the email before @")


class RoleUpdate(BaseModel):
    role: UserRole


class ProfileResponse(BaseModel):
    user_id: UUID
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
