from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from collegedesk.core.enums import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    college_id: UUID = Field(..., description="College the user is signing in to")


class UserInfo(BaseModel):
    id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    role: UserRole


class CollegeInfo(BaseModel):
    id: UUID
    name: str
    address: Optional[str] = None
    logo_url: Optional[str] = None


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    role: UserRole
    redirect_to: str
    user: UserInfo
    college: Optional[CollegeInfo] = None
    issued_at: datetime


class RefreshRequest(BaseModel):
    refresh_token: str


class RefreshResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: UserRole
    redirect_to: str


class LogoutRequest(BaseModel):
    """Omit refresh_token to end every session of the user."""

    refresh_token: Optional[str] = None


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for role checks."""

    id: UUID
    email: str
    college_id: UUID
    role: UserRole


class MeResponse(BaseModel):
    user: UserInfo
    college: Optional[CollegeInfo] = None
