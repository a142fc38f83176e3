from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from collegedesk.auth.context import SessionContext
from collegedesk.auth.dependencies import get_session_context
from collegedesk.auth.identity_provider import IdentityProvider, get_identity_provider
from collegedesk.auth.schemas import (
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MeResponse,
    RefreshRequest,
    RefreshResponse,
)
from collegedesk.auth.services import describe_session, refresh_access_token, sign_in_and_verify
from collegedesk.core.exceptions import ServiceError
from collegedesk.db.session import get_db, get_session_factory

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=http_status.HTTP_200_OK,
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> LoginResponse:
    try:
        return await sign_in_and_verify(db, provider, session_factory, payload)
    except ServiceError as e:
        if e.status_code == http_status.HTTP_500_INTERNAL_SERVER_ERROR:
            raise HTTPException(status_code=e.status_code, detail="Internal server error")
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/login-oauth")
async def login_oauth(
    college_id: UUID,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Form login for the interactive docs; the college is passed as a query parameter."""
    payload = LoginRequest(
        email=form_data.username.strip(),
        password=form_data.password,
        college_id=college_id,
    )
    try:
        result = await sign_in_and_verify(db, provider, session_factory, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {
        "access_token": result.access_token,
        "token_type": "bearer",
    }


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    payload: RefreshRequest,
    db: AsyncSession = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> RefreshResponse:
    try:
        return await refresh_access_token(db, provider, payload.refresh_token)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/logout", status_code=http_status.HTTP_204_NO_CONTENT)
async def logout(
    payload: LogoutRequest,
    context: SessionContext = Depends(get_session_context),
) -> None:
    try:
        await context.clear(payload.refresh_token)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/me", response_model=MeResponse)
async def me(
    db: AsyncSession = Depends(get_db),
    context: SessionContext = Depends(get_session_context),
) -> MeResponse:
    try:
        return await describe_session(db, context)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
