import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from collegedesk.auth.context import SessionContext
from collegedesk.auth.identity_provider import IdentityProvider
from collegedesk.auth.models import Identity, Profile
from collegedesk.auth.roles import find_role_by_email, redirect_target, resolve_role
from collegedesk.auth.schemas import (
    CollegeInfo,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RefreshResponse,
    UserInfo,
)
from collegedesk.core.exceptions import (
    InvalidCredentials,
    Mismatch,
    ServiceError,
    StoreError,
    Unauthorized,
)
from collegedesk.core.models import College

logger = logging.getLogger(__name__)


def _college_info(college: Optional[College]) -> Optional[CollegeInfo]:
    if college is None:
        return None
    return CollegeInfo(id=college.id, name=college.name, address=college.address, logo_url=college.logo_url)


async def _full_name(db: AsyncSession, user_id) -> Optional[str]:
    try:
        profile = (
            await db.execute(select(Profile).where(Profile.user_id == user_id))
        ).scalar_one_or_none()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load user profile") from e
    return profile.full_name if profile else None


async def sign_in_and_verify(
    db: AsyncSession,
    provider: IdentityProvider,
    session_factory: async_sessionmaker,
    payload: LoginRequest,
) -> LoginResponse:
    """
    Authenticate, then separately verify that the email is provisioned for the chosen college.
    The identity provider has no notion of colleges, so a valid password alone is not enough.
    """
    # 1. Credentials
    session = await provider.authenticate(payload.email, payload.password)

    # 2. Tenant membership by email, across all three role tables
    try:
        resolved = await find_role_by_email(session_factory, payload.email, payload.college_id)
    except ServiceError:
        await provider.sign_out(session)
        raise

    # 3. Not registered for this college
    if resolved is None:
        await provider.sign_out(session)
        logger.warning("Sign-in refused for %s: not registered in college %s", payload.email, payload.college_id)
        raise Unauthorized()

    # 4. Email row points at another identity (stale or duplicate row)
    if resolved.record.user_id != session.user_id:
        await provider.sign_out(session)
        logger.warning("Sign-in refused for %s: role row bound to a different identity", payload.email)
        raise Mismatch()

    # 5. Success
    await provider.bind_session(session, payload.college_id)
    try:
        college = await db.get(College, payload.college_id)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load college") from e

    issued_at = datetime.now(timezone.utc)
    access_token = provider.issue_access_token(
        session.user_id, session.email, payload.college_id, resolved.role.value
    )
    logger.info("Signed in %s as %s", session.user_id, resolved.role.value)
    return LoginResponse(
        access_token=access_token,
        refresh_token=session.refresh_token,
        role=resolved.role,
        redirect_to=redirect_target(resolved.role),
        user=UserInfo(
            id=session.user_id,
            email=session.email,
            full_name=await _full_name(db, session.user_id),
            role=resolved.role,
        ),
        college=_college_info(college),
        issued_at=issued_at,
    )


async def refresh_access_token(
    db: AsyncSession,
    provider: IdentityProvider,
    refresh_token: str,
) -> RefreshResponse:
    """New access token for a stored session, with the role re-read from the role tables."""
    row = await provider.get_refresh_session(refresh_token)
    if row is None or row.college_id is None:
        raise InvalidCredentials("Invalid or expired refresh token")

    resolved = await resolve_role(db, row.user_id, row.college_id)
    if resolved is None:
        await provider.revoke_refresh_token(refresh_token)
        raise Unauthorized()

    try:
        identity = await db.get(Identity, row.user_id)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load identity") from e
    if identity is None:
        raise InvalidCredentials("Invalid or expired refresh token")

    access_token = provider.issue_access_token(identity.id, identity.email, row.college_id, resolved.role.value)
    return RefreshResponse(
        access_token=access_token,
        role=resolved.role,
        redirect_to=redirect_target(resolved.role),
    )


async def describe_session(db: AsyncSession, context: SessionContext) -> MeResponse:
    return MeResponse(
        user=UserInfo(
            id=context.identity,
            email=context.email,
            full_name=await _full_name(db, context.identity),
            role=context.role,
        ),
        college=_college_info(context.college),
    )
