"""
Identity provider: email/password identities, sessions and administrative user management.

The provider has no notion of colleges or roles. Tenant membership is verified separately
by the role resolver; the provider only records which college a verified session belongs to.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from collegedesk.auth.models import Identity, Profile, RefreshToken
from collegedesk.auth.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from collegedesk.core.exceptions import IdentityExists, InvalidCredentials, TransportError
from collegedesk.db.session import get_db

logger = logging.getLogger(__name__)


@dataclass
class ProviderSession:
    user_id: UUID
    email: str
    refresh_token: str
    expires_at: datetime


@dataclass(frozen=True)
class SessionClaims:
    user_id: UUID
    email: str
    college_id: Optional[UUID]
    role: Optional[str]


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _to_uuid(val) -> Optional[UUID]:
    if not val:
        return None
    try:
        return val if isinstance(val, UUID) else UUID(str(val))
    except ValueError:
        return None


class IdentityProvider:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _fail(self, action: str, exc: SQLAlchemyError) -> None:
        await self.db.rollback()
        logger.exception("Identity provider failed to %s", action)
        raise TransportError() from exc

    async def get_identity_by_email(self, email: str) -> Optional[Identity]:
        try:
            result = await self.db.execute(
                select(Identity).where(func.lower(Identity.email) == email.strip().lower())
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail("look up identity", e)

    async def authenticate(self, email: str, password: str) -> ProviderSession:
        """Verify credentials and open a session (stored refresh token)."""
        identity = await self.get_identity_by_email(email)
        if not identity or not verify_password(password, identity.password_hash):
            raise InvalidCredentials()
        if identity.email_confirmed_at is None:
            raise InvalidCredentials("Email not confirmed")

        token, expires_at = create_refresh_token()
        try:
            self.db.add(RefreshToken(user_id=identity.id, token=token, expires_at=expires_at))
            identity.last_sign_in_at = datetime.now(timezone.utc)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._fail("open session", e)
        return ProviderSession(
            user_id=identity.id,
            email=identity.email,
            refresh_token=token,
            expires_at=expires_at,
        )

    async def bind_session(self, session: ProviderSession, college_id: UUID) -> None:
        try:
            result = await self.db.execute(
                select(RefreshToken).where(RefreshToken.token == session.refresh_token)
            )
            row = result.scalar_one_or_none()
            if row is not None:
                row.college_id = college_id
                await self.db.commit()
        except SQLAlchemyError as e:
            await self._fail("bind session", e)

    async def get_refresh_session(self, refresh_token: str) -> Optional[RefreshToken]:
        """Stored, unexpired session for a refresh token."""
        try:
            result = await self.db.execute(
                select(RefreshToken).where(RefreshToken.token == refresh_token)
            )
            row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail("load session", e)
        if row is None or _as_utc(row.expires_at) <= datetime.now(timezone.utc):
            return None
        return row

    async def sign_out(self, session: ProviderSession) -> None:
        await self.revoke_refresh_token(session.refresh_token)

    async def revoke_refresh_token(self, refresh_token: str) -> None:
        try:
            await self.db.execute(delete(RefreshToken).where(RefreshToken.token == refresh_token))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._fail("sign out", e)

    async def revoke_all_sessions(self, user_id: UUID) -> None:
        try:
            await self.db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._fail("sign out", e)

    def issue_access_token(self, user_id: UUID, email: str, college_id: UUID, role: str) -> str:
        issued_at = datetime.now(timezone.utc)
        return create_access_token(
            subject={
                "sub": str(user_id),
                "user_id": str(user_id),
                "email": email,
                "college_id": str(college_id),
                "role": role,
                "iat": int(issued_at.timestamp()),
            }
        )

    async def current_session(self, access_token: str) -> Optional[SessionClaims]:
        """Claims of the bearer token, or None when the token is invalid or its identity is gone."""
        payload = decode_access_token(access_token)
        if not payload:
            return None
        user_id = _to_uuid(payload.get("user_id") or payload.get("sub"))
        if user_id is None:
            return None
        try:
            identity = await self.db.get(Identity, user_id)
        except SQLAlchemyError as e:
            await self._fail("load identity", e)
        if identity is None:
            return None
        return SessionClaims(
            user_id=identity.id,
            email=identity.email,
            college_id=_to_uuid(payload.get("college_id")),
            role=payload.get("role"),
        )

    async def admin_create_identity(
        self,
        email: str,
        password: str,
        email_confirm: bool = True,
        user_metadata: Optional[Dict[str, Any]] = None,
    ) -> Identity:
        """Create identity + profile. Profile full_name comes from user_metadata."""
        email = email.strip()
        if await self.get_identity_by_email(email):
            raise IdentityExists()
        metadata = dict(user_metadata or {})
        identity = Identity(
            email=email,
            password_hash=hash_password(password),
            email_confirmed_at=datetime.now(timezone.utc) if email_confirm else None,
            user_metadata=metadata,
        )
        try:
            self.db.add(identity)
            await self.db.flush()
            self.db.add(Profile(user_id=identity.id, email=email, full_name=metadata.get("full_name")))
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise IdentityExists() from e
        except SQLAlchemyError as e:
            await self._fail("create identity", e)
        await self.db.refresh(identity)
        logger.info("Created identity %s", identity.id)
        return identity

    async def admin_delete_identity(self, user_id: UUID) -> None:
        """Delete identity with its profile and sessions. No error if already gone."""
        try:
            exists = await self.db.execute(select(Identity.id).where(Identity.id == user_id))
            if exists.scalar_one_or_none() is None:
                return
            await self.db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
            await self.db.execute(delete(Profile).where(Profile.user_id == user_id))
            await self.db.execute(delete(Identity).where(Identity.id == user_id))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._fail("delete identity", e)
        logger.info("Deleted identity %s", user_id)


async def get_identity_provider(db: AsyncSession = Depends(get_db)) -> IdentityProvider:
    return IdentityProvider(db)
