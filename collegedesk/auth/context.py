"""
Explicit session object passed into handlers instead of ambient auth state.

Read-only surface: identity, email, tenant (college id), role. The role is re-read from the
role tables on refresh(), so a role change or removal takes effect on the next request.
"""

import logging
from typing import Optional
from uuid import UUID

from collegedesk.auth.identity_provider import IdentityProvider, SessionClaims
from collegedesk.auth.roles import resolve_role
from collegedesk.auth.schemas import CurrentUser
from collegedesk.core.enums import UserRole
from collegedesk.core.exceptions import Unauthorized
from collegedesk.core.models import College

logger = logging.getLogger(__name__)


class SessionContext:
    def __init__(
        self,
        provider: IdentityProvider,
        claims: SessionClaims,
        tenant: UUID,
        role: Optional[UserRole] = None,
    ) -> None:
        self._provider = provider
        self._identity = claims.user_id
        self._email = claims.email
        self._tenant = tenant
        self._role = role
        self._college: Optional[College] = None
        self._cleared = False

    @property
    def identity(self) -> UUID:
        return self._identity

    @property
    def email(self) -> str:
        return self._email

    @property
    def tenant(self) -> UUID:
        return self._tenant

    @property
    def role(self) -> Optional[UserRole]:
        return self._role

    @property
    def college(self) -> Optional[College]:
        return self._college

    @property
    def is_active(self) -> bool:
        return not self._cleared and self._role is not None

    async def refresh(self) -> UserRole:
        """Re-resolve the role for (identity, tenant). Unauthorized if none is held anymore."""
        resolved = await resolve_role(self._provider.db, self._identity, self._tenant)
        if resolved is None:
            self._role = None
            raise Unauthorized()
        self._role = resolved.role
        self._college = resolved.college
        return resolved.role

    async def clear(self, refresh_token: Optional[str] = None) -> None:
        """Sign out: one session when a refresh token is given, otherwise all of them."""
        if refresh_token:
            await self._provider.revoke_refresh_token(refresh_token)
        else:
            await self._provider.revoke_all_sessions(self._identity)
        self._role = None
        self._college = None
        self._cleared = True
        logger.info("Signed out %s", self._identity)

    def as_current_user(self) -> CurrentUser:
        if self._role is None:
            raise Unauthorized()
        return CurrentUser(id=self._identity, email=self._email, college_id=self._tenant, role=self._role)
