from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from collegedesk.auth.context import SessionContext
from collegedesk.auth.identity_provider import IdentityProvider, get_identity_provider
from collegedesk.auth.schemas import CurrentUser
from collegedesk.core.exceptions import ServiceError, Unauthorized


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_session_context(
    token: str = Depends(oauth2_scheme),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> SessionContext:
    """Build the request's session from the access token and re-check the role in the store."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        claims = await provider.current_session(token)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if claims is None or claims.college_id is None:
        raise credentials_exception

    context = SessionContext(provider, claims, tenant=claims.college_id)
    try:
        await context.refresh()
    except Unauthorized:
        raise credentials_exception
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return context


async def get_current_user(
    context: SessionContext = Depends(get_session_context),
) -> CurrentUser:
    """Resolve the authenticated user and their role from the access token."""
    return context.as_current_user()
