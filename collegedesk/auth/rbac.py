from fastapi import Depends, HTTPException, status

from collegedesk.auth.dependencies import get_current_user
from collegedesk.auth.schemas import CurrentUser
from collegedesk.core.enums import UserRole


def require_roles(*roles: UserRole):
    """
    Dependency factory restricting an endpoint to the given roles.

    Example:
        Depends(require_roles(UserRole.ADMIN, UserRole.STAFF))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


require_admin = require_roles(UserRole.ADMIN)
require_admin_or_staff = require_roles(UserRole.ADMIN, UserRole.STAFF)
require_student = require_roles(UserRole.STUDENT)
