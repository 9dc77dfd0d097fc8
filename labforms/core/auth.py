"""Authentication dependencies for FastAPI routes."""

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from labforms.core.config import settings
from labforms.core.jwt import jwt_verifier
from labforms.schemas.auth import CurrentUser
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> CurrentUser:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Authorization credentials (automatically injected)

    Returns:
        CurrentUser: Authenticated user information

    Raises:
        HTTPException: If token is missing, invalid, or expired
    """
    if not credentials:
        LOGGER.warning("No authorization credentials provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = await jwt_verifier.verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    user = CurrentUser(
        id=claims.sub,
        email=claims.email,
        role=jwt_verifier.application_role(claims),
    )
    LOGGER.debug(f"Authenticated user: {user.id} ({user.email})")
    return user


def require_any_role(*required_roles: str):
    """Create a dependency that requires any of the specified roles.

    Args:
        required_roles: Roles that are allowed access

    Returns:
        Dependency function that checks if user has any required role
    """
    async def role_checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in required_roles:
            LOGGER.warning(
                f"Access denied for user {user.id}: role '{user.role}' not in allowed roles {required_roles}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required roles: {', '.join(required_roles)}",
            )
        return user

    return role_checker


require_admin = require_any_role(*settings.auth.admin_roles)
