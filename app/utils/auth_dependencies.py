"""
Authentication Dependencies

FastAPI dependencies for route protection and authentication.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.services.auth_service import AuthService
from app.utils.logger import get_logger

logger = get_logger(__name__)

security = HTTPBearer()


def get_auth_service() -> AuthService:
    """Get the shared auth service instance"""
    from app.services.container import auth_service
    return auth_service


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """
    Get current authenticated user from JWT token.

    Raises:
        HTTPException: If token is invalid or missing
    """
    payload = auth_service.verify_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get('user_id')
    if not user_id or not payload.get('role'):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = auth_service.get_user_by_id(user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug(f"[Auth] Authenticated user {user_id} with role {user.get('role')}")
    return user


async def get_current_staff(
    current_user: dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """
    Get current staff user. Requires an HR or admin role.

    Raises:
        HTTPException: If user is not staff
    """
    if not auth_service.is_staff_role(current_user.get('role')):
        logger.warning(f"[Auth] 403 Forbidden: User {current_user.get('id')} has role {current_user.get('role')}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required"
        )
    return current_user
