"""
FastAPI dependencies for authentication and authorization.

WHY: Dependencies provide reusable authentication and authorization logic
that can be injected into route handlers. They turn a bearer token into
the Principal every service method takes, and they hand out the shared
collaborators (storage, notifications) so tests can override them.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.auth import verify_token
from helpdesk.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    TokenExpiredError,
    TokenInvalidError,
)
from helpdesk.core.principal import Principal
from helpdesk.db.session import get_db
from helpdesk.dao.user import UserDAO
from helpdesk.services.notification_service import NotificationService
from helpdesk.services.storage import StorageService


# HTTP Bearer token security scheme
# Format: "Authorization: Bearer <token>"
# auto_error=False so a missing header goes through AuthenticationError (401)
security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """
    Resolve the authenticated principal from the bearer token.

    WHY: This dependency:
    1. Extracts the token from the Authorization header
    2. Verifies signature and expiration
    3. Loads the user so role and contact details are current

    Usage:
        @router.get("/tickets/{ticket_id}")
        async def get_ticket(principal: Principal = Depends(get_current_principal)):
            ...

    Returns:
        Principal for the token's user

    Raises:
        AuthenticationError: If the token is missing, invalid or expired,
            or its user no longer exists
    """
    if credentials is None:
        raise AuthenticationError()

    try:
        payload = verify_token(credentials.credentials)
    except (TokenExpiredError, TokenInvalidError) as e:
        # Re-raise as AuthenticationError for consistent API responses
        raise AuthenticationError(
            message=str(e),
            status_code=e.status_code,
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise AuthenticationError(
            message="Invalid token: missing user_id",
        )

    user = await UserDAO(db).get_by_id(user_id)
    if not user:
        # User might have been deleted after token was issued
        raise AuthenticationError(
            message="User not found",
            user_id=user_id,
        )

    return Principal.from_user(user)


async def require_admin(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """
    Require the ADMIN role.

    Usage:
        @router.get("/admin/audit-logs")
        async def list_audit_logs(admin: Principal = Depends(require_admin)):
            ...

    Raises:
        AuthorizationError: If the principal is not an admin
    """
    if not principal.is_admin:
        raise AuthorizationError(
            message="Admin access required",
            user_id=principal.id,
            user_role=principal.role.value,
        )

    return principal


def get_storage_service() -> StorageService:
    """Object storage client for presigned URLs and deletes."""
    return StorageService()


def get_notification_service() -> NotificationService:
    """Email notifications for ticket events."""
    return NotificationService()
