from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Iterable, Optional

from app.core.database import get_db
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.logging_config import set_user_id, set_school_id
from app.core.security import decode_token
from app.models.user import User, UserRole, PermissionName

security = HTTPBearer(auto_error=False)


async def get_user_from_token(token: str, db: AsyncSession) -> User:
    """
    Resolve a bearer token to an active user.

    Shared by the HTTP dependency and the websocket endpoint. Raises
    TokenExpiredError / InvalidTokenError from decode_token, or
    AuthenticationError when the user is gone.
    """
    payload = decode_token(token)

    result = await db.execute(
        select(User).where(User.id == payload["sub"])
    )
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthorizationError("User account is inactive")

    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    if not credentials or not credentials.credentials:
        raise AuthenticationError("No token provided")

    user = await get_user_from_token(credentials.credentials, db)

    # Rate limiter keys and log context
    request.state.user_id = str(user.id)
    set_user_id(str(user.id))
    set_school_id(str(user.school_id))

    return user


async def get_current_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current admin user"""
    if current_user.role != UserRole.ADMIN:
        raise AuthorizationError("Admin access required")
    return current_user


def require_roles(*roles: UserRole, permissions: Iterable[PermissionName] = ()):
    """
    Role allow-list dependency.

    The caller's role must be one of `roles`. When `permissions` is given,
    non-admin callers must additionally hold at least one of them.

    Usage:
        @router.post("/", dependencies=[Depends(require_roles(UserRole.ADMIN))])
    """
    allowed_roles = set(roles)
    required = tuple(permissions)

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {', '.join(sorted(r.value for r in allowed_roles))}"
            )
        if required and current_user.role != UserRole.ADMIN:
            if not any(current_user.has_permission(p) for p in required):
                raise AuthorizationError(
                    f"Access denied. Required permissions: {', '.join(p.value for p in required)}"
                )
        return current_user

    return dependency


def require_permission(permission: PermissionName):
    """Admins pass; everyone else needs the named permission"""

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role == UserRole.ADMIN or current_user.has_permission(permission):
            return current_user
        raise AuthorizationError(f"Access denied. Required permission: {permission.value}")

    return dependency


def is_section_manager(user: User) -> bool:
    return user.role == UserRole.ADMIN or user.has_permission(PermissionName.STUDENT_AFFAIRS)


async def require_section_manager(
    current_user: User = Depends(get_current_user)
) -> User:
    """Sections and timetables: admins or student affairs staff"""
    if not is_section_manager(current_user):
        raise AuthorizationError("Access denied. Admin or student affairs permission required")
    return current_user


# Common allow-lists
require_staff = require_roles(UserRole.ADMIN, UserRole.FACULTY, UserRole.TEACHER)
require_teacher_or_admin = require_roles(UserRole.ADMIN, UserRole.TEACHER)
require_student = require_roles(UserRole.STUDENT)
require_student_affairs = require_roles(
    UserRole.ADMIN, UserRole.FACULTY, permissions=[PermissionName.STUDENT_AFFAIRS]
)
require_accounts_office = require_permission(PermissionName.ACCOUNTS_OFFICE)
