"""
Granting and revoking the extra capabilities admins hand out.

Grants are never deleted: revoking flips is_active and stamps revoked_at,
granting again reactivates the same row.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from app.core.exceptions import ValidationError
from app.core.logging_config import logger
from app.models.base import utcnow
from app.models.permission import PermissionGrant
from app.models.user import User, PermissionName, STAFF_ROLES


def ensure_grantable(user: User) -> None:
    if user.role not in STAFF_ROLES:
        raise ValidationError("Permissions can only be granted to teachers, faculty and admins")


def find_grant(user: User, permission: PermissionName) -> Optional[PermissionGrant]:
    for grant in user.permission_grants:
        if grant.permission == permission:
            return grant
    return None


def grant_permission(
    user: User,
    permission: PermissionName,
    granted_by: User,
    now: Optional[datetime] = None,
) -> PermissionGrant:
    ensure_grantable(user)
    if user.has_permission(permission):
        raise ValidationError("User already has this permission")

    now = now or utcnow()
    grant = find_grant(user, permission)
    if grant is None:
        grant = PermissionGrant(
            school_id=user.school_id,
            permission=permission,
            granted_by_id=granted_by.id,
            granted_at=now,
            is_active=True,
        )
        user.permission_grants.append(grant)
    else:
        grant.is_active = True
        grant.revoked_at = None
        grant.granted_at = now
        grant.granted_by_id = granted_by.id

    logger.info(f"[Permissions] {permission.value} granted to {user.user_number} by {granted_by.user_number}")
    return grant


def revoke_permission(user: User, permission: PermissionName, now: Optional[datetime] = None) -> PermissionGrant:
    grant = find_grant(user, permission)
    if grant is None or not grant.is_active:
        raise ValidationError("User does not have this permission")

    grant.is_active = False
    grant.revoked_at = now or utcnow()
    logger.info(f"[Permissions] {permission.value} revoked from {user.user_number}")
    return grant


def set_permissions(
    user: User,
    permissions: Iterable[PermissionName],
    granted_by: User,
    now: Optional[datetime] = None,
) -> List[str]:
    """Make the user's active grants exactly `permissions`"""
    now = now or utcnow()
    wanted = set(permissions)
    if wanted:
        ensure_grantable(user)

    for permission in PermissionName:
        held = user.has_permission(permission)
        if permission in wanted and not held:
            grant_permission(user, permission, granted_by, now)
        elif permission not in wanted and held:
            revoke_permission(user, permission, now)

    return user.permissions
