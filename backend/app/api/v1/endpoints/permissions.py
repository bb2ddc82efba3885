"""
Permission management (admin only).

Permissions are extra capabilities layered on top of a role:
- student_affairs: sections, courses, timetables, student accounts
- accounts_office: fee and salary records, payment due date
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.core.database import get_db
from app.core.exceptions import ResourceNotFoundError
from app.models.permission import PermissionGrant
from app.models.user import User, PermissionName, PERMISSION_DESCRIPTIONS
from app.modules.auth.dependencies import get_current_admin
from app.schemas.permission import PermissionChange, PermissionSet, PermissionGrantResponse
from app.schemas.user import UserBrief
from app.services.permission_service import grant_permission, revoke_permission, set_permissions
from app.api.v1.responses import success

router = APIRouter()


async def _get_by_number(db: AsyncSession, user_number: int, admin: User) -> User:
    result = await db.execute(
        select(User).where(User.user_number == user_number, User.school_id == admin.school_id)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise ResourceNotFoundError("User", user_number)
    return user


def _user_permissions(user: User) -> dict:
    return {
        "user": UserBrief.model_validate(user),
        "permissions": user.permissions,
    }


@router.get("/meta/available")
async def available_permissions(current_user: User = Depends(get_current_admin)):
    return success([
        {"name": permission.value, "description": PERMISSION_DESCRIPTIONS[permission]}
        for permission in PermissionName
    ])


@router.get("")
async def list_permission_holders(
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Users of the school holding at least one active permission"""
    holders = select(PermissionGrant.user_id).where(
        PermissionGrant.school_id == current_user.school_id,
        PermissionGrant.is_active == True,  # noqa: E712
    )
    result = await db.execute(
        select(User).where(User.id.in_(holders)).order_by(User.user_number.asc())
    )
    return success([_user_permissions(u) for u in result.scalars().all()])


@router.get("/audit")
async def permission_audit(
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Every grant ever made in the school, revoked ones included"""
    result = await db.execute(
        select(PermissionGrant)
        .options(selectinload(PermissionGrant.user))
        .where(PermissionGrant.school_id == current_user.school_id)
        .order_by(PermissionGrant.granted_at.desc())
    )
    entries = []
    for grant in result.scalars().all():
        entry = PermissionGrantResponse.model_validate(grant).model_dump()
        entry["user"] = UserBrief.model_validate(grant.user) if grant.user else None
        entries.append(entry)
    return success(entries)


@router.get("/user/{user_number}")
async def get_user_permissions(
    user_number: int,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_by_number(db, user_number, current_user)
    return success({
        **_user_permissions(user),
        "grants": [PermissionGrantResponse.model_validate(g) for g in user.permission_grants],
    })


@router.post("/grant")
async def grant(
    payload: PermissionChange,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_by_number(db, payload.user_number, current_user)
    grant_permission(user, payload.permission, current_user)
    await db.commit()
    return success(_user_permissions(user), f"Permission {payload.permission.value} granted")


@router.post("/revoke")
async def revoke(
    payload: PermissionChange,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_by_number(db, payload.user_number, current_user)
    revoke_permission(user, payload.permission)
    await db.commit()
    return success(_user_permissions(user), f"Permission {payload.permission.value} revoked")


@router.put("/user/{user_number}")
async def replace_user_permissions(
    user_number: int,
    payload: PermissionSet,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_by_number(db, user_number, current_user)
    set_permissions(user, payload.permissions, current_user)
    await db.commit()
    return success(_user_permissions(user), "Permissions updated")
