"""
School profile endpoints.

Members can read their own school; only its admins can edit the profile
or replace the logo.
"""
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthorizationError, ResourceNotFoundError
from app.core.logging_config import logger
from app.models.school import School
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, get_current_admin
from app.schemas.auth import SchoolResponse, SchoolUpdate
from app.services.storage_service import storage_service
from app.api.v1.responses import success

router = APIRouter()


async def _get_own_school(db: AsyncSession, school_id: str, user: User) -> School:
    if school_id != user.school_id:
        raise AuthorizationError("Access denied to this school")
    school = await db.get(School, school_id)
    if not school:
        raise ResourceNotFoundError("School", school_id)
    return school


@router.get("/{school_id}")
async def get_school(
    school_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    school = await _get_own_school(db, school_id, current_user)
    return success(SchoolResponse.model_validate(school))


@router.put("/{school_id}")
async def update_school(
    school_id: str,
    payload: SchoolUpdate,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    school = await _get_own_school(db, school_id, current_user)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(school, field, value)

    await db.commit()
    logger.info(f"[Schools] Profile updated for {school.name}")
    return success(SchoolResponse.model_validate(school), "School updated successfully")


@router.post("/{school_id}/logo")
async def upload_logo(
    school_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Replace the school logo (png/jpg/jpeg/gif/webp, 5MB max)"""
    school = await _get_own_school(db, school_id, current_user)

    logo_url = await storage_service.save(
        file,
        "logos",
        allowed=settings.LOGO_EXTENSIONS,
        max_size=settings.MAX_LOGO_SIZE,
    )
    previous = school.logo_url
    school.logo_url = logo_url
    await db.commit()

    if previous:
        await storage_service.delete(previous)

    return success(SchoolResponse.model_validate(school), "Logo uploaded successfully")
