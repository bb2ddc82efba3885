"""
Timetable API

One weekly grid per section. Each filled cell names a course and the
teacher taking it; a teacher cannot be in two sections in the same cell.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.core.database import get_db
from app.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.section import section_students
from app.models.timetable import Timetable, TimetableSlot
from app.models.user import User, UserRole
from app.modules.auth.dependencies import get_current_user, require_section_manager, is_section_manager
from app.schemas.timetable import TimetableCreate, TimetableStructureUpdate, SlotAssign, TimetableResponse
from app.services import course_service, section_service
from app.api.v1.responses import success

router = APIRouter()


async def _get_timetable(db: AsyncSession, timetable_id: str, school_id: str) -> Timetable:
    timetable = await db.get(Timetable, timetable_id)
    if not timetable or timetable.school_id != school_id:
        raise ResourceNotFoundError("Timetable", timetable_id)
    return timetable


async def _find_for_section(db: AsyncSession, section_id: str):
    result = await db.execute(select(Timetable).where(Timetable.section_id == section_id))
    return result.scalar_one_or_none()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_timetable(
    payload: TimetableCreate,
    current_user: User = Depends(require_section_manager),
    db: AsyncSession = Depends(get_db)
):
    section = await section_service.get_section(db, payload.section_id, current_user.school_id)
    if await _find_for_section(db, section.id):
        raise ValidationError("Timetable already exists for this section")

    timetable = Timetable(
        section=section,
        school_id=current_user.school_id,
        days=payload.days,
        periods_per_day=payload.periods_per_day,
        created_by_id=current_user.id,
        slots=[],
    )
    db.add(timetable)
    await db.commit()

    logger.info(f"[Timetable] Created {timetable.days}x{timetable.periods_per_day} grid for {section.section_code}")
    return success(TimetableResponse.from_timetable(timetable), "Timetable created successfully")


@router.get("")
async def list_timetables(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Managers see every grid; teachers and students the ones they are part of"""
    query = select(Timetable).where(Timetable.school_id == current_user.school_id)
    if not is_section_manager(current_user):
        if current_user.role == UserRole.STUDENT:
            query = query.where(
                Timetable.section_id.in_(
                    select(section_students.c.section_id).where(section_students.c.student_id == current_user.id)
                )
            )
        else:
            query = query.where(
                Timetable.id.in_(
                    select(TimetableSlot.timetable_id).where(TimetableSlot.teacher_id == current_user.id)
                )
            )
    timetables = (await db.execute(query.order_by(Timetable.created_at.asc()))).scalars().all()
    return success([TimetableResponse.from_timetable(t) for t in timetables])


@router.get("/section/{section_id}")
async def section_timetable(
    section_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    section = await section_service.get_section(db, section_id, current_user.school_id)
    timetable = await _find_for_section(db, section.id)
    if timetable is None:
        raise ResourceNotFoundError("Timetable")
    return success(TimetableResponse.from_timetable(timetable))


@router.get("/check/{section_id}")
async def check_timetable(
    section_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    section = await section_service.get_section(db, section_id, current_user.school_id)
    timetable = await _find_for_section(db, section.id)
    return success({"exists": timetable is not None, "timetable_id": timetable.id if timetable else None})


@router.get("/teacher/{teacher_id}")
async def teacher_schedule(
    teacher_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Every cell a teacher takes, across sections"""
    if current_user.id != teacher_id and not is_section_manager(current_user):
        raise AuthorizationError("You can only view your own schedule")

    result = await db.execute(
        select(TimetableSlot)
        .options(selectinload(TimetableSlot.timetable))
        .join(Timetable, Timetable.id == TimetableSlot.timetable_id)
        .where(TimetableSlot.teacher_id == teacher_id, Timetable.school_id == current_user.school_id)
        .order_by(TimetableSlot.day_index.asc(), TimetableSlot.period_index.asc())
    )
    return success([
        {
            "timetable_id": slot.timetable_id,
            "section_id": slot.timetable.section_id,
            "section_name": slot.timetable.section.name if slot.timetable.section else None,
            "day_index": slot.day_index,
            "period_index": slot.period_index,
            "course_id": slot.course_id,
            "course_name": slot.course.name if slot.course else None,
        }
        for slot in result.scalars().all()
    ])


@router.put("/{timetable_id}/structure")
async def update_structure(
    timetable_id: str,
    payload: TimetableStructureUpdate,
    current_user: User = Depends(require_section_manager),
    db: AsyncSession = Depends(get_db)
):
    """Resize the grid; cells that fall outside it are dropped"""
    timetable = await _get_timetable(db, timetable_id, current_user.school_id)
    timetable.days = payload.days
    timetable.periods_per_day = payload.periods_per_day

    dropped = [s for s in timetable.slots if not timetable.in_range(s.day_index, s.period_index)]
    for slot in dropped:
        timetable.slots.remove(slot)

    await db.commit()
    return success(
        TimetableResponse.from_timetable(timetable),
        "Timetable structure updated",
        removed_slots=len(dropped),
    )


@router.post("/{timetable_id}/slots")
async def assign_slot(
    timetable_id: str,
    payload: SlotAssign,
    current_user: User = Depends(require_section_manager),
    db: AsyncSession = Depends(get_db)
):
    timetable = await _get_timetable(db, timetable_id, current_user.school_id)
    if not timetable.in_range(payload.day_index, payload.period_index):
        raise ValidationError("Slot position is outside the timetable grid")

    course = await course_service.get_course(db, payload.course_id, current_user.school_id)
    teacher = await section_service.validate_teacher(db, payload.teacher_id, current_user.school_id)

    clash = await db.execute(
        select(TimetableSlot.id).where(
            TimetableSlot.teacher_id == teacher.id,
            TimetableSlot.day_index == payload.day_index,
            TimetableSlot.period_index == payload.period_index,
            TimetableSlot.timetable_id != timetable.id,
        )
    )
    if clash.first() is not None:
        raise ValidationError("Teacher already assigned to another section at this time")

    slot = timetable.slot_at(payload.day_index, payload.period_index)
    if slot is None:
        slot = TimetableSlot(day_index=payload.day_index, period_index=payload.period_index)
        timetable.slots.append(slot)
    slot.course = course
    slot.teacher = teacher

    await db.commit()

    logger.info(
        f"[Timetable] {timetable.id} day {payload.day_index} period {payload.period_index} -> "
        f"{course.name} / {teacher.user_number}"
    )
    return success(TimetableResponse.from_timetable(timetable), "Slot assigned successfully")


@router.delete("/{timetable_id}/slots")
async def clear_slot(
    timetable_id: str,
    day_index: int = Query(..., ge=0),
    period_index: int = Query(..., ge=0),
    current_user: User = Depends(require_section_manager),
    db: AsyncSession = Depends(get_db)
):
    timetable = await _get_timetable(db, timetable_id, current_user.school_id)
    slot = timetable.slot_at(day_index, period_index)
    if slot is None:
        raise ResourceNotFoundError("Slot")

    timetable.slots.remove(slot)
    await db.commit()
    return success(TimetableResponse.from_timetable(timetable), "Slot cleared")


@router.delete("/{timetable_id}")
async def delete_timetable(
    timetable_id: str,
    current_user: User = Depends(require_section_manager),
    db: AsyncSession = Depends(get_db)
):
    timetable = await _get_timetable(db, timetable_id, current_user.school_id)
    await db.delete(timetable)
    await db.commit()
    return success(None, "Timetable deleted successfully")
