"""
Section API

Sections are class rosters with a capacity and a session window.
Admins and student affairs staff manage them; teachers see the sections
they lead and students the ones they sit in.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.database import get_db
from app.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.base import utcnow, as_naive_utc
from app.models.section import Section, SessionStatus, section_students
from app.models.user import User, UserRole
from app.modules.auth.dependencies import get_current_user, require_section_manager, is_section_manager
from app.schemas.academics import SectionCreate, SectionUpdate, SectionResponse, AddStudentsRequest
from app.services import section_service
from app.api.v1.responses import success

router = APIRouter()


def _visible_sections_query(user: User):
    query = select(Section).where(Section.school_id == user.school_id)
    if is_section_manager(user):
        return query
    if user.role == UserRole.TEACHER:
        return query.where(Section.teacher_id == user.id)
    if user.role == UserRole.STUDENT:
        return query.where(
            Section.id.in_(select(section_students.c.section_id).where(section_students.c.student_id == user.id))
        )
    raise AuthorizationError("Access denied")


def _can_view(section: Section, user: User) -> bool:
    return (
        is_section_manager(user)
        or section.teacher_id == user.id
        or section.has_student(user.id)
    )


async def _get_visible(db: AsyncSession, section_id: str, user: User) -> Section:
    section = await section_service.get_section(db, section_id, user.school_id)
    if not _can_view(section, user):
        raise AuthorizationError("Access denied to this section")
    return section


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_section(
    payload: SectionCreate,
    current_user: User = Depends(require_section_manager),
    db: AsyncSession = Depends(get_db)
):
    start = as_naive_utc(payload.session_start_date)
    end = as_naive_utc(payload.session_end_date)
    if start.date() < utcnow().date():
        raise ValidationError("Session start date cannot be in the past", field="session_start_date")

    teacher = await section_service.validate_teacher(db, payload.teacher_id, current_user.school_id)
    await section_service.ensure_unique_code(db, current_user.school_id, payload.section_code)

    section = Section(
        name=payload.name.strip(),
        section_code=payload.section_code,
        description=payload.description,
        school_id=current_user.school_id,
        teacher=teacher,
        created_by_id=current_user.id,
        capacity=payload.capacity,
        session_start_date=start,
        session_end_date=end,
        is_active=True,
        students=[],
    )
    db.add(section)
    await db.commit()

    logger.info(f"[Sections] Created {section.section_code} (capacity {section.capacity})")
    return success(SectionResponse.from_section(section, include_students=True), "Section created successfully")


@router.get("")
async def list_sections(
    include_students: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    query = _visible_sections_query(current_user).order_by(Section.section_code.asc())
    sections = (await db.execute(query)).scalars().all()
    return success([SectionResponse.from_section(s, include_students=include_students) for s in sections])


@router.get("/active-sessions")
async def active_sessions(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Visible sections whose session is running right now"""
    now = utcnow()
    query = _visible_sections_query(current_user).where(
        Section.is_active == True,  # noqa: E712
        Section.session_start_date <= now,
        Section.session_end_date >= now,
    ).order_by(Section.session_end_date.asc())
    sections = (await db.execute(query)).scalars().all()
    return success([
        {
            **SectionResponse.from_section(s).model_dump(),
            "time_remaining": int((s.session_end_date - now).total_seconds()),
        }
        for s in sections
    ])


@router.get("/{section_id}")
async def get_section(
    section_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    section = await _get_visible(db, section_id, current_user)
    include_students = current_user.role != UserRole.STUDENT
    return success(SectionResponse.from_section(section, include_students=include_students))


@router.put("/{section_id}")
async def update_section(
    section_id: str,
    payload: SectionUpdate,
    current_user: User = Depends(require_section_manager),
    db: AsyncSession = Depends(get_db)
):
    section = await section_service.get_section(db, section_id, current_user.school_id)
    updates = payload.model_dump(exclude_unset=True)

    if updates.get("teacher_id"):
        section.teacher = await section_service.validate_teacher(db, updates.pop("teacher_id"), current_user.school_id)
    updates.pop("teacher_id", None)

    if updates.get("section_code") and updates["section_code"] != section.section_code:
        await section_service.ensure_unique_code(
            db, current_user.school_id, updates["section_code"], exclude_id=section.id
        )

    if updates.get("capacity") is not None and updates["capacity"] < section.student_count:
        raise ValidationError(
            f"Capacity cannot be less than current student count ({section.student_count})",
            field="capacity",
        )

    start = as_naive_utc(updates.get("session_start_date")) or section.session_start_date
    end = as_naive_utc(updates.get("session_end_date")) or section.session_end_date
    if start >= end:
        raise ValidationError("Session end date must be after start date", field="session_end_date")
    updates["session_start_date"] = start
    updates["session_end_date"] = end

    for field, value in updates.items():
        if value is not None:
            setattr(section, field, value)

    await db.commit()
    return success(SectionResponse.from_section(section, include_students=True), "Section updated successfully")


@router.delete("/{section_id}")
async def delete_section(
    section_id: str,
    current_user: User = Depends(require_section_manager),
    db: AsyncSession = Depends(get_db)
):
    section = await section_service.get_section(db, section_id, current_user.school_id)
    code = section.section_code
    await section_service.delete_section(db, section)
    await db.commit()

    logger.info(f"[Sections] Deleted {code}")
    return success(None, "Section deleted successfully")


@router.post("/{section_id}/students")
async def add_students(
    section_id: str,
    payload: AddStudentsRequest,
    current_user: User = Depends(require_section_manager),
    db: AsyncSession = Depends(get_db)
):
    section = await section_service.get_section(db, section_id, current_user.school_id)
    added = await section_service.add_students_by_number(db, section, payload.student_numbers)
    await db.commit()
    return success(
        SectionResponse.from_section(section, include_students=True),
        f"{len(added)} student(s) added to section",
        added_count=len(added),
    )


@router.delete("/{section_id}/students/{student_id}")
async def remove_student(
    section_id: str,
    student_id: str,
    current_user: User = Depends(require_section_manager),
    db: AsyncSession = Depends(get_db)
):
    section = await section_service.get_section(db, section_id, current_user.school_id)
    student = next((s for s in section.students if s.id == student_id), None)
    if student is None:
        raise ResourceNotFoundError("Student", student_id)

    section.students.remove(student)
    await db.commit()
    return success(SectionResponse.from_section(section, include_students=True), "Student removed from section")


@router.get("/{section_id}/session-status")
async def session_status(
    section_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    section = await _get_visible(db, section_id, current_user)
    now = utcnow()
    state = section.session_status(now)
    remaining = (section.session_end_date - now).total_seconds() if state == SessionStatus.ACTIVE else 0

    return success({
        "section_id": section.id,
        "is_active": section.is_active,
        "session_status": state.value,
        "time_remaining": int(max(0, remaining)),
        "session_start_date": section.session_start_date,
        "session_end_date": section.session_end_date,
    })


@router.post("/{section_id}/end-session")
async def end_session(
    section_id: str,
    current_user: User = Depends(require_section_manager),
    db: AsyncSession = Depends(get_db)
):
    section = await section_service.get_section(db, section_id, current_user.school_id)
    if not section.is_active:
        raise ValidationError("Session has already ended")

    await section_service.end_session(db, section)
    await db.commit()
    return success(SectionResponse.from_section(section), "Session ended successfully")
