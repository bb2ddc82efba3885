"""Section rosters and session windows"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError, ResourceNotFoundError
from app.core.logging_config import logger
from app.models.base import utcnow
from app.models.course import Course
from app.models.section import Section
from app.models.timetable import Timetable, TimetableSlot
from app.models.user import User, UserRole


async def get_section(db: AsyncSession, section_id: str, school_id: str) -> Section:
    section = await db.get(Section, section_id)
    if not section or section.school_id != school_id:
        raise ResourceNotFoundError("Section", section_id)
    return section


async def validate_teacher(db: AsyncSession, teacher_id: str, school_id: str) -> User:
    teacher = await db.get(User, teacher_id)
    if not teacher or teacher.school_id != school_id or teacher.role != UserRole.TEACHER:
        raise ValidationError("Teacher not found or invalid role", field="teacher_id")
    return teacher


async def ensure_unique_code(db: AsyncSession, school_id: str, code: str, exclude_id: Optional[str] = None) -> None:
    query = select(Section.id).where(Section.school_id == school_id, Section.section_code == code)
    if exclude_id:
        query = query.where(Section.id != exclude_id)
    if (await db.execute(query)).first():
        raise ValidationError("Section code already exists in this school", field="section_code")


def place_student(section: Section, student: User) -> bool:
    """Add one student to the roster. False if already there."""
    if not section.is_active:
        raise ValidationError("Cannot add students to an inactive section")
    if section.has_student(student.id):
        return False
    if not section.has_capacity():
        raise ValidationError(f"Section {section.section_code} is full (capacity {section.capacity})")
    section.students.append(student)
    return True


async def add_students_by_number(db: AsyncSession, section: Section, user_numbers: List[int]) -> List[User]:
    """
    Add students by their numeric user id.

    All numbers must be students of the section's school. Returns the
    students that were newly added.
    """
    if not section.is_active:
        raise ValidationError("Cannot add students to an inactive section")

    numbers = list(dict.fromkeys(user_numbers))
    if len(numbers) > section.available_seats:
        raise ValidationError(f"Section can only accept {section.available_seats} more students")

    result = await db.execute(
        select(User).where(
            User.user_number.in_(numbers),
            User.role == UserRole.STUDENT,
            User.school_id == section.school_id,
        )
    )
    students = list(result.scalars().all())
    if len(students) != len(numbers):
        raise ValidationError("Some student IDs are invalid or students belong to different schools")

    new_students = [s for s in students if not section.has_student(s.id)]
    if not new_students:
        raise ValidationError("All students are already in this section")

    section.students.extend(new_students)
    await db.flush()
    logger.info(f"[Sections] Added {len(new_students)} student(s) to {section.section_code}")
    return new_students


async def delete_section(db: AsyncSession, section: Section) -> None:
    """Delete a section together with its courses and timetable"""
    timetable_ids = select(Timetable.id).where(Timetable.section_id == section.id)
    await db.execute(delete(TimetableSlot).where(TimetableSlot.timetable_id.in_(timetable_ids)))
    await db.execute(delete(Timetable).where(Timetable.section_id == section.id))
    courses = (await db.execute(select(Course).where(Course.section_id == section.id))).scalars().all()
    for course in courses:
        await db.delete(course)
    await db.delete(section)
    await db.flush()


async def end_session(db: AsyncSession, section: Section, now: Optional[datetime] = None) -> Section:
    """Close the session now; the sweep will not reopen it"""
    now = now or utcnow()
    section.is_active = False
    if section.session_end_date > now:
        section.session_end_date = now
    await db.flush()
    logger.info(f"[Sections] Session ended manually for {section.section_code}")
    return section


async def check_expired_sessions(db: AsyncSession, now: Optional[datetime] = None) -> dict:
    """
    Deactivate sections whose session has ended and reactivate inactive
    sections whose window contains `now`.
    """
    now = now or utcnow()

    expired = await db.execute(
        update(Section)
        .where(Section.is_active == True, Section.session_end_date < now)  # noqa: E712
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    reopened = await db.execute(
        update(Section)
        .where(
            Section.is_active == False,  # noqa: E712
            Section.session_start_date <= now,
            Section.session_end_date >= now,
        )
        .values(is_active=True)
        .execution_options(synchronize_session=False)
    )

    counts = {"expired": expired.rowcount or 0, "reactivated": reopened.rowcount or 0}
    if counts["expired"] or counts["reactivated"]:
        logger.log_job_event("session_check", "completed", affected=counts["expired"] + counts["reactivated"], **counts)
    return counts
