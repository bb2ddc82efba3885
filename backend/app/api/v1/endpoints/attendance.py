"""
Attendance API

Daily attendance per student. Marking a student twice on the same day
overwrites the earlier record.
"""
from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.core.database import get_db
from app.core.exceptions import AuthorizationError
from app.core.logging_config import logger
from app.models.attendance import AttendanceRecord, AttendanceStatus
from app.models.base import utcnow
from app.models.section import Section
from app.models.user import User
from app.modules.auth.dependencies import (
    get_current_user,
    get_current_admin,
    require_staff,
    require_teacher_or_admin,
)
from app.schemas.timetable import AttendanceMark, AttendanceResponse
from app.services import course_service, section_service
from app.api.v1.responses import success

router = APIRouter()


def _can_take_attendance(section: Section, user: User) -> bool:
    return user.is_admin or section.teacher_id == user.id


def attendance_rate(present: int, total: int) -> int:
    if not total:
        return 0
    return round(present / total * 100)


@router.post("/mark")
async def mark_attendance(
    payload: AttendanceMark,
    current_user: User = Depends(require_teacher_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Record one day for a section.

    Students who are not on the section roster are skipped and listed in
    the response rather than failing the whole batch.
    """
    section = await section_service.get_section(db, payload.section_id, current_user.school_id)
    if not _can_take_attendance(section, current_user):
        raise AuthorizationError("Only the section teacher or an admin can mark attendance")

    roster = {s.id for s in section.students}
    entries = [e for e in payload.records if e.student_id in roster]
    skipped = [e.student_id for e in payload.records if e.student_id not in roster]

    result = await db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.date == payload.date,
            AttendanceRecord.student_id.in_([e.student_id for e in entries]),
        )
    )
    existing = {r.student_id: r for r in result.scalars().all()}
    students = {s.id: s for s in section.students}

    records = []
    for entry in entries:
        record = existing.get(entry.student_id)
        if record is None:
            record = AttendanceRecord(
                student=students[entry.student_id],
                date=payload.date,
                status=entry.status,
            )
            db.add(record)
            existing[entry.student_id] = record
        record.section_id = section.id
        record.status = entry.status
        record.notes = entry.notes
        record.recorded_by_id = current_user.id
        records.append(record)

    await db.commit()

    logger.info(
        f"[Attendance] {section.section_code} {payload.date.isoformat()}: "
        f"{len(records)} marked, {len(skipped)} skipped"
    )
    return success(
        [AttendanceResponse.model_validate(r) for r in records],
        f"Attendance marked for {len(records)} student(s)",
        skipped=skipped,
    )


@router.get("/section/{section_id}")
async def section_attendance(
    section_id: str,
    date: Optional[date_type] = Query(None),
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    section = await section_service.get_section(db, section_id, current_user.school_id)
    query = select(AttendanceRecord).where(AttendanceRecord.section_id == section.id)
    if date is not None:
        query = query.where(AttendanceRecord.date == date)
    records = (await db.execute(query.order_by(AttendanceRecord.date.desc()))).scalars().all()
    return success([AttendanceResponse.model_validate(r) for r in records])


async def _student_for(db: AsyncSession, student_id: str, user: User) -> User:
    if user.id != student_id and not user.is_staff:
        raise AuthorizationError("You can only view your own attendance")
    return await course_service.find_student(db, user.school_id, student_id=student_id)


@router.get("/student/{student_id}")
async def student_attendance(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    student = await _student_for(db, student_id, current_user)
    result = await db.execute(
        select(AttendanceRecord)
        .where(AttendanceRecord.student_id == student.id)
        .order_by(AttendanceRecord.date.desc())
    )
    return success([AttendanceResponse.model_validate(r) for r in result.scalars().all()])


@router.get("/student/{student_id}/statistics")
async def student_statistics(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    student = await _student_for(db, student_id, current_user)
    result = await db.execute(
        select(AttendanceRecord.status, func.count(AttendanceRecord.id))
        .where(AttendanceRecord.student_id == student.id)
        .group_by(AttendanceRecord.status)
    )
    counts = {s.value: 0 for s in AttendanceStatus}
    for status_value, count in result.all():
        counts[AttendanceStatus(status_value).value] = count

    total = sum(counts.values())
    return success({
        "student_id": student.id,
        "total_days": total,
        **counts,
        "attendance_rate": attendance_rate(counts[AttendanceStatus.PRESENT.value], total),
    })


@router.get("/summary")
async def attendance_summary(
    date: Optional[date_type] = Query(None),
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Per-section status counts for one day (today by default)"""
    day = date or utcnow().date()
    result = await db.execute(
        select(Section.id, Section.name, Section.section_code, AttendanceRecord.status, func.count(AttendanceRecord.id))
        .join(AttendanceRecord, AttendanceRecord.section_id == Section.id)
        .where(Section.school_id == current_user.school_id, AttendanceRecord.date == day)
        .group_by(Section.id, Section.name, Section.section_code, AttendanceRecord.status)
    )

    sections = {}
    for section_id, name, code, status_value, count in result.all():
        entry = sections.setdefault(section_id, {
            "section_id": section_id,
            "section_name": name,
            "section_code": code,
            **{s.value: 0 for s in AttendanceStatus},
        })
        entry[AttendanceStatus(status_value).value] = count

    return success({"date": day.isoformat(), "sections": list(sections.values())})
