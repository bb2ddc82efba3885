"""
Unit Tests for section session windows
"""
import pytest
from datetime import timedelta

from app.core.exceptions import ValidationError
from app.models.base import utcnow
from app.models.section import Section
from app.models.user import UserRole
from app.services import section_service


async def make_section(db, school, teacher, start, end, active):
    section = Section(
        name="Grade 9",
        section_code=f"G9-{start.isoformat()}",
        school_id=school.id,
        teacher=teacher,
        capacity=5,
        session_start_date=start,
        session_end_date=end,
        is_active=active,
        students=[],
    )
    db.add(section)
    await db.commit()
    return section


class TestSessionSweep:

    @pytest.mark.asyncio
    async def test_expired_section_deactivated(self, db_session, school, teacher_user):
        now = utcnow()
        section = await make_section(
            db_session, school, teacher_user, now - timedelta(days=30), now - timedelta(days=1), True
        )

        counts = await section_service.check_expired_sessions(db_session, now)
        await db_session.commit()
        await db_session.refresh(section, ["is_active"])

        assert counts == {"expired": 1, "reactivated": 0}
        assert section.is_active is False

    @pytest.mark.asyncio
    async def test_current_window_reactivated(self, db_session, school, teacher_user):
        now = utcnow()
        section = await make_section(
            db_session, school, teacher_user, now - timedelta(days=1), now + timedelta(days=30), False
        )

        counts = await section_service.check_expired_sessions(db_session, now)
        await db_session.commit()
        await db_session.refresh(section, ["is_active"])

        assert counts["reactivated"] == 1
        assert section.is_active is True

    @pytest.mark.asyncio
    async def test_ended_session_stays_closed(self, db_session, section):
        now = utcnow()
        await section_service.end_session(db_session, section, now)
        await db_session.commit()

        counts = await section_service.check_expired_sessions(db_session, now + timedelta(minutes=1))

        assert section.session_end_date == now
        assert counts["reactivated"] == 0


class TestRoster:

    @pytest.mark.asyncio
    async def test_place_student_respects_capacity(self, db_session, school, teacher_user, make_user):
        now = utcnow()
        section = await make_section(db_session, school, teacher_user, now, now + timedelta(days=10), True)
        section.capacity = 1
        first = await make_user(UserRole.STUDENT)
        second = await make_user(UserRole.STUDENT)

        assert section_service.place_student(section, first) is True
        assert section_service.place_student(section, first) is False
        with pytest.raises(ValidationError, match="is full"):
            section_service.place_student(section, second)


