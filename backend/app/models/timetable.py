from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.base import GUID, generate_uuid, TimestampMixin


MAX_DAYS = 7
MAX_PERIODS_PER_DAY = 12


class Timetable(Base, TimestampMixin):
    """Weekly grid for one section: `days` columns by `periods_per_day` rows"""
    __tablename__ = "timetables"
    __table_args__ = (
        CheckConstraint("days >= 1 AND days <= 7", name="ck_timetable_days"),
        CheckConstraint("periods_per_day >= 1 AND periods_per_day <= 12", name="ck_timetable_periods"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    section_id = Column(GUID, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, unique=True)
    school_id = Column(GUID, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    days = Column(Integer, default=5, nullable=False)
    periods_per_day = Column(Integer, default=6, nullable=False)
    created_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    section = relationship("Section", lazy="selectin")
    slots = relationship(
        "TimetableSlot",
        back_populates="timetable",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=lambda: [TimetableSlot.day_index, TimetableSlot.period_index],
    )

    def in_range(self, day_index: int, period_index: int) -> bool:
        return 0 <= day_index < self.days and 0 <= period_index < self.periods_per_day

    def slot_at(self, day_index: int, period_index: int):
        for slot in self.slots:
            if slot.day_index == day_index and slot.period_index == period_index:
                return slot
        return None


class TimetableSlot(Base):
    """One filled cell of a timetable"""
    __tablename__ = "timetable_slots"
    __table_args__ = (
        UniqueConstraint("timetable_id", "day_index", "period_index", name="uq_timetable_slot_cell"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    timetable_id = Column(GUID, ForeignKey("timetables.id", ondelete="CASCADE"), nullable=False, index=True)
    day_index = Column(Integer, nullable=False)
    period_index = Column(Integer, nullable=False)
    course_id = Column(GUID, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    timetable = relationship("Timetable", back_populates="slots")
    course = relationship("Course", lazy="selectin")
    teacher = relationship("User", lazy="selectin")
