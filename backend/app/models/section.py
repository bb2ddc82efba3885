from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, ForeignKey, Table, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from typing import Optional
import enum

from app.core.database import Base
from app.models.base import GUID, generate_uuid, utcnow, TimestampMixin


DEFAULT_SECTION_CAPACITY = 30
MAX_SECTION_CAPACITY = 100


# Association table for section roster (many-to-many)
section_students = Table(
    'section_students',
    Base.metadata,
    Column('section_id', GUID, ForeignKey('sections.id', ondelete="CASCADE"), primary_key=True),
    Column('student_id', GUID, ForeignKey('users.id', ondelete="CASCADE"), primary_key=True),
    Column('added_at', DateTime, default=utcnow, nullable=False)
)


class SessionStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class Section(Base, TimestampMixin):
    """A class roster with a fixed capacity and a session window"""
    __tablename__ = "sections"
    __table_args__ = (
        UniqueConstraint("school_id", "section_code", name="uq_section_school_code"),
        CheckConstraint("capacity >= 1 AND capacity <= 100", name="ck_section_capacity"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    section_code = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)

    school_id = Column(GUID, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    capacity = Column(Integer, default=DEFAULT_SECTION_CAPACITY, nullable=False)
    session_start_date = Column(DateTime, nullable=False)
    session_end_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    teacher = relationship("User", foreign_keys=[teacher_id], lazy="selectin")
    students = relationship(
        "User",
        secondary=section_students,
        lazy="selectin",
        order_by="User.name",
    )

    @property
    def student_count(self) -> int:
        return len(self.students)

    @property
    def available_seats(self) -> int:
        return max(0, self.capacity - self.student_count)

    def has_capacity(self, additional: int = 1) -> bool:
        return self.student_count + additional <= self.capacity

    def has_student(self, user_id: str) -> bool:
        return any(s.id == user_id for s in self.students)

    def session_status(self, now: Optional[datetime] = None) -> SessionStatus:
        now = now or utcnow()
        if now < self.session_start_date:
            return SessionStatus.UPCOMING
        if now > self.session_end_date:
            return SessionStatus.COMPLETED
        return SessionStatus.ACTIVE

    def is_session_active(self, now: Optional[datetime] = None) -> bool:
        return self.session_status(now) == SessionStatus.ACTIVE

    def __repr__(self):
        return f"<Section {self.section_code}>"
