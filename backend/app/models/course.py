from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey, Table, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.base import GUID, generate_uuid, utcnow, TimestampMixin


course_teachers = Table(
    'course_teachers',
    Base.metadata,
    Column('course_id', GUID, ForeignKey('courses.id', ondelete="CASCADE"), primary_key=True),
    Column('teacher_id', GUID, ForeignKey('users.id', ondelete="CASCADE"), primary_key=True),
    Column('created_at', DateTime, default=utcnow, nullable=False)
)

course_students = Table(
    'course_students',
    Base.metadata,
    Column('course_id', GUID, ForeignKey('courses.id', ondelete="CASCADE"), primary_key=True),
    Column('student_id', GUID, ForeignKey('users.id', ondelete="CASCADE"), primary_key=True),
    Column('enrolled_at', DateTime, default=utcnow, nullable=False)
)


class Course(Base, TimestampMixin):
    """A subject taught to one section by one or more teachers"""
    __tablename__ = "courses"
    # Codes are optional; NULLs never collide in a unique constraint
    __table_args__ = (
        UniqueConstraint("school_id", "code", name="uq_course_school_code"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    code = Column(String(50), nullable=True)

    section_id = Column(GUID, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True)
    school_id = Column(GUID, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    section = relationship("Section", lazy="selectin")
    teachers = relationship("User", secondary=course_teachers, lazy="selectin", order_by="User.name")
    students = relationship("User", secondary=course_students, lazy="selectin", order_by="User.name")

    def is_teacher(self, user_id: str) -> bool:
        return any(t.id == user_id for t in self.teachers)

    def is_enrolled(self, user_id: str) -> bool:
        """Directly enrolled, or on the roster of the course's section"""
        if any(s.id == user_id for s in self.students):
            return True
        return self.section is not None and self.section.has_student(user_id)

    def all_students(self):
        """Direct enrollments plus the section roster, de-duplicated"""
        seen = {}
        for student in list(self.students) + list(self.section.students if self.section else []):
            seen.setdefault(student.id, student)
        return list(seen.values())

    def __repr__(self):
        return f"<Course {self.name}>"
