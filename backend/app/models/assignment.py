from sqlalchemy import Column, String, DateTime, Float, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.base import GUID, generate_uuid, utcnow, TimestampMixin


class Assignment(Base, TimestampMixin):
    """Homework attached to a course, optionally with a handout file"""
    __tablename__ = "assignments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    course_id = Column(GUID, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime, nullable=False)
    max_marks = Column(Float, nullable=False, default=100.0)
    file_url = Column(String(500), nullable=True)
    created_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    course = relationship("Course", lazy="selectin")
    submissions = relationship("Submission", back_populates="assignment", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Assignment {self.title}>"


class Submission(Base):
    """A student's upload for an assignment; one per student"""
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    assignment_id = Column(GUID, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    file_url = Column(String(500), nullable=False)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)

    marks_obtained = Column(Float, nullable=True)
    feedback = Column(Text, nullable=True)
    graded_at = Column(DateTime, nullable=True)
    graded_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    assignment = relationship("Assignment", back_populates="submissions", lazy="selectin")
    student = relationship("User", foreign_keys=[student_id], lazy="selectin")

    @property
    def is_graded(self) -> bool:
        return self.marks_obtained is not None

    def __repr__(self):
        return f"<Submission {self.assignment_id} by {self.student_id}>"
