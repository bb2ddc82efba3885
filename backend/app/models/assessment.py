from sqlalchemy import Column, String, DateTime, Float, ForeignKey, Enum as SQLEnum, Text, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.models.base import GUID, generate_uuid, utcnow, TimestampMixin


class AssessmentType(str, enum.Enum):
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    PROJECT = "project"
    MIDTERM = "midterm"
    FINAL = "final"


class Assessment(Base, TimestampMixin):
    """Gradebook column for offline work (exams, projects)"""
    __tablename__ = "assessments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    course_id = Column(GUID, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    assessment_type = Column(SQLEnum(AssessmentType), nullable=False)
    total_marks = Column(Float, nullable=False)
    date = Column(DateTime, default=utcnow, nullable=False)
    created_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    course = relationship("Course", lazy="selectin")
    grades = relationship("Grade", back_populates="assessment", cascade="all, delete-orphan", passive_deletes=True)


class Grade(Base, TimestampMixin):
    __tablename__ = "grades"
    __table_args__ = (
        UniqueConstraint("assessment_id", "student_id", name="uq_grade_assessment_student"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    assessment_id = Column(GUID, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    marks_obtained = Column(Float, nullable=False)
    remarks = Column(Text, nullable=True)
    graded_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    assessment = relationship("Assessment", back_populates="grades", lazy="selectin")
    student = relationship("User", foreign_keys=[student_id], lazy="selectin")
