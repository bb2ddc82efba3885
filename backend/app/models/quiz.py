from sqlalchemy import Column, String, Boolean, DateTime, Integer, Float, Text, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from typing import Any, Dict, Optional

from app.core.database import Base
from app.models.base import GUID, generate_uuid, utcnow, TimestampMixin


DEFAULT_MIN_SCORE_TO_PASS = 60.0
DEFAULT_DAYS_BETWEEN_ATTEMPTS = 1.0


class Quiz(Base, TimestampMixin):
    """
    Multiple-choice quiz.

    `questions` is a list of {"question", "options", "correct_answer", "marks"}
    dicts; `correct_answer` indexes into `options`.
    """
    __tablename__ = "quizzes"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    course_id = Column(GUID, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    school_id = Column(GUID, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    quiz_type = Column(String(20), default="mcq", nullable=False)

    questions = Column(JSON, nullable=False, default=list)
    total_marks = Column(Float, nullable=False)
    duration_minutes = Column(Integer, nullable=True)

    visible_from = Column(DateTime, default=utcnow, nullable=False)
    visible_until = Column(DateTime, nullable=False)

    # Attempt / retake policy
    max_attempts = Column(Integer, default=1, nullable=False)
    allow_retake = Column(Boolean, default=False, nullable=False)
    min_score_to_pass = Column(Float, default=DEFAULT_MIN_SCORE_TO_PASS, nullable=False)
    days_between_attempts = Column(Float, default=DEFAULT_DAYS_BETWEEN_ATTEMPTS, nullable=False)

    created_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_published = Column(Boolean, default=True, nullable=False)

    course = relationship("Course", lazy="selectin")
    submissions = relationship("QuizSubmission", back_populates="quiz", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def question_count(self) -> int:
        return len(self.questions or [])

    @property
    def retake_policy(self) -> Dict[str, Any]:
        return {
            "allow_retake": self.allow_retake,
            "min_score_to_pass": self.min_score_to_pass,
            "days_between_attempts": self.days_between_attempts,
        }

    def reset_retake_policy(self) -> None:
        """Single-attempt quizzes always carry the default policy"""
        self.allow_retake = False
        self.min_score_to_pass = DEFAULT_MIN_SCORE_TO_PASS
        self.days_between_attempts = DEFAULT_DAYS_BETWEEN_ATTEMPTS

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.visible_until is not None and self.visible_until < now

    def has_started(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.visible_from is None or self.visible_from <= now

    def __repr__(self):
        return f"<Quiz {self.title}>"


class QuizSubmission(Base):
    """
    One graded attempt. A student has one row per attempt, numbered from 1.

    `answers` holds the graded breakdown per question so results stay
    readable even if the quiz is edited later.
    """
    __tablename__ = "quiz_submissions"
    __table_args__ = (
        Index("ix_quiz_submission_quiz_student_attempt", "quiz_id", "student_id", "attempt_number", unique=True),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    quiz_id = Column(GUID, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(GUID, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    answers = Column(JSON, nullable=False, default=list)
    score = Column(Float, nullable=False, default=0.0)
    percentage = Column(Float, nullable=False, default=0.0)
    total_marks = Column(Float, nullable=False)
    attempt_number = Column(Integer, nullable=False, default=1)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)

    quiz = relationship("Quiz", back_populates="submissions")
    student = relationship("User", foreign_keys=[student_id], lazy="selectin")

    @property
    def correct_count(self) -> int:
        return sum(1 for a in self.answers or [] if a.get("is_correct"))

    @property
    def incorrect_count(self) -> int:
        return len(self.answers or []) - self.correct_count

    def __repr__(self):
        return f"<QuizSubmission quiz={self.quiz_id} attempt={self.attempt_number}>"
