"""
Quiz grading and attempt policy.

The pure helpers (grade_answers, evaluate_attempt, performance_message)
carry the rules; QuizService wraps them with the database lookups used
by the quiz endpoints.
"""

import csv
import io
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AuthorizationError,
    DuplicateSubmissionError,
    QuizAttemptError,
    ResourceNotFoundError,
    ValidationError,
)
from app.core.logging_config import logger
from app.models.base import utcnow, as_naive_utc
from app.models.course import Course
from app.models.quiz import Quiz, QuizSubmission
from app.models.user import User
from app.services.course_service import get_course, can_manage_course


SECONDS_PER_DAY = 60 * 60 * 24

PERFORMANCE_BANDS = [
    (90, "Excellent!"),
    (80, "Very Good!"),
    (70, "Good!"),
    (60, "Satisfactory"),
    (50, "Needs Improvement"),
]

EXPORT_COLUMNS = [
    "Student Name",
    "Student ID",
    "Email",
    "Obtained Marks",
    "Total Marks",
    "Percentage",
    "Correct Answers",
    "Incorrect Answers",
    "Total Questions",
    "Submitted At",
]


def performance_message(percentage: float) -> str:
    for threshold, message in PERFORMANCE_BANDS:
        if percentage >= threshold:
            return message
    return "Keep Practicing"


def marks_per_question(question: Dict[str, Any], total_marks: float, question_count: int) -> float:
    marks = question.get("marks") or 0
    if marks > 0:
        return marks
    return round(total_marks / question_count, 2) if question_count else 0.0


def validate_answers(questions: List[Dict[str, Any]], answers: List[Any]) -> None:
    """Raise ValidationError unless every question has one in-range option index"""
    if not questions:
        raise ValidationError("Quiz has no questions")

    if len(answers) != len(questions):
        raise ValidationError(f"Expected {len(questions)} answers, got {len(answers)}", field="answers")

    for i, (question, answer) in enumerate(zip(questions, answers)):
        if isinstance(answer, bool) or not isinstance(answer, int):
            raise ValidationError(f"Invalid answer for question {i + 1}", field="answers")
        if answer < 0 or answer >= len(question["options"]):
            raise ValidationError(f"Invalid answer for question {i + 1}", field="answers")


def default_total_marks(questions: List[Dict[str, Any]]) -> float:
    """Sum of question marks; one mark per question when every question is worth zero"""
    return float(sum(q.get("marks", 1) for q in questions) or len(questions))


def grade_answers(questions: List[Dict[str, Any]], answers: List[int], total_marks: float) -> Dict[str, Any]:
    """
    Grade a validated answer list.

    Returns the per-question breakdown, the score (capped at total_marks)
    and the percentage rounded to one decimal.
    """
    count = len(questions)
    graded = []
    raw_score = 0.0

    for i, (question, selected) in enumerate(zip(questions, answers)):
        marks = marks_per_question(question, total_marks, count)
        is_correct = selected == question["correct_answer"]
        awarded = marks if is_correct else 0
        raw_score += awarded
        graded.append({
            "question_index": i,
            "selected_option": selected,
            "correct_answer": question["correct_answer"],
            "is_correct": is_correct,
            "marks_awarded": awarded,
            "question_text": question["question"],
            "options": question["options"],
            "question_marks": marks,
        })

    score = min(round(raw_score, 2), total_marks)
    percentage = round(score / total_marks * 100, 1) if total_marks else 0.0

    return {"answers": graded, "score": score, "percentage": percentage}


@dataclass
class AttemptEligibility:
    attempts_used: int
    max_attempts: int
    can_attempt: bool
    reason: str = ""

    @property
    def attempts_remaining(self) -> int:
        return max(0, self.max_attempts - self.attempts_used)

    @property
    def next_attempt_number(self) -> int:
        return self.attempts_used + 1


def evaluate_attempt(
    quiz: Quiz,
    attempts_used: int,
    last_submission: Optional[QuizSubmission],
    now: Optional[datetime] = None,
) -> AttemptEligibility:
    """
    Decide whether a student may start another attempt.

    Checks run in a fixed order: attempt limit, retakes allowed, already
    passed, cooldown. Policy checks only apply to multi-attempt quizzes.
    """
    now = now or utcnow()
    result = AttemptEligibility(attempts_used=attempts_used, max_attempts=quiz.max_attempts, can_attempt=True)

    if attempts_used >= quiz.max_attempts:
        result.can_attempt = False
        result.reason = f"Maximum attempts ({quiz.max_attempts}) reached for this quiz"
        return result

    if last_submission is None or quiz.max_attempts <= 1:
        return result

    if not quiz.allow_retake:
        result.can_attempt = False
        result.reason = "Retakes are not allowed for this quiz"
        return result

    last_percentage = (last_submission.score / quiz.total_marks * 100) if quiz.total_marks else 0.0
    if last_percentage >= quiz.min_score_to_pass:
        result.can_attempt = False
        result.reason = f"You already passed this quiz with {last_percentage:.1f}% score"
        return result

    days_since = (now - last_submission.submitted_at).total_seconds() / SECONDS_PER_DAY
    if days_since < quiz.days_between_attempts:
        remaining = quiz.days_between_attempts - days_since
        result.can_attempt = False
        result.reason = f"Please wait {remaining:.1f} more days before attempting again"

    return result


def export_filename(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-") or "quiz"
    return f"quiz-submissions-{slug}.csv"


def build_export_csv(quiz: Quiz, submissions: List[QuizSubmission]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for sub in submissions:
        student = sub.student
        writer.writerow([
            student.name if student else "",
            student.user_number if student else "",
            student.email if student else "",
            sub.score,
            sub.total_marks,
            f"{sub.percentage:.1f}",
            sub.correct_count,
            sub.incorrect_count,
            quiz.question_count,
            sub.submitted_at.isoformat(),
        ])
    return buffer.getvalue()


class QuizService:
    """Database-backed quiz operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_course(self, course_id: str, user: User) -> Course:
        return await get_course(self.db, course_id, user.school_id)

    async def get_quiz(self, quiz_id: str, user: User) -> Quiz:
        quiz = await self.db.get(Quiz, quiz_id)
        if not quiz:
            raise ResourceNotFoundError("Quiz", quiz_id)
        if quiz.school_id != user.school_id:
            raise AuthorizationError()
        return quiz

    @staticmethod
    def can_manage(course: Course, user: User) -> bool:
        return can_manage_course(course, user)

    async def create_quiz(self, course: Course, user: User, data) -> Quiz:
        now = utcnow()
        visible_until = as_naive_utc(data.visible_until)
        if visible_until <= now:
            raise ValidationError("Quiz end time must be in the future", field="visible_until")

        questions = [q.model_dump() for q in data.questions]
        total_marks = data.total_marks or default_total_marks(questions)

        quiz = Quiz(
            course=course,
            school_id=course.school_id,
            title=data.title,
            description=data.description,
            questions=questions,
            total_marks=total_marks,
            duration_minutes=data.duration_minutes,
            visible_from=now,
            visible_until=visible_until,
            max_attempts=data.max_attempts,
            allow_retake=data.allow_retake,
            min_score_to_pass=data.min_score_to_pass,
            days_between_attempts=data.days_between_attempts,
            created_by_id=user.id,
            is_published=data.is_published,
        )
        if quiz.max_attempts == 1:
            quiz.reset_retake_policy()

        self.db.add(quiz)
        await self.db.flush()
        logger.info(f"[Quiz] Created '{quiz.title}' in course {course.id} ({quiz.question_count} questions)")
        return quiz

    async def update_quiz(self, quiz: Quiz, data) -> Quiz:
        updates = data.model_dump(exclude_unset=True)
        if "questions" in updates and updates["questions"] is not None:
            updates["questions"] = [q.model_dump() for q in data.questions]
            if updates.get("total_marks") is None:
                updates["total_marks"] = default_total_marks(updates["questions"])
        if updates.get("visible_until") is not None:
            updates["visible_until"] = as_naive_utc(updates["visible_until"])
            if updates["visible_until"] <= utcnow():
                raise ValidationError("Quiz end time must be in the future", field="visible_until")

        for field, value in updates.items():
            if value is not None:
                setattr(quiz, field, value)

        if quiz.max_attempts == 1:
            quiz.reset_retake_policy()

        await self.db.flush()
        return quiz

    async def delete_quiz(self, quiz: Quiz) -> None:
        await self.db.execute(delete(QuizSubmission).where(QuizSubmission.quiz_id == quiz.id))
        await self.db.delete(quiz)
        await self.db.flush()

    async def student_attempts(self, quiz_id: str, student_id: str) -> List[QuizSubmission]:
        result = await self.db.execute(
            select(QuizSubmission)
            .where(QuizSubmission.quiz_id == quiz_id, QuizSubmission.student_id == student_id)
            .order_by(QuizSubmission.attempt_number.asc())
        )
        return list(result.scalars().all())

    async def eligibility(self, quiz: Quiz, student_id: str, now: Optional[datetime] = None) -> AttemptEligibility:
        attempts = await self.student_attempts(quiz.id, student_id)
        last = attempts[-1] if attempts else None
        return evaluate_attempt(quiz, len(attempts), last, now)

    async def submit(self, quiz: Quiz, student: User, answers: List[Any], now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()

        if not quiz.is_published:
            raise ValidationError("This quiz is not published")
        if quiz.is_expired(now):
            raise ValidationError("Quiz deadline has passed")
        if not quiz.has_started(now):
            raise ValidationError("Quiz has not started yet")

        course = quiz.course
        if course is None or not course.is_enrolled(student.id):
            raise AuthorizationError("You are not enrolled in this course")

        eligibility = await self.eligibility(quiz, student.id, now)
        if not eligibility.can_attempt:
            raise QuizAttemptError(eligibility.reason, eligibility.attempts_used, quiz.max_attempts)

        validate_answers(quiz.questions, answers)
        graded = grade_answers(quiz.questions, answers, quiz.total_marks)

        submission = QuizSubmission(
            quiz_id=quiz.id,
            course_id=quiz.course_id,
            student=student,
            answers=graded["answers"],
            score=graded["score"],
            percentage=graded["percentage"],
            total_marks=quiz.total_marks,
            attempt_number=eligibility.next_attempt_number,
            submitted_at=now,
        )
        attempt_label = f"attempt {submission.attempt_number} by {student.user_number} on quiz {quiz.id}"
        self.db.add(submission)
        try:
            await self.db.flush()
        except IntegrityError:
            # rollback expires every loaded object; only the label is used afterwards
            await self.db.rollback()
            logger.warning(f"[Quiz] Duplicate {attempt_label}")
            raise DuplicateSubmissionError()

        logger.info(
            f"[Quiz] Student {student.user_number} submitted quiz {quiz.id}: "
            f"{graded['score']}/{quiz.total_marks} ({graded['percentage']}%) attempt {submission.attempt_number}"
        )

        return {
            "submission": submission,
            "score": graded["score"],
            "total": quiz.total_marks,
            "percentage": graded["percentage"],
            "attempt_number": submission.attempt_number,
            "max_attempts": quiz.max_attempts,
            "performance": performance_message(graded["percentage"]),
        }

    async def latest_submissions(self, quiz_id: str) -> List[QuizSubmission]:
        """Latest attempt per student, best scores first"""
        latest = (
            select(
                QuizSubmission.student_id,
                func.max(QuizSubmission.attempt_number).label("attempt_number"),
            )
            .where(QuizSubmission.quiz_id == quiz_id)
            .group_by(QuizSubmission.student_id)
            .subquery()
        )
        result = await self.db.execute(
            select(QuizSubmission)
            .join(
                latest,
                (QuizSubmission.student_id == latest.c.student_id)
                & (QuizSubmission.attempt_number == latest.c.attempt_number),
            )
            .where(QuizSubmission.quiz_id == quiz_id)
            .order_by(QuizSubmission.score.desc(), QuizSubmission.submitted_at.asc())
        )
        return list(result.scalars().all())
