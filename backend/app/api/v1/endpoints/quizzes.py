"""
Quiz API

Multiple-choice quizzes attached to a course:
- Teachers (and admins) create, edit and export them
- Students see them without the answer key, submit attempts and read
  their results
- Attempt limits and the retake policy are enforced on every submit
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.database import get_db
from app.core.exceptions import AuthorizationError, ResourceNotFoundError
from app.core.logging_config import logger
from app.models.base import utcnow
from app.models.quiz import Quiz
from app.models.user import User, UserRole
from app.modules.auth.dependencies import get_current_user, require_student
from app.schemas.quiz import (
    QuizCreate,
    QuizUpdate,
    QuizResponse,
    QuizSubmitRequest,
    QuizSubmissionResponse,
)
from app.services import course_service
from app.services.notification_service import NotificationService
from app.services.quiz_service import (
    QuizService,
    build_export_csv,
    export_filename,
    performance_message,
)
from app.api.v1.responses import success

router = APIRouter()


async def _get_managed_quiz(service: QuizService, quiz_id: str, user: User) -> Quiz:
    quiz = await service.get_quiz(quiz_id, user)
    if not service.can_manage(quiz.course, user):
        raise AuthorizationError("Only the course teacher or an admin can manage this quiz")
    return quiz


async def _get_visible_quiz(service: QuizService, quiz_id: str, user: User) -> Quiz:
    quiz = await service.get_quiz(quiz_id, user)
    if service.can_manage(quiz.course, user):
        return quiz
    if not course_service.can_view_course(quiz.course, user):
        raise AuthorizationError("Access denied to this quiz")
    if user.role == UserRole.STUDENT and not quiz.is_published:
        raise ResourceNotFoundError("Quiz", quiz_id)
    return quiz


def _eligibility_body(quiz: Quiz, eligibility) -> dict:
    return {
        "attempts_used": eligibility.attempts_used,
        "max_attempts": eligibility.max_attempts,
        "attempts_remaining": eligibility.attempts_remaining,
        "can_attempt": eligibility.can_attempt,
        "reason": eligibility.reason or None,
        "retake_policy": quiz.retake_policy,
    }


@router.post("/course/{course_id}", status_code=status.HTTP_201_CREATED)
async def create_quiz(
    course_id: str,
    payload: QuizCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = QuizService(db)
    course = await service.get_course(course_id, current_user)
    if not service.can_manage(course, current_user):
        raise AuthorizationError("Only the course teacher or an admin can create quizzes")

    quiz = await service.create_quiz(course, current_user, payload)
    if quiz.is_published:
        await NotificationService(db).notify_quiz_published(quiz, course, current_user)
    await db.commit()

    return success(QuizResponse.from_quiz(quiz, include_answers=True), "Quiz created successfully")


@router.get("/course/{course_id}")
async def list_course_quizzes(
    course_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Managers see every quiz with answers; students see open, published ones"""
    service = QuizService(db)
    course = await service.get_course(course_id, current_user)
    manager = service.can_manage(course, current_user)
    if not manager and not course_service.can_view_course(course, current_user):
        raise AuthorizationError("Access denied to this course")

    now = utcnow()
    query = select(Quiz).where(Quiz.course_id == course.id)
    if not manager and current_user.role == UserRole.STUDENT:
        query = query.where(
            Quiz.is_published == True,  # noqa: E712
            Quiz.visible_until >= now,
        )
    quizzes = (await db.execute(query.order_by(Quiz.created_at.desc()))).scalars().all()

    return success([QuizResponse.from_quiz(q, include_answers=manager, now=now) for q in quizzes])


@router.get("/{quiz_id}")
async def get_quiz(
    quiz_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = QuizService(db)
    quiz = await _get_visible_quiz(service, quiz_id, current_user)
    include_answers = service.can_manage(quiz.course, current_user)
    return success(QuizResponse.from_quiz(quiz, include_answers=include_answers))


@router.put("/{quiz_id}")
async def update_quiz(
    quiz_id: str,
    payload: QuizUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = QuizService(db)
    quiz = await _get_managed_quiz(service, quiz_id, current_user)
    quiz = await service.update_quiz(quiz, payload)
    await db.commit()
    return success(QuizResponse.from_quiz(quiz, include_answers=True), "Quiz updated successfully")


@router.delete("/{quiz_id}")
async def delete_quiz(
    quiz_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = QuizService(db)
    quiz = await _get_managed_quiz(service, quiz_id, current_user)
    await service.delete_quiz(quiz)
    await db.commit()

    logger.info(f"[Quiz] Deleted quiz {quiz_id}")
    return success(None, "Quiz deleted successfully")


@router.post("/{quiz_id}/submit")
async def submit_quiz(
    quiz_id: str,
    payload: QuizSubmitRequest,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db)
):
    service = QuizService(db)
    quiz = await service.get_quiz(quiz_id, current_user)
    result = await service.submit(quiz, current_user, payload.answers)
    await db.commit()

    return success({
        "submission": QuizSubmissionResponse.model_validate(result["submission"]),
        "score": result["score"],
        "total": result["total"],
        "percentage": result["percentage"],
        "attempt_number": result["attempt_number"],
        "max_attempts": result["max_attempts"],
        "attempts_remaining": max(0, result["max_attempts"] - result["attempt_number"]),
        "performance": result["performance"],
    }, "Quiz submitted successfully")


@router.get("/{quiz_id}/my-result")
async def my_result(
    quiz_id: str,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db)
):
    """Latest attempt, or null when the student has not taken the quiz"""
    service = QuizService(db)
    quiz = await _get_visible_quiz(service, quiz_id, current_user)
    attempts = await service.student_attempts(quiz.id, current_user.id)
    if not attempts:
        return success(None)

    latest = attempts[-1]
    return success({
        "submission": QuizSubmissionResponse.model_validate(latest),
        "performance": performance_message(latest.percentage),
        "attempts_used": len(attempts),
        "max_attempts": quiz.max_attempts,
    })


@router.get("/{quiz_id}/my-attempts")
async def my_attempts(
    quiz_id: str,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db)
):
    service = QuizService(db)
    quiz = await _get_visible_quiz(service, quiz_id, current_user)
    attempts = await service.student_attempts(quiz.id, current_user.id)
    eligibility = await service.eligibility(quiz, current_user.id)

    return success({
        "attempts": [QuizSubmissionResponse.model_validate(a) for a in attempts],
        **_eligibility_body(quiz, eligibility),
    })


@router.get("/{quiz_id}/attempts-remaining")
async def attempts_remaining(
    quiz_id: str,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db)
):
    service = QuizService(db)
    quiz = await _get_visible_quiz(service, quiz_id, current_user)
    eligibility = await service.eligibility(quiz, current_user.id)
    return success(_eligibility_body(quiz, eligibility))


@router.get("/{quiz_id}/submissions")
async def quiz_submissions(
    quiz_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Latest attempt per student"""
    service = QuizService(db)
    quiz = await _get_managed_quiz(service, quiz_id, current_user)
    submissions = await service.latest_submissions(quiz.id)
    return success([QuizSubmissionResponse.model_validate(s) for s in submissions])


@router.get("/{quiz_id}/students/{student_id}/attempts")
async def student_attempts(
    quiz_id: str,
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = QuizService(db)
    quiz = await _get_managed_quiz(service, quiz_id, current_user)
    attempts = await service.student_attempts(quiz.id, student_id)
    return success([QuizSubmissionResponse.model_validate(a) for a in attempts])


@router.get("/{quiz_id}/export")
async def export_submissions(
    quiz_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """CSV of the latest attempt per student"""
    service = QuizService(db)
    quiz = await _get_managed_quiz(service, quiz_id, current_user)
    submissions = await service.latest_submissions(quiz.id)

    filename = export_filename(quiz.title)
    logger.info(f"[Quiz] Exported {len(submissions)} submission(s) for quiz {quiz.id}")
    return Response(
        content=build_export_csv(quiz, submissions),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
