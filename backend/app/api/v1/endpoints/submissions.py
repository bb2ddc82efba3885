from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.database import get_db
from app.core.exceptions import AuthorizationError, DuplicateSubmissionError, ValidationError
from app.core.logging_config import logger
from app.models.assignment import Submission
from app.models.base import utcnow
from app.models.user import User
from app.modules.auth.dependencies import require_student
from app.schemas.assignment import SubmissionResponse
from app.services.storage_service import storage_service
from app.api.v1.endpoints.assignments import get_assignment
from app.api.v1.responses import success

router = APIRouter()


async def _find_submission(db: AsyncSession, assignment_id: str, student_id: str):
    result = await db.execute(
        select(Submission).where(Submission.assignment_id == assignment_id, Submission.student_id == student_id)
    )
    return result.scalar_one_or_none()


@router.post("/{assignment_id}", status_code=status.HTTP_201_CREATED)
async def submit_assignment(
    assignment_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db)
):
    """Upload the student's work; one submission per assignment, before the due date"""
    assignment = await get_assignment(db, assignment_id, current_user)

    if not assignment.course.is_enrolled(current_user.id):
        raise AuthorizationError("You are not enrolled in this course")

    now = utcnow()
    if now > assignment.due_date:
        raise ValidationError("Submission deadline has passed")

    if await _find_submission(db, assignment.id, current_user.id):
        raise ValidationError("You have already submitted this assignment")

    file_url = await storage_service.save(file, "submissions")

    submission = Submission(
        assignment_id=assignment.id,
        student=current_user,
        file_url=file_url,
        submitted_at=now,
    )
    db.add(submission)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        await storage_service.delete(file_url)
        logger.warning(f"[Submissions] Duplicate submission for assignment {assignment_id}")
        raise DuplicateSubmissionError()

    logger.info(f"[Submissions] {current_user.user_number} submitted assignment {assignment_id}")
    return success(SubmissionResponse.model_validate(submission), "Assignment submitted successfully")


@router.get("/{assignment_id}/mine")
async def my_submission(
    assignment_id: str,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db)
):
    assignment = await get_assignment(db, assignment_id, current_user)
    submission = await _find_submission(db, assignment.id, current_user.id)
    return success(SubmissionResponse.model_validate(submission) if submission else None)
