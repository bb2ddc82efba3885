"""
Assignments API

Teachers post assignments (optionally with a handout file) to their
courses and grade the students' uploads. Students submit through
/api/submissions.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from app.core.database import get_db
from app.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.assignment import Assignment, Submission
from app.models.base import utcnow, as_naive_utc
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.assignment import (
    AssignmentUpdate,
    AssignmentResponse,
    SubmissionResponse,
    GradeSubmissionRequest,
)
from app.services import course_service
from app.services.notification_service import NotificationService
from app.services.storage_service import storage_service
from app.api.v1.responses import success

router = APIRouter()


async def get_assignment(db: AsyncSession, assignment_id: str, user: User) -> Assignment:
    assignment = await db.get(Assignment, assignment_id)
    if not assignment or assignment.course is None or assignment.course.school_id != user.school_id:
        raise ResourceNotFoundError("Assignment", assignment_id)
    return assignment


def _require_manager(assignment: Assignment, user: User) -> None:
    if not course_service.can_manage_course(assignment.course, user):
        raise AuthorizationError("Only the course teacher or an admin can manage this assignment")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_assignment(
    course_id: str = Form(...),
    title: str = Form(..., min_length=1, max_length=255),
    due_date: datetime = Form(...),
    description: Optional[str] = Form(None),
    max_marks: float = Form(100.0, gt=0),
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create an assignment and notify the course's students"""
    course = await course_service.get_course(db, course_id, current_user.school_id)
    if not course_service.can_manage_course(course, current_user):
        raise AuthorizationError("Only the course teacher or an admin can create assignments")

    due_date = as_naive_utc(due_date)
    if due_date <= utcnow():
        raise ValidationError("Due date must be in the future", field="due_date")

    file_url = None
    if file is not None and file.filename:
        file_url = await storage_service.save(file, "assignments")

    assignment = Assignment(
        course=course,
        title=title.strip(),
        description=description,
        due_date=due_date,
        max_marks=max_marks,
        file_url=file_url,
        created_by_id=current_user.id,
    )
    db.add(assignment)
    await db.flush()

    await NotificationService(db).notify_assignment_created(assignment, course, current_user)
    await db.commit()

    logger.info(f"[Assignments] '{assignment.title}' created in course {course.id}")
    return success(AssignmentResponse.from_assignment(assignment), "Assignment created successfully")


@router.get("/course/{course_id}")
async def list_course_assignments(
    course_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    course = await course_service.get_course(db, course_id, current_user.school_id)
    if not course_service.can_view_course(course, current_user):
        raise AuthorizationError("Access denied to this course")

    result = await db.execute(
        select(Assignment).where(Assignment.course_id == course.id).order_by(Assignment.due_date.asc())
    )
    now = utcnow()
    return success([AssignmentResponse.from_assignment(a, now) for a in result.scalars().all()])


@router.get("/{assignment_id}")
async def get_assignment_detail(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    assignment = await get_assignment(db, assignment_id, current_user)
    if not course_service.can_view_course(assignment.course, current_user):
        raise AuthorizationError("Access denied to this assignment")
    return success(AssignmentResponse.from_assignment(assignment))


@router.put("/{assignment_id}")
async def update_assignment(
    assignment_id: str,
    payload: AssignmentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    assignment = await get_assignment(db, assignment_id, current_user)
    _require_manager(assignment, current_user)

    updates = payload.model_dump(exclude_unset=True)
    if updates.get("due_date") is not None:
        updates["due_date"] = as_naive_utc(updates["due_date"])

    for field, value in updates.items():
        if value is not None:
            setattr(assignment, field, value)

    await db.commit()
    return success(AssignmentResponse.from_assignment(assignment), "Assignment updated successfully")


@router.delete("/{assignment_id}")
async def delete_assignment(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    assignment = await get_assignment(db, assignment_id, current_user)
    _require_manager(assignment, current_user)

    submitted = await db.execute(select(Submission.file_url).where(Submission.assignment_id == assignment.id))
    file_urls = [assignment.file_url, *submitted.scalars().all()]

    await db.execute(delete(Submission).where(Submission.assignment_id == assignment.id))
    await db.delete(assignment)
    await db.commit()

    for url in file_urls:
        await storage_service.delete(url)
    return success(None, "Assignment deleted successfully")


@router.get("/{assignment_id}/submissions")
async def list_submissions(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    assignment = await get_assignment(db, assignment_id, current_user)
    _require_manager(assignment, current_user)

    result = await db.execute(
        select(Submission)
        .where(Submission.assignment_id == assignment.id)
        .order_by(Submission.submitted_at.asc())
    )
    return success([SubmissionResponse.model_validate(s) for s in result.scalars().all()])


@router.put("/submissions/{submission_id}/grade")
async def grade_submission(
    submission_id: str,
    payload: GradeSubmissionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Grade a submission and let the student know"""
    submission = await db.get(Submission, submission_id)
    if not submission:
        raise ResourceNotFoundError("Submission", submission_id)

    assignment = await get_assignment(db, submission.assignment_id, current_user)
    _require_manager(assignment, current_user)

    if payload.marks_obtained > assignment.max_marks:
        raise ValidationError(
            f"Marks must be between 0 and {assignment.max_marks:g}", field="marks_obtained"
        )

    submission.marks_obtained = payload.marks_obtained
    submission.feedback = payload.feedback
    submission.graded_at = utcnow()
    submission.graded_by_id = current_user.id
    await db.flush()

    await NotificationService(db).notify_submission_graded(submission, assignment, current_user)
    await db.commit()

    logger.info(f"[Assignments] Graded submission {submission.id}: {payload.marks_obtained}/{assignment.max_marks}")
    return success(SubmissionResponse.model_validate(submission), "Submission graded successfully")
