"""
Assessments API

Gradebook entries for offline work (exams, projects) and the marks
recorded against them.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.database import get_db
from app.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.assessment import Assessment, Grade
from app.models.base import utcnow, as_naive_utc
from app.models.user import User, UserRole
from app.modules.auth.dependencies import get_current_user
from app.schemas.assignment import AssessmentCreate, AssessmentResponse, GradesUpsert, GradeResponse
from app.services import course_service
from app.api.v1.responses import success

router = APIRouter()


async def _get_assessment(db: AsyncSession, assessment_id: str, user: User) -> Assessment:
    assessment = await db.get(Assessment, assessment_id)
    if not assessment or assessment.course is None or assessment.course.school_id != user.school_id:
        raise ResourceNotFoundError("Assessment", assessment_id)
    return assessment


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_assessment(
    payload: AssessmentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    course = await course_service.get_course(db, payload.course_id, current_user.school_id)
    if not course_service.can_manage_course(course, current_user):
        raise AuthorizationError("Only the course teacher or an admin can create assessments")

    assessment = Assessment(
        course=course,
        title=payload.title.strip(),
        assessment_type=payload.assessment_type,
        total_marks=payload.total_marks,
        date=as_naive_utc(payload.date) if payload.date else utcnow(),
        created_by_id=current_user.id,
    )
    db.add(assessment)
    await db.commit()

    logger.info(f"[Assessments] Created '{assessment.title}' in course {course.id}")
    return success(AssessmentResponse.model_validate(assessment), "Assessment created successfully")


@router.get("/course/{course_id}")
async def list_course_assessments(
    course_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    course = await course_service.get_course(db, course_id, current_user.school_id)
    if not course_service.can_view_course(course, current_user):
        raise AuthorizationError("Access denied to this course")

    result = await db.execute(
        select(Assessment).where(Assessment.course_id == course.id).order_by(Assessment.date.asc())
    )
    return success([AssessmentResponse.model_validate(a) for a in result.scalars().all()])


@router.post("/{assessment_id}/grades")
async def record_grades(
    assessment_id: str,
    payload: GradesUpsert,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create or overwrite one grade per student"""
    assessment = await _get_assessment(db, assessment_id, current_user)
    course = assessment.course
    if not course_service.can_manage_course(course, current_user):
        raise AuthorizationError("Only the course teacher or an admin can record grades")

    students = {s.id: s for s in course.all_students()}
    for entry in payload.grades:
        if entry.student_id not in students:
            raise ValidationError(f"Student {entry.student_id} is not enrolled in this course", field="student_id")
        if entry.marks_obtained > assessment.total_marks:
            raise ValidationError(
                f"Marks must be between 0 and {assessment.total_marks:g}", field="marks_obtained"
            )

    result = await db.execute(select(Grade).where(Grade.assessment_id == assessment.id))
    existing = {g.student_id: g for g in result.scalars().all()}

    grades = []
    for entry in payload.grades:
        grade = existing.get(entry.student_id)
        if grade is None:
            grade = Grade(
                assessment_id=assessment.id,
                student=students[entry.student_id],
                marks_obtained=entry.marks_obtained,
            )
            db.add(grade)
            existing[entry.student_id] = grade
        grade.marks_obtained = entry.marks_obtained
        grade.remarks = entry.remarks
        grade.graded_by_id = current_user.id
        grades.append(grade)

    await db.commit()

    logger.info(f"[Assessments] Recorded {len(grades)} grade(s) for assessment {assessment.id}")
    return success([GradeResponse.model_validate(g) for g in grades], "Grades saved successfully")


@router.get("/{assessment_id}/grades")
async def list_grades(
    assessment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    assessment = await _get_assessment(db, assessment_id, current_user)
    if not course_service.can_view_course(assessment.course, current_user):
        raise AuthorizationError("Access denied to this assessment")

    query = select(Grade).where(Grade.assessment_id == assessment.id)
    if current_user.role == UserRole.STUDENT:
        query = query.where(Grade.student_id == current_user.id)
    grades = (await db.execute(query)).scalars().all()
    return success([GradeResponse.model_validate(g) for g in grades])


@router.get("/student/{student_id}")
async def student_grades(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Every grade a student holds in the school, with its assessment"""
    if current_user.id != student_id and not current_user.is_staff:
        raise AuthorizationError("You can only view your own grades")

    student = await course_service.find_student(db, current_user.school_id, student_id=student_id)
    result = await db.execute(select(Grade).where(Grade.student_id == student.id))

    return success([
        {
            **GradeResponse.model_validate(g).model_dump(),
            "assessment": AssessmentResponse.model_validate(g.assessment),
            "course_name": g.assessment.course.name if g.assessment.course else None,
        }
        for g in result.scalars().all()
    ])
