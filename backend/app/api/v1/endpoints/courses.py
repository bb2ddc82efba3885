from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.course import Course
from app.models.user import User, UserRole
from app.modules.auth.dependencies import get_current_user, require_student_affairs, is_section_manager
from app.schemas.academics import CourseCreate, CourseUpdate, CourseResponse, EnrollRequest
from app.schemas.user import UserBrief
from app.services import course_service
from app.services.section_service import get_section
from app.api.v1.responses import success

router = APIRouter()


async def _get_visible(db: AsyncSession, course_id: str, user: User) -> Course:
    course = await course_service.get_course(db, course_id, user.school_id)
    if not course_service.can_view_course(course, user):
        raise AuthorizationError("Access denied to this course")
    return course


def _can_manage_roster(course: Course, user: User) -> bool:
    return course_service.can_manage_course(course, user) or is_section_manager(user)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseCreate,
    current_user: User = Depends(require_student_affairs),
    db: AsyncSession = Depends(get_db)
):
    section = await get_section(db, payload.section_id, current_user.school_id)
    teachers = await course_service.validate_teachers(db, current_user.school_id, payload.teacher_ids)
    await course_service.ensure_unique_course_code(db, current_user.school_id, payload.code)

    course = Course(
        name=payload.name.strip(),
        description=payload.description,
        code=payload.code,
        section=section,
        school_id=current_user.school_id,
        teachers=teachers,
        students=[],
        created_by_id=current_user.id,
        is_active=True,
    )
    db.add(course)
    await db.commit()

    logger.info(f"[Courses] Created '{course.name}' for section {section.section_code}")
    return success(CourseResponse.from_course(course), "Course created successfully")


@router.get("")
async def list_courses(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    query = course_service.visible_courses_query(current_user)
    if query is None:
        raise AuthorizationError("Access denied")

    courses = (await db.execute(query.order_by(Course.name.asc()))).scalars().all()
    return success([CourseResponse.from_course(c) for c in courses])


@router.get("/{course_id}")
async def get_course(
    course_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    course = await _get_visible(db, course_id, current_user)
    return success(CourseResponse.from_course(course))


@router.put("/{course_id}")
async def update_course(
    course_id: str,
    payload: CourseUpdate,
    current_user: User = Depends(require_student_affairs),
    db: AsyncSession = Depends(get_db)
):
    course = await course_service.get_course(db, course_id, current_user.school_id)
    updates = payload.model_dump(exclude_unset=True)

    section_id = updates.pop("section_id", None)
    if section_id:
        course.section = await get_section(db, section_id, current_user.school_id)

    teacher_ids = updates.pop("teacher_ids", None)
    if teacher_ids:
        course.teachers = await course_service.validate_teachers(db, current_user.school_id, teacher_ids)

    if "code" in updates and updates["code"] != course.code:
        await course_service.ensure_unique_course_code(db, current_user.school_id, updates["code"], exclude_id=course.id)
        course.code = updates.pop("code")
    updates.pop("code", None)

    for field, value in updates.items():
        if value is not None:
            setattr(course, field, value)

    await db.commit()
    return success(CourseResponse.from_course(course), "Course updated successfully")


@router.delete("/{course_id}")
async def delete_course(
    course_id: str,
    current_user: User = Depends(require_student_affairs),
    db: AsyncSession = Depends(get_db)
):
    course = await course_service.get_course(db, course_id, current_user.school_id)
    await db.delete(course)
    await db.commit()

    logger.info(f"[Courses] Deleted course {course_id}")
    return success(None, "Course deleted successfully")


@router.post("/{course_id}/students")
async def enroll_student(
    course_id: str,
    payload: EnrollRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Enroll one student directly (on top of the section roster)"""
    course = await course_service.get_course(db, course_id, current_user.school_id)
    if not _can_manage_roster(course, current_user):
        raise AuthorizationError("Only the course teacher or an admin can enroll students")

    student = await course_service.find_student(
        db, current_user.school_id, user_number=payload.user_number, student_id=payload.student_id
    )
    if any(s.id == student.id for s in course.students):
        raise ValidationError("Student is already enrolled in this course")

    course.students.append(student)
    await db.commit()

    logger.info(f"[Courses] Enrolled {student.user_number} in '{course.name}'")
    return success(CourseResponse.from_course(course), "Student enrolled successfully")


@router.delete("/{course_id}/students/{student_id}")
async def unenroll_student(
    course_id: str,
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    course = await course_service.get_course(db, course_id, current_user.school_id)
    if not _can_manage_roster(course, current_user):
        raise AuthorizationError("Only the course teacher or an admin can remove students")

    student = next((s for s in course.students if s.id == student_id), None)
    if student is None:
        raise ResourceNotFoundError("Student", student_id)

    course.students.remove(student)
    await db.commit()
    return success(CourseResponse.from_course(course), "Student removed from course")


@router.get("/{course_id}/students")
async def list_course_students(
    course_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Direct enrollments plus the section roster"""
    course = await _get_visible(db, course_id, current_user)
    if current_user.role == UserRole.STUDENT:
        raise AuthorizationError("Access denied")

    direct = {s.id for s in course.students}
    return success([
        {**UserBrief.model_validate(s).model_dump(), "enrolled_via": "direct" if s.id in direct else "section"}
        for s in sorted(course.all_students(), key=lambda s: s.name)
    ])
