"""Course lookups and access rules shared by the coursework endpoints"""

from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, ResourceNotFoundError, ValidationError
from app.models.course import Course, course_teachers, course_students
from app.models.section import section_students
from app.models.user import User, UserRole, PermissionName


async def get_course(db: AsyncSession, course_id: str, school_id: str) -> Course:
    course = await db.get(Course, course_id)
    if not course or course.school_id != school_id:
        raise ResourceNotFoundError("Course", course_id)
    return course


def can_manage_course(course: Course, user: User) -> bool:
    """Admins and the course's own teachers"""
    return user.role == UserRole.ADMIN or course.is_teacher(user.id)


def can_view_course(course: Course, user: User) -> bool:
    if user.role in (UserRole.ADMIN, UserRole.FACULTY):
        return True
    if user.has_permission(PermissionName.STUDENT_AFFAIRS):
        return True
    if user.role == UserRole.TEACHER:
        return course.is_teacher(user.id)
    if user.role == UserRole.STUDENT:
        return course.is_enrolled(user.id)
    return False


def visible_courses_query(user: User):
    """Courses the user may list, or None when the role sees none"""
    query = select(Course).where(Course.school_id == user.school_id)

    if user.role in (UserRole.ADMIN, UserRole.FACULTY) or user.has_permission(PermissionName.STUDENT_AFFAIRS):
        return query
    if user.role == UserRole.TEACHER:
        return query.where(
            Course.id.in_(select(course_teachers.c.course_id).where(course_teachers.c.teacher_id == user.id))
        )
    if user.role == UserRole.STUDENT:
        return query.where(
            or_(
                Course.id.in_(
                    select(course_students.c.course_id).where(course_students.c.student_id == user.id)
                ),
                Course.section_id.in_(
                    select(section_students.c.section_id).where(section_students.c.student_id == user.id)
                ),
            )
        )
    return None


async def validate_teachers(db: AsyncSession, school_id: str, teacher_ids: List[str]) -> List[User]:
    wanted = list(dict.fromkeys(teacher_ids))
    result = await db.execute(
        select(User).where(
            User.id.in_(wanted),
            User.school_id == school_id,
            User.role == UserRole.TEACHER,
        )
    )
    teachers = list(result.scalars().all())
    if len(teachers) != len(wanted):
        raise ValidationError("One or more teachers are invalid", field="teacher_ids")
    return teachers


async def ensure_unique_course_code(
    db: AsyncSession, school_id: str, code: Optional[str], exclude_id: Optional[str] = None
) -> None:
    if not code:
        return
    query = select(Course.id).where(Course.school_id == school_id, Course.code == code)
    if exclude_id:
        query = query.where(Course.id != exclude_id)
    if (await db.execute(query)).first():
        raise ConflictError("Course code already exists in this school", field="code")


async def find_student(
    db: AsyncSession,
    school_id: str,
    user_number: Optional[int] = None,
    student_id: Optional[str] = None,
) -> User:
    """Look up a student of the school by numeric id or primary key"""
    query = select(User).where(User.school_id == school_id, User.role == UserRole.STUDENT)
    if user_number is not None:
        query = query.where(User.user_number == user_number)
    else:
        query = query.where(User.id == student_id)

    student = (await db.execute(query)).scalar_one_or_none()
    if not student:
        raise ResourceNotFoundError("Student", user_number if user_number is not None else student_id)
    return student
