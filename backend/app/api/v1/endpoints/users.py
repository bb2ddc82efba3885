"""
Users Management API

Admins (and faculty holding student_affairs) manage the people of their
school:
- Pagination (page, page_size)
- Search (by name, email)
- Filtering (by role)
- Fee and salary history through the accounts office
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, or_, func
from typing import Optional

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthorizationError, ConflictError, ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.core.security import get_password_hash
from app.models.course import course_students, course_teachers
from app.models.section import section_students
from app.models.user import User, UserRole, PaymentKind, PaymentRecord, PermissionName
from app.modules.auth.dependencies import (
    get_current_user,
    get_current_admin,
    require_student_affairs,
    require_accounts_office,
)
from app.schemas.user import UserCreate, UserUpdate, UserResponse, PaymentCreate, PaymentResponse
from app.services.payment_service import record_payment, payment_history
from app.services.section_service import get_section, place_student
from app.utils.pagination import paginate
from app.api.v1.responses import success

router = APIRouter()


def _limited_to_students(user: User) -> bool:
    return user.role != UserRole.ADMIN


async def _get_school_user(db: AsyncSession, user_id: str, current_user: User) -> User:
    user = await db.get(User, user_id)
    if not user or user.school_id != current_user.school_id:
        raise ResourceNotFoundError("User", user_id)
    if _limited_to_students(current_user) and user.role != UserRole.STUDENT:
        raise AuthorizationError("Faculty can only manage student accounts")
    return user


async def _ensure_unique(db: AsyncSession, email: Optional[str] = None, user_number: Optional[int] = None,
                         exclude_id: Optional[str] = None) -> None:
    if email:
        query = select(User.id).where(func.lower(User.email) == email.lower())
        if exclude_id:
            query = query.where(User.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError("Email already exists", field="email")
    if user_number is not None:
        query = select(User.id).where(User.user_number == user_number)
        if exclude_id:
            query = query.where(User.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError("User ID already exists", field="user_number")


# ==================== Endpoints ====================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    current_user: User = Depends(require_student_affairs),
    db: AsyncSession = Depends(get_db)
):
    """Create a user in the caller's school, optionally placing a student in a section"""
    if _limited_to_students(current_user) and payload.role != UserRole.STUDENT:
        raise AuthorizationError("Faculty can only create student accounts")

    await _ensure_unique(db, email=payload.email, user_number=payload.user_number)

    section = None
    if payload.section_id:
        if payload.role != UserRole.STUDENT:
            raise ValidationError("Only students can be placed in a section", field="section_id")
        section = await get_section(db, payload.section_id, current_user.school_id)

    user = User(
        user_number=payload.user_number,
        name=payload.name.strip(),
        email=payload.email.lower(),
        hashed_password=get_password_hash(payload.password),
        phone=payload.phone,
        designation=payload.designation,
        role=payload.role,
        fee_amount=payload.fee_amount if payload.role == UserRole.STUDENT else 0.0,
        salary_amount=payload.salary_amount if payload.role != UserRole.STUDENT else 0.0,
        school_id=current_user.school_id,
        created_by_id=current_user.id,
        is_active=True,
        permission_grants=[],
    )
    db.add(user)

    if section is not None:
        place_student(section, user)

    await db.commit()

    logger.info(f"[Users] {current_user.user_number} created {user.role.value} {user.user_number}")
    return success(UserResponse.model_validate(user), "User created successfully")


@router.get("")
async def list_users(
    role: Optional[UserRole] = Query(None),
    search: Optional[str] = Query(None, description="Match name or email"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: User = Depends(require_student_affairs),
    db: AsyncSession = Depends(get_db)
):
    query = select(User).where(User.school_id == current_user.school_id)

    if _limited_to_students(current_user):
        query = query.where(User.role == UserRole.STUDENT)
    elif role:
        query = query.where(User.role == role)

    if search:
        pattern = f"%{search}%"
        query = query.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    page_data = await paginate(db, query.order_by(User.user_number.asc()), page, page_size)
    return success(
        [UserResponse.model_validate(u) for u in page_data["items"]],
        pagination=page_data["pagination"],
    )


@router.get("/by-number/{user_number}")
async def get_user_by_number(
    user_number: int,
    current_user: User = Depends(require_student_affairs),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(User).where(User.user_number == user_number, User.school_id == current_user.school_id)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise ResourceNotFoundError("User", user_number)
    if _limited_to_students(current_user) and user.role != UserRole.STUDENT:
        raise AuthorizationError("Faculty can only manage student accounts")
    return success(UserResponse.model_validate(user))


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    current_user: User = Depends(require_student_affairs),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_school_user(db, user_id, current_user)
    return success(UserResponse.model_validate(user))


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    payload: UserUpdate,
    current_user: User = Depends(require_student_affairs),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_school_user(db, user_id, current_user)
    updates = payload.model_dump(exclude_unset=True)

    if updates.get("email"):
        await _ensure_unique(db, email=updates["email"], exclude_id=user.id)
        updates["email"] = updates["email"].lower()

    password = updates.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)

    if user.id == current_user.id and updates.get("is_active") is False:
        raise ValidationError("You cannot deactivate your own account")

    for field, value in updates.items():
        if value is not None:
            setattr(user, field, value)

    await db.commit()
    return success(UserResponse.model_validate(user), "User updated successfully")


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_school_user(db, user_id, current_user)
    if user.id == current_user.id:
        raise ValidationError("You cannot delete your own account")

    await db.execute(delete(PaymentRecord).where(PaymentRecord.user_id == user.id))
    await db.execute(delete(section_students).where(section_students.c.student_id == user.id))
    await db.execute(delete(course_students).where(course_students.c.student_id == user.id))
    await db.execute(delete(course_teachers).where(course_teachers.c.teacher_id == user.id))
    await db.delete(user)
    await db.commit()

    logger.info(f"[Users] {current_user.user_number} deleted user {user.user_number}")
    return success(None, "User deleted successfully")


# ==================== Payments ====================

async def _get_payee(db: AsyncSession, user_id: str, current_user: User) -> User:
    user = await db.get(User, user_id)
    if not user or user.school_id != current_user.school_id:
        raise ResourceNotFoundError("User", user_id)
    return user


@router.post("/{user_id}/fees", status_code=status.HTTP_201_CREATED)
async def record_fee(
    user_id: str,
    payload: PaymentCreate,
    current_user: User = Depends(require_accounts_office),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_payee(db, user_id, current_user)
    record = await record_payment(
        db, user, PaymentKind.FEE, payload.amount, payload.status, payload.note, paid_by=current_user
    )
    await db.commit()
    return success(PaymentResponse.model_validate(record), "Fee recorded successfully")


@router.post("/{user_id}/salary", status_code=status.HTTP_201_CREATED)
async def record_salary(
    user_id: str,
    payload: PaymentCreate,
    current_user: User = Depends(require_accounts_office),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_payee(db, user_id, current_user)
    record = await record_payment(
        db, user, PaymentKind.SALARY, payload.amount, payload.status, payload.note, paid_by=current_user
    )
    await db.commit()
    return success(PaymentResponse.model_validate(record), "Salary recorded successfully")


@router.get("/{user_id}/payments")
async def list_payments(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Payment history; visible to the user themself, admins and the accounts office"""
    allowed = (
        current_user.id == user_id
        or current_user.role == UserRole.ADMIN
        or current_user.has_permission(PermissionName.ACCOUNTS_OFFICE)
    )
    if not allowed:
        raise AuthorizationError("Access denied")

    user = await _get_payee(db, user_id, current_user)
    records = await payment_history(db, user.id)
    return success([PaymentResponse.model_validate(r) for r in records])
