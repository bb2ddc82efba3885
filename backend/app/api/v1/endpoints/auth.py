from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.core.database import get_db
from app.core.exceptions import AuthenticationError, AuthorizationError, ConflictError, ValidationError
from app.core.security import verify_password, get_password_hash, create_user_token
from app.core.logging_config import logger, set_user_id, set_school_id
from app.core.rate_limiter import auth_rate_limit, strict_rate_limit
from app.models.base import utcnow
from app.models.school import School, DEFAULT_THEME_COLOR
from app.models.user import User, UserRole
from app.schemas.auth import (
    SignupRequest,
    LoginRequest,
    ProfileUpdate,
    SchoolResponse,
    TokenResponse,
)
from app.schemas.user import UserResponse
from app.modules.auth.dependencies import get_current_user
from app.api.v1.responses import success


router = APIRouter()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def _email_taken(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User.id).where(func.lower(User.email) == email.lower()))
    return result.first() is not None


async def _user_number_taken(db: AsyncSession, user_number: int) -> bool:
    result = await db.execute(select(User.id).where(User.user_number == user_number))
    return result.first() is not None


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@strict_rate_limit()
async def signup(
    request: Request,
    payload: SignupRequest,
    db: AsyncSession = Depends(get_db)
):
    """Create a school and its first admin in one transaction (rate limited: 3/min)"""
    client_ip = _client_ip(request)

    existing_school = await db.execute(
        select(School.id).where(func.lower(School.name) == payload.school_name.lower())
    )
    if existing_school.first():
        logger.log_auth_event(
            event="signup",
            success=False,
            user_email=payload.email,
            reason="School name already exists",
            client_ip=client_ip
        )
        raise ConflictError("School name already exists", field="school_name")

    if await _email_taken(db, payload.email):
        logger.log_auth_event(
            event="signup",
            success=False,
            user_email=payload.email,
            reason="Email already registered",
            client_ip=client_ip
        )
        raise ConflictError("Email already registered", field="email")

    if await _user_number_taken(db, payload.user_number):
        raise ConflictError("User ID already taken", field="user_number")

    school = School(
        name=payload.school_name,
        display_name=payload.display_name or payload.school_name,
        address=payload.school_address,
        phone=payload.phone,
        email=payload.contact_email,
        website=payload.website,
        description=payload.description,
        established_year=payload.established_year,
        theme_color=payload.theme_color or DEFAULT_THEME_COLOR,
    )
    db.add(school)
    await db.flush()

    admin = User(
        user_number=payload.user_number,
        name=payload.name.strip(),
        email=payload.email.lower(),
        hashed_password=get_password_hash(payload.password),
        phone=payload.phone,
        role=UserRole.ADMIN,
        school_id=school.id,
        is_active=True,
        permission_grants=[],
    )
    db.add(admin)
    await db.flush()

    school.created_by_id = admin.id
    await db.commit()

    logger.log_auth_event(
        event="signup",
        success=True,
        user_email=admin.email,
        client_ip=client_ip,
        school=school.name
    )

    return TokenResponse(
        token=create_user_token(admin),
        user=UserResponse.model_validate(admin),
        school=SchoolResponse.model_validate(school),
    )


@router.post("/login", response_model=TokenResponse)
@auth_rate_limit()
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Login with email and password (rate limited: 5/min)"""
    client_ip = _client_ip(request)

    result = await db.execute(
        select(User).where(func.lower(User.email) == credentials.email.lower())
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Invalid credentials",
            client_ip=client_ip
        )
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Account inactive",
            client_ip=client_ip
        )
        raise AuthorizationError("Account is inactive")

    user.last_login = utcnow()
    await db.commit()

    set_user_id(str(user.id))
    set_school_id(str(user.school_id))

    school = await db.get(School, user.school_id)

    logger.log_auth_event(
        event="login",
        success=True,
        user_email=user.email,
        client_ip=client_ip,
        user_role=user.role.value
    )

    return TokenResponse(
        token=create_user_token(user),
        user=UserResponse.model_validate(user),
        school=SchoolResponse.model_validate(school) if school else None,
    )


@router.post("/refresh")
async def refresh_token(current_user: User = Depends(get_current_user)):
    """Issue a fresh token for a still-valid one"""
    return success({"token": create_user_token(current_user)}, "Token refreshed")


@router.get("/validate-token")
async def validate_token(current_user: User = Depends(get_current_user)):
    return {
        "success": True,
        "valid": True,
        "user": UserResponse.model_validate(current_user),
    }


@router.get("/me")
async def get_me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Current user, their school and effective permissions"""
    school = await db.get(School, current_user.school_id)
    return success({
        "user": UserResponse.model_validate(current_user),
        "school": SchoolResponse.model_validate(school) if school else None,
        "permissions": current_user.permissions,
    })


@router.put("/profile")
async def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update own name, email, phone or password"""
    if payload.email and payload.email.lower() != current_user.email.lower():
        if await _email_taken(db, payload.email):
            raise ConflictError("Email already registered", field="email")
        current_user.email = payload.email.lower()

    if payload.name is not None:
        current_user.name = payload.name.strip()
    if payload.phone is not None:
        current_user.phone = payload.phone

    if payload.new_password:
        if not verify_password(payload.current_password, current_user.hashed_password):
            logger.log_auth_event(
                event="password_change",
                success=False,
                user_email=current_user.email,
                reason="Current password is incorrect"
            )
            raise ValidationError("Current password is incorrect", field="current_password")
        current_user.hashed_password = get_password_hash(payload.new_password)
        logger.log_auth_event(event="password_change", success=True, user_email=current_user.email)

    await db.commit()
    return success(UserResponse.model_validate(current_user), "Profile updated successfully")
