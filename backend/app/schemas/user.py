from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from typing import Optional, List
from datetime import datetime

from app.core.config import settings
from app.models.user import UserRole, PaymentKind, PaymentStatus


def check_user_number(value: int) -> int:
    if not settings.USER_NUMBER_MIN <= value <= settings.USER_NUMBER_MAX:
        raise ValueError(
            f"User ID must be a number between {settings.USER_NUMBER_MIN} and {settings.USER_NUMBER_MAX}"
        )
    return value


class UserBrief(BaseModel):
    id: str
    user_number: int
    name: str
    email: str
    role: UserRole

    model_config = ConfigDict(from_attributes=True)


class UserResponse(BaseModel):
    id: str
    user_number: int
    name: str
    email: str
    role: UserRole
    school_id: str
    phone: Optional[str] = None
    designation: Optional[str] = None
    fee_amount: float = 0.0
    salary_amount: float = 0.0
    is_active: bool
    permissions: List[str] = []
    created_at: datetime
    last_login: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6)
    user_number: int
    role: UserRole = UserRole.STUDENT
    phone: Optional[str] = Field(None, max_length=20)
    designation: Optional[str] = Field(None, max_length=100)
    fee_amount: float = Field(default=0.0, ge=0)
    salary_amount: float = Field(default=0.0, ge=0)
    section_id: Optional[str] = None  # students only: place on a roster right away

    @field_validator("user_number")
    @classmethod
    def validate_user_number(cls, v: int) -> int:
        return check_user_number(v)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    designation: Optional[str] = Field(None, max_length=100)
    fee_amount: Optional[float] = Field(None, ge=0)
    salary_amount: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6)


class PaymentCreate(BaseModel):
    amount: float = Field(..., gt=0)
    status: PaymentStatus = PaymentStatus.PAID
    note: Optional[str] = None


class PaymentResponse(BaseModel):
    id: str
    kind: PaymentKind
    amount: float
    status: PaymentStatus
    note: Optional[str] = None
    recorded_at: datetime
    paid_by_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DueDateConfigUpdate(BaseModel):
    day_of_month: int


class DueDateConfigResponse(BaseModel):
    id: str
    day_of_month: int
    last_applied: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
