from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator, model_validator
from typing import Optional
from datetime import datetime

from app.schemas.user import UserResponse, check_user_number


class SignupRequest(BaseModel):
    """New school plus its founding admin"""
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6)
    user_number: int

    school_name: str = Field(..., min_length=1, max_length=100)
    contact_email: EmailStr
    school_address: str = Field(..., min_length=1)
    display_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    established_year: Optional[int] = Field(None, ge=1800, le=2100)
    theme_color: Optional[str] = Field(None, pattern=r'^#[0-9a-fA-F]{6}$')

    @field_validator("user_number")
    @classmethod
    def validate_user_number(cls, v: int) -> int:
        return check_user_number(v)

    @field_validator("school_name")
    @classmethod
    def strip_school_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("School name is required")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    current_password: Optional[str] = None
    new_password: Optional[str] = Field(None, min_length=6)

    @model_validator(mode='after')
    def require_current_password(self):
        """Changing the password needs the old one"""
        if self.new_password and not self.current_password:
            raise ValueError("Current password is required to set a new password")
        return self


class SchoolResponse(BaseModel):
    id: str
    name: str
    display_name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    theme_color: str
    description: Optional[str] = None
    established_year: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SchoolUpdate(BaseModel):
    display_name: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    website: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    established_year: Optional[int] = Field(None, ge=1800, le=2100)
    theme_color: Optional[str] = Field(None, pattern=r'^#[0-9a-fA-F]{6}$')


class TokenResponse(BaseModel):
    success: bool = True
    token: str
    token_type: str = "bearer"
    user: UserResponse
    school: Optional[SchoolResponse] = None

    model_config = ConfigDict(from_attributes=True)
