"""Section and course schemas"""
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Optional, List
from datetime import datetime

from app.models.base import as_naive_utc
from app.models.section import DEFAULT_SECTION_CAPACITY, MAX_SECTION_CAPACITY, SessionStatus
from app.schemas.user import UserBrief


class SectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    section_code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    teacher_id: str
    capacity: int = Field(default=DEFAULT_SECTION_CAPACITY, ge=1, le=MAX_SECTION_CAPACITY)
    session_start_date: datetime
    session_end_date: datetime

    @field_validator("section_code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("session_start_date", "session_end_date")
    @classmethod
    def to_naive_utc(cls, v: datetime) -> datetime:
        return as_naive_utc(v)

    @model_validator(mode='after')
    def check_window(self):
        if self.session_start_date >= self.session_end_date:
            raise ValueError("Session end date must be after start date")
        return self


class SectionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    section_code: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    teacher_id: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1, le=MAX_SECTION_CAPACITY)
    session_start_date: Optional[datetime] = None
    session_end_date: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("section_code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v


class SectionResponse(BaseModel):
    id: str
    name: str
    section_code: str
    description: Optional[str] = None
    school_id: str
    teacher: Optional[UserBrief] = None
    capacity: int
    student_count: int
    available_seats: int
    session_start_date: datetime
    session_end_date: datetime
    session_status: SessionStatus
    is_active: bool
    students: Optional[List[UserBrief]] = None
    created_at: datetime

    @classmethod
    def from_section(cls, section, include_students: bool = False) -> "SectionResponse":
        return cls(
            id=section.id,
            name=section.name,
            section_code=section.section_code,
            description=section.description,
            school_id=section.school_id,
            teacher=UserBrief.model_validate(section.teacher) if section.teacher else None,
            capacity=section.capacity,
            student_count=section.student_count,
            available_seats=section.available_seats,
            session_start_date=section.session_start_date,
            session_end_date=section.session_end_date,
            session_status=section.session_status(),
            is_active=section.is_active,
            students=[UserBrief.model_validate(s) for s in section.students] if include_students else None,
            created_at=section.created_at,
        )


class AddStudentsRequest(BaseModel):
    student_numbers: List[int] = Field(..., min_length=1)


class CourseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    code: Optional[str] = Field(None, max_length=50)
    section_id: str
    teacher_ids: List[str] = Field(..., min_length=1)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        v = v.strip().upper() if v else None
        return v or None


class CourseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    code: Optional[str] = Field(None, max_length=50)
    section_id: Optional[str] = None
    teacher_ids: Optional[List[str]] = Field(None, min_length=1)
    is_active: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        v = v.strip().upper() if v else None
        return v or None


class CourseResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    code: Optional[str] = None
    section_id: str
    school_id: str
    teachers: List[UserBrief] = []
    student_count: int = 0
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_course(cls, course) -> "CourseResponse":
        return cls(
            id=course.id,
            name=course.name,
            description=course.description,
            code=course.code,
            section_id=course.section_id,
            school_id=course.school_id,
            teachers=[UserBrief.model_validate(t) for t in course.teachers],
            student_count=len(course.all_students()),
            is_active=course.is_active,
            created_at=course.created_at,
        )


class EnrollRequest(BaseModel):
    """Enroll by numeric user id or by primary key"""
    user_number: Optional[int] = None
    student_id: Optional[str] = None

    @model_validator(mode='after')
    def one_of(self):
        if self.user_number is None and not self.student_id:
            raise ValueError("Either user_number or student_id is required")
        return self
