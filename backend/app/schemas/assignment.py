"""Assignment, submission and gradebook schemas"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime

from app.models.assessment import AssessmentType
from app.models.base import utcnow
from app.schemas.user import UserBrief


class AssignmentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    max_marks: Optional[float] = Field(None, gt=0)


class AssignmentResponse(BaseModel):
    id: str
    course_id: str
    title: str
    description: Optional[str] = None
    due_date: datetime
    max_marks: float
    file_url: Optional[str] = None
    created_by_id: Optional[str] = None
    created_at: datetime
    is_past_due: bool = False

    @classmethod
    def from_assignment(cls, assignment, now: Optional[datetime] = None) -> "AssignmentResponse":
        return cls(
            id=assignment.id,
            course_id=assignment.course_id,
            title=assignment.title,
            description=assignment.description,
            due_date=assignment.due_date,
            max_marks=assignment.max_marks,
            file_url=assignment.file_url,
            created_by_id=assignment.created_by_id,
            created_at=assignment.created_at,
            is_past_due=assignment.due_date < (now or utcnow()),
        )


class SubmissionResponse(BaseModel):
    id: str
    assignment_id: str
    student_id: str
    student: Optional[UserBrief] = None
    file_url: str
    submitted_at: datetime
    marks_obtained: Optional[float] = None
    feedback: Optional[str] = None
    graded_at: Optional[datetime] = None
    is_graded: bool

    model_config = ConfigDict(from_attributes=True)


class GradeSubmissionRequest(BaseModel):
    marks_obtained: float = Field(..., ge=0)
    feedback: Optional[str] = None


class AssessmentCreate(BaseModel):
    course_id: str
    title: str = Field(..., min_length=1, max_length=255)
    assessment_type: AssessmentType
    total_marks: float = Field(..., gt=0)
    date: Optional[datetime] = None


class AssessmentResponse(BaseModel):
    id: str
    course_id: str
    title: str
    assessment_type: AssessmentType
    total_marks: float
    date: datetime
    created_by_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GradeEntry(BaseModel):
    student_id: str
    marks_obtained: float = Field(..., ge=0)
    remarks: Optional[str] = None


class GradesUpsert(BaseModel):
    grades: List[GradeEntry] = Field(..., min_length=1)


class GradeResponse(BaseModel):
    id: str
    assessment_id: str
    student_id: str
    student: Optional[UserBrief] = None
    marks_obtained: float
    remarks: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
