from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.models.quiz import DEFAULT_MIN_SCORE_TO_PASS, DEFAULT_DAYS_BETWEEN_ATTEMPTS
from app.models.base import utcnow
from app.schemas.user import UserBrief


class QuestionIn(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_answer: int = Field(..., ge=0)
    marks: float = Field(default=1, ge=0)

    @model_validator(mode='after')
    def answer_in_options(self):
        if self.correct_answer >= len(self.options):
            raise ValueError("correct_answer must index one of the options")
        return self


class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    questions: List[QuestionIn] = Field(..., min_length=1)
    total_marks: Optional[float] = Field(None, gt=0)
    duration_minutes: Optional[int] = Field(None, ge=1)
    visible_until: datetime
    max_attempts: int = Field(default=1, ge=1)
    allow_retake: bool = False
    min_score_to_pass: float = Field(default=DEFAULT_MIN_SCORE_TO_PASS, ge=0, le=100)
    days_between_attempts: float = Field(default=DEFAULT_DAYS_BETWEEN_ATTEMPTS, ge=0)
    is_published: bool = True


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    questions: Optional[List[QuestionIn]] = Field(None, min_length=1)
    total_marks: Optional[float] = Field(None, gt=0)
    duration_minutes: Optional[int] = Field(None, ge=1)
    visible_until: Optional[datetime] = None
    max_attempts: Optional[int] = Field(None, ge=1)
    allow_retake: Optional[bool] = None
    min_score_to_pass: Optional[float] = Field(None, ge=0, le=100)
    days_between_attempts: Optional[float] = Field(None, ge=0)
    is_published: Optional[bool] = None


class QuizResponse(BaseModel):
    id: str
    course_id: str
    title: str
    description: Optional[str] = None
    quiz_type: str
    questions: List[Dict[str, Any]]
    question_count: int
    total_marks: float
    duration_minutes: Optional[int] = None
    visible_from: datetime
    visible_until: datetime
    max_attempts: int
    allow_retake: bool
    min_score_to_pass: float
    days_between_attempts: float
    is_published: bool
    is_expired: bool
    created_at: datetime

    @classmethod
    def from_quiz(cls, quiz, include_answers: bool = False, now: Optional[datetime] = None) -> "QuizResponse":
        questions = []
        for q in quiz.questions or []:
            item = {"question": q["question"], "options": q["options"], "marks": q.get("marks", 1)}
            if include_answers:
                item["correct_answer"] = q["correct_answer"]
            questions.append(item)

        return cls(
            id=quiz.id,
            course_id=quiz.course_id,
            title=quiz.title,
            description=quiz.description,
            quiz_type=quiz.quiz_type,
            questions=questions,
            question_count=quiz.question_count,
            total_marks=quiz.total_marks,
            duration_minutes=quiz.duration_minutes,
            visible_from=quiz.visible_from,
            visible_until=quiz.visible_until,
            max_attempts=quiz.max_attempts,
            allow_retake=quiz.allow_retake,
            min_score_to_pass=quiz.min_score_to_pass,
            days_between_attempts=quiz.days_between_attempts,
            is_published=quiz.is_published,
            is_expired=quiz.is_expired(now or utcnow()),
            created_at=quiz.created_at,
        )


class QuizSubmitRequest(BaseModel):
    answers: List[Any]


class QuizSubmissionResponse(BaseModel):
    id: str
    quiz_id: str
    student_id: str
    student: Optional[UserBrief] = None
    answers: List[Dict[str, Any]]
    score: float
    percentage: float
    total_marks: float
    attempt_number: int
    correct_count: int
    incorrect_count: int
    submitted_at: datetime

    model_config = ConfigDict(from_attributes=True)
