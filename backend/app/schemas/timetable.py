"""Timetable and attendance schemas"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import date, datetime

from app.models.attendance import AttendanceStatus, MAX_NOTES_LENGTH
from app.models.timetable import MAX_DAYS, MAX_PERIODS_PER_DAY
from app.schemas.user import UserBrief


class TimetableCreate(BaseModel):
    section_id: str
    days: int = Field(default=5, ge=1, le=MAX_DAYS)
    periods_per_day: int = Field(default=6, ge=1, le=MAX_PERIODS_PER_DAY)


class TimetableStructureUpdate(BaseModel):
    days: int = Field(..., ge=1, le=MAX_DAYS)
    periods_per_day: int = Field(..., ge=1, le=MAX_PERIODS_PER_DAY)


class SlotAssign(BaseModel):
    day_index: int = Field(..., ge=0)
    period_index: int = Field(..., ge=0)
    course_id: str
    teacher_id: str


class SlotResponse(BaseModel):
    day_index: int
    period_index: int
    course_id: str
    course_name: Optional[str] = None
    teacher: Optional[UserBrief] = None


class TimetableResponse(BaseModel):
    id: str
    section_id: str
    section_name: Optional[str] = None
    section_code: Optional[str] = None
    days: int
    periods_per_day: int
    slots: List[SlotResponse] = []
    created_at: datetime

    @classmethod
    def from_timetable(cls, timetable) -> "TimetableResponse":
        section = timetable.section
        return cls(
            id=timetable.id,
            section_id=timetable.section_id,
            section_name=section.name if section else None,
            section_code=section.section_code if section else None,
            days=timetable.days,
            periods_per_day=timetable.periods_per_day,
            slots=[
                SlotResponse(
                    day_index=slot.day_index,
                    period_index=slot.period_index,
                    course_id=slot.course_id,
                    course_name=slot.course.name if slot.course else None,
                    teacher=UserBrief.model_validate(slot.teacher) if slot.teacher else None,
                )
                for slot in timetable.slots
            ],
            created_at=timetable.created_at,
        )


class AttendanceEntry(BaseModel):
    student_id: str
    status: AttendanceStatus
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)


class AttendanceMark(BaseModel):
    section_id: str
    date: date
    records: List[AttendanceEntry] = Field(..., min_length=1)


class AttendanceResponse(BaseModel):
    id: str
    student_id: str
    student: Optional[UserBrief] = None
    section_id: str
    date: date
    status: AttendanceStatus
    notes: Optional[str] = None
    recorded_by_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
