from sqlalchemy import Column, String, Date, Enum as SQLEnum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.models.base import GUID, generate_uuid, TimestampMixin


MAX_NOTES_LENGTH = 200


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class AttendanceRecord(Base, TimestampMixin):
    """One student on one day. Marking again overwrites the record."""
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("student_id", "date", name="uq_attendance_student_date"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    section_id = Column(GUID, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    status = Column(SQLEnum(AttendanceStatus), nullable=False)
    recorded_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes = Column(String(MAX_NOTES_LENGTH), nullable=True)

    student = relationship("User", foreign_keys=[student_id], lazy="selectin")
