from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, JSON, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.models.base import GUID, generate_uuid, utcnow, TimestampMixin


class NotificationCategory(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"
    ERROR = "error"
    ANNOUNCEMENT = "announcement"
    REMINDER = "reminder"
    ASSIGNMENT = "assignment"
    GRADE = "grade"
    QUIZ = "quiz"


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(str, enum.Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"


class RecipientType(str, enum.Enum):
    ALL_TEACHERS = "all_teachers"
    ALL_STUDENTS = "all_students"
    ALL_EMPLOYEES = "all_employees"
    COURSE_STUDENTS = "course_students"
    CLASS_STUDENTS = "class_students"
    SPECIFIC_USER = "specific_user"
    SYSTEM = "system"


class Notification(Base, TimestampMixin):
    """A message addressed to a resolved set of users in one school"""
    __tablename__ = "notifications"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    school_id = Column(GUID, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    category = Column(SQLEnum(NotificationCategory), default=NotificationCategory.INFO, nullable=False, index=True)
    priority = Column(SQLEnum(NotificationPriority), default=NotificationPriority.MEDIUM, nullable=False, index=True)

    recipient_type = Column(SQLEnum(RecipientType), nullable=False)
    recipient_details = Column(JSON, nullable=True)

    status = Column(SQLEnum(NotificationStatus), default=NotificationStatus.DRAFT, nullable=False, index=True)
    scheduled_for = Column(DateTime, nullable=True, index=True)
    sent_at = Column(DateTime, nullable=True)
    delivered_count = Column(Integer, default=0, nullable=False)
    failure_reason = Column(Text, nullable=True)

    extra = Column("metadata", JSON, nullable=True)

    sender = relationship("User", foreign_keys=[sender_id], lazy="selectin")
    recipients = relationship(
        "NotificationRecipient",
        back_populates="notification",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def recipient_ids(self):
        return [r.user_id for r in self.recipients]

    @property
    def read_count(self) -> int:
        return sum(1 for r in self.recipients if r.read_at is not None)

    def recipient_for(self, user_id: str):
        for r in self.recipients:
            if r.user_id == user_id:
                return r
        return None

    def __repr__(self):
        return f"<Notification {self.title} ({self.status.value})>"


class NotificationRecipient(Base):
    """Per-user delivery row doubling as the read receipt"""
    __tablename__ = "notification_recipients"
    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_recipient"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    notification_id = Column(GUID, ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    notification = relationship("Notification", back_populates="recipients")

    @property
    def is_read(self) -> bool:
        return self.read_at is not None
