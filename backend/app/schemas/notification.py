from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.models.notification import (
    NotificationCategory,
    NotificationPriority,
    NotificationStatus,
    RecipientType,
)
from app.schemas.user import UserBrief


class NotificationSend(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    category: NotificationCategory = NotificationCategory.INFO
    priority: NotificationPriority = NotificationPriority.MEDIUM
    recipient_type: RecipientType
    recipient_ids: List[str] = []
    scheduled_for: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("recipient_type")
    @classmethod
    def not_system(cls, v: RecipientType) -> RecipientType:
        if v == RecipientType.SYSTEM:
            raise ValueError("System notifications cannot be sent manually")
        return v


class TestNotificationRequest(BaseModel):
    title: str = "Test notification"
    message: str = "This is a test notification"
    category: NotificationCategory = NotificationCategory.INFO
    priority: NotificationPriority = NotificationPriority.LOW


class NotificationResponse(BaseModel):
    id: str
    title: str
    message: str
    category: NotificationCategory
    priority: NotificationPriority
    recipient_type: RecipientType
    status: NotificationStatus
    sender: Optional[UserBrief] = None
    scheduled_for: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    delivered_count: int = 0
    metadata: Optional[Dict[str, Any]] = None
    is_read: Optional[bool] = None
    read_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_notification(cls, notification, user_id: Optional[str] = None) -> "NotificationResponse":
        receipt = notification.recipient_for(user_id) if user_id else None
        return cls(
            id=notification.id,
            title=notification.title,
            message=notification.message,
            category=notification.category,
            priority=notification.priority,
            recipient_type=notification.recipient_type,
            status=notification.status,
            sender=UserBrief.model_validate(notification.sender) if notification.sender else None,
            scheduled_for=notification.scheduled_for,
            sent_at=notification.sent_at,
            delivered_count=notification.delivered_count,
            metadata=notification.extra,
            is_read=receipt.is_read if receipt else None,
            read_at=receipt.read_at if receipt else None,
            created_at=notification.created_at,
        )
