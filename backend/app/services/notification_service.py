"""
Notification Service

Resolves who a notification is for, stores one receipt row per
recipient and pushes the message to whoever is online. Scheduled
notifications are stored now and released by dispatch_due_notifications.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.base import utcnow, as_naive_utc
from app.models.course import Course
from app.models.notification import (
    Notification,
    NotificationCategory,
    NotificationPriority,
    NotificationRecipient,
    NotificationStatus,
    RecipientType,
)
from app.models.section import Section
from app.models.user import User, UserRole, STAFF_ROLES
from app.services.realtime import NotificationConnectionManager, notification_manager
from app.utils.pagination import paginate


ROLE_RECIPIENTS = {
    RecipientType.ALL_TEACHERS: (UserRole.TEACHER,),
    RecipientType.ALL_STUDENTS: (UserRole.STUDENT,),
    RecipientType.ALL_EMPLOYEES: STAFF_ROLES,
}


def notification_payload(notification: Notification) -> Dict[str, Any]:
    """Shape pushed over the websocket"""
    sender = notification.sender
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "category": notification.category.value,
        "priority": notification.priority.value,
        "recipient_type": notification.recipient_type.value,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
        "sender": {"id": sender.id, "name": sender.name, "role": sender.role.value} if sender else None,
    }


class NotificationService:
    """Notification storage and delivery for one request or job"""

    def __init__(self, db: AsyncSession, manager: Optional[NotificationConnectionManager] = None):
        self.db = db
        self.manager = manager or notification_manager

    async def resolve_recipients(
        self,
        school_id: str,
        recipient_type: RecipientType,
        recipient_ids: List[str],
    ) -> Tuple[List[str], Dict[str, Any]]:
        """Return (user ids, recipient_details) for a recipient type within one school"""
        details: Dict[str, Any] = {}

        if recipient_type in ROLE_RECIPIENTS:
            result = await self.db.execute(
                select(User.id).where(
                    User.school_id == school_id,
                    User.role.in_(ROLE_RECIPIENTS[recipient_type]),
                    User.is_active == True,  # noqa: E712
                )
            )
            return list(result.scalars().all()), details

        if recipient_type == RecipientType.COURSE_STUDENTS:
            if not recipient_ids:
                raise ValidationError("Course ID is required", field="recipient_ids")
            course = await self.db.get(Course, recipient_ids[0])
            if not course or course.school_id != school_id:
                raise ResourceNotFoundError("Course", recipient_ids[0])
            details = {"course_id": course.id, "course_name": course.name}
            return [s.id for s in course.all_students()], details

        if recipient_type == RecipientType.CLASS_STUDENTS:
            if not recipient_ids:
                raise ValidationError("Class ID is required", field="recipient_ids")
            section = await self.db.get(Section, recipient_ids[0])
            if not section or section.school_id != school_id:
                raise ResourceNotFoundError("Class", recipient_ids[0])
            details = {"section_id": section.id, "section_name": section.name}
            return [s.id for s in section.students], details

        if recipient_type in (RecipientType.SPECIFIC_USER, RecipientType.SYSTEM):
            if not recipient_ids:
                raise ValidationError("User ID is required", field="recipient_ids")
            wanted = list(dict.fromkeys(recipient_ids))
            result = await self.db.execute(
                select(User).where(User.id.in_(wanted), User.school_id == school_id)
            )
            users = list(result.scalars().all())
            if len(users) != len(wanted):
                raise ResourceNotFoundError("User")
            details = {
                "user_ids": wanted,
                "users": [{"id": u.id, "name": u.name, "role": u.role.value} for u in users],
            }
            return wanted, details

        raise ValidationError("Invalid recipient type", field="recipient_type")

    async def create(
        self,
        school_id: str,
        title: str,
        message: str,
        recipient_type: RecipientType,
        recipient_ids: Optional[List[str]] = None,
        sender: Optional[User] = None,
        category: NotificationCategory = NotificationCategory.INFO,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        scheduled_for: Optional[datetime] = None,
        extra: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Notification:
        """
        Store a notification and deliver it unless it is scheduled for later.

        Raises ValidationError when the recipient set resolves to nobody.
        """
        now = now or utcnow()
        users, details = await self.resolve_recipients(school_id, recipient_type, recipient_ids or [])
        if not users:
            raise ValidationError("No recipients found for the specified criteria")

        scheduled_for = as_naive_utc(scheduled_for)
        is_scheduled = scheduled_for is not None and scheduled_for > now

        metadata = dict(extra or {})
        metadata["recipient_count"] = len(users)
        if sender is not None:
            metadata["sender_info"] = {"id": sender.id, "name": sender.name, "role": sender.role.value}

        notification = Notification(
            school_id=school_id,
            sender=sender,
            title=title.strip(),
            message=message.strip(),
            category=category,
            priority=priority,
            recipient_type=recipient_type,
            recipient_details=details,
            status=NotificationStatus.SCHEDULED if is_scheduled else NotificationStatus.SENT,
            scheduled_for=scheduled_for if is_scheduled else None,
            sent_at=None if is_scheduled else now,
            extra=metadata,
            recipients=[NotificationRecipient(user_id=uid) for uid in users],
        )
        self.db.add(notification)
        await self.db.flush()

        logger.info(
            f"[Notification] '{notification.title}' {notification.status.value} "
            f"for {len(users)} recipient(s) ({recipient_type.value})"
        )

        if not is_scheduled:
            await self.deliver(notification, now)

        return notification

    async def deliver(self, notification: Notification, now: Optional[datetime] = None) -> int:
        """Push to connected recipients and mark the notification sent"""
        now = now or utcnow()
        recipient_ids = notification.recipient_ids

        try:
            delivered = await self.manager.send_to_users(recipient_ids, notification_payload(notification))
        except Exception as e:
            logger.error(f"[Notification] Delivery failed for {notification.id}: {e}", exc_info=True)
            notification.status = NotificationStatus.FAILED
            notification.failure_reason = str(e)
            await self.db.flush()
            return 0

        notification.status = NotificationStatus.SENT
        notification.sent_at = notification.sent_at or now
        notification.delivered_count = delivered
        notification.extra = {
            **(notification.extra or {}),
            "socket_delivery": {
                "delivered": delivered,
                "total": len(recipient_ids),
                "delivered_at": now.isoformat(),
            },
        }
        await self.db.flush()
        return delivered

    async def notify_users(
        self,
        school_id: str,
        user_ids: List[str],
        title: str,
        message: str,
        category: NotificationCategory,
        sender: Optional[User] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Optional[Notification]:
        """System notification to an explicit user list; no-op when the list is empty"""
        if not user_ids:
            return None
        return await self.create(
            school_id=school_id,
            title=title,
            message=message,
            recipient_type=RecipientType.SYSTEM,
            recipient_ids=user_ids,
            sender=sender,
            category=category,
            extra=extra,
        )

    async def notify_assignment_created(self, assignment, course: Course, sender: User) -> Optional[Notification]:
        return await self.notify_users(
            school_id=course.school_id,
            user_ids=[s.id for s in course.all_students()],
            title=f"New assignment: {assignment.title}",
            message=f"A new assignment was posted in {course.name}. Due {assignment.due_date:%Y-%m-%d %H:%M} UTC.",
            category=NotificationCategory.ASSIGNMENT,
            sender=sender,
            extra={"assignment_id": assignment.id, "course_id": course.id},
        )

    async def notify_submission_graded(self, submission, assignment, sender: User) -> Optional[Notification]:
        return await self.notify_users(
            school_id=sender.school_id,
            user_ids=[submission.student_id],
            title=f"Assignment graded: {assignment.title}",
            message=f"You scored {submission.marks_obtained:g}/{assignment.max_marks:g}.",
            category=NotificationCategory.GRADE,
            sender=sender,
            extra={"assignment_id": assignment.id, "submission_id": submission.id},
        )

    async def notify_quiz_published(self, quiz, course: Course, sender: User) -> Optional[Notification]:
        return await self.notify_users(
            school_id=course.school_id,
            user_ids=[s.id for s in course.all_students()],
            title=f"New quiz: {quiz.title}",
            message=f"A quiz is open in {course.name} until {quiz.visible_until:%Y-%m-%d %H:%M} UTC.",
            category=NotificationCategory.QUIZ,
            sender=sender,
            extra={"quiz_id": quiz.id, "course_id": course.id},
        )

    # ==================== Reading ====================

    def _inbox_query(self, user_id: str):
        return (
            select(Notification)
            .join(NotificationRecipient, NotificationRecipient.notification_id == Notification.id)
            .where(
                NotificationRecipient.user_id == user_id,
                Notification.status == NotificationStatus.SENT,
            )
        )

    async def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
        category: Optional[NotificationCategory] = None,
        priority: Optional[NotificationPriority] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        query = self._inbox_query(user_id)

        if unread_only:
            query = query.where(NotificationRecipient.read_at.is_(None))
        if category:
            query = query.where(Notification.category == category)
        if priority:
            query = query.where(Notification.priority == priority)
        if start_date:
            query = query.where(Notification.created_at >= as_naive_utc(start_date))
        if end_date:
            query = query.where(Notification.created_at <= as_naive_utc(end_date))
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Notification.title.ilike(pattern), Notification.message.ilike(pattern)))

        query = query.order_by(Notification.created_at.desc())
        page_data = await paginate(self.db, query, page, limit)
        page_data["unread_count"] = await self.unread_count(user_id)
        return page_data

    async def unread_count(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(NotificationRecipient.id))
            .join(Notification, Notification.id == NotificationRecipient.notification_id)
            .where(
                NotificationRecipient.user_id == user_id,
                NotificationRecipient.read_at.is_(None),
                Notification.status == NotificationStatus.SENT,
            )
        )
        return result.scalar() or 0

    async def get(self, notification_id: str, school_id: str) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if not notification or notification.school_id != school_id:
            raise ResourceNotFoundError("Notification", notification_id)
        return notification

    @staticmethod
    def ensure_delivered(notification: Notification) -> None:
        """Scheduled, draft and failed notifications are invisible to recipients"""
        if notification.status != NotificationStatus.SENT:
            raise ResourceNotFoundError("Notification", notification.id)

    async def mark_read(self, notification: Notification, user_id: str, now: Optional[datetime] = None) -> bool:
        """Set the read receipt; False when it was already read"""
        receipt = notification.recipient_for(user_id)
        if receipt is None or receipt.read_at is not None:
            return False
        receipt.read_at = now or utcnow()
        await self.db.flush()
        return True

    async def mark_all_read(self, user_id: str, now: Optional[datetime] = None) -> int:
        sent_ids = select(Notification.id).where(Notification.status == NotificationStatus.SENT)
        result = await self.db.execute(
            update(NotificationRecipient)
            .where(
                NotificationRecipient.user_id == user_id,
                NotificationRecipient.read_at.is_(None),
                NotificationRecipient.notification_id.in_(sent_ids),
            )
            .values(read_at=now or utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def stats(self, user_id: str) -> Dict[str, Any]:
        base = self._inbox_query(user_id).subquery()

        total = (await self.db.execute(select(func.count()).select_from(base))).scalar() or 0
        unread = await self.unread_count(user_id)

        by_category = await self.db.execute(
            select(base.c.category, func.count()).group_by(base.c.category)
        )
        by_priority = await self.db.execute(
            select(base.c.priority, func.count()).group_by(base.c.priority)
        )

        return {
            "total": total,
            "unread": unread,
            "read": total - unread,
            "by_category": {_enum_value(k): v for k, v in by_category.all()},
            "by_priority": {_enum_value(k): v for k, v in by_priority.all()},
        }

    async def delete(self, notification: Notification) -> None:
        await self.db.delete(notification)
        await self.db.flush()


def _enum_value(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


async def dispatch_due_notifications(
    db: AsyncSession,
    now: Optional[datetime] = None,
    manager: Optional[NotificationConnectionManager] = None,
) -> int:
    """Release scheduled notifications whose time has come. Returns how many were sent."""
    now = now or utcnow()
    result = await db.execute(
        select(Notification).where(
            Notification.status == NotificationStatus.SCHEDULED,
            Notification.scheduled_for <= now,
        )
    )
    due = list(result.scalars().all())

    service = NotificationService(db, manager)
    for notification in due:
        notification.sent_at = now
        await service.deliver(notification, now)
        logger.info(f"[Notification] Sent scheduled notification '{notification.title}'")

    return len(due)
