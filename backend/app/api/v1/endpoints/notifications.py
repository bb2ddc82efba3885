"""
Notifications API

REST inbox plus a WebSocket for live delivery.

Connection URL: WS /api/notifications/ws?token=<jwt>

Message format (both directions):
{
    "type": "event_type",
    "data": { ... }
}
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db, session_scope
from app.core.exceptions import AuthorizationError, SchoolHubError
from app.core.logging_config import logger
from app.models.base import utcnow
from app.models.notification import (
    NotificationCategory,
    NotificationPriority,
    NotificationStatus,
    RecipientType,
)
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, get_current_admin, get_user_from_token
from app.schemas.notification import NotificationSend, NotificationResponse, TestNotificationRequest
from app.services.notification_service import NotificationService
from app.services.realtime import notification_manager, EventType
from app.api.v1.responses import success

router = APIRouter()


@router.get("/health")
async def notifications_health():
    return success({
        "status": "healthy",
        "connected_users": notification_manager.connected_user_count,
        "timestamp": utcnow().isoformat(),
    })


@router.post("/send", status_code=status.HTTP_201_CREATED)
async def send_notification(
    payload: NotificationSend,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Send now, or store for later when scheduled_for is in the future"""
    service = NotificationService(db)
    notification = await service.create(
        school_id=current_user.school_id,
        title=payload.title,
        message=payload.message,
        recipient_type=payload.recipient_type,
        recipient_ids=payload.recipient_ids,
        sender=current_user,
        category=payload.category,
        priority=payload.priority,
        scheduled_for=payload.scheduled_for,
        extra=payload.metadata,
    )
    await db.commit()

    scheduled = notification.status == NotificationStatus.SCHEDULED
    return success(
        NotificationResponse.from_notification(notification),
        "Notification scheduled successfully" if scheduled else "Notification sent successfully",
        recipient_count=len(notification.recipients),
    )


@router.get("/my-notifications")
async def my_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    unread_only: bool = Query(False),
    category: Optional[NotificationCategory] = Query(None),
    priority: Optional[NotificationPriority] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    page_data = await NotificationService(db).list_for_user(
        current_user.id,
        page=page,
        limit=limit,
        unread_only=unread_only,
        category=category,
        priority=priority,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return success(
        [NotificationResponse.from_notification(n, current_user.id) for n in page_data["items"]],
        pagination=page_data["pagination"],
        unread_count=page_data["unread_count"],
    )


@router.get("/stats")
async def notification_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await NotificationService(db).stats(current_user.id))


@router.post("/mark-all-read")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    modified = await NotificationService(db).mark_all_read(current_user.id)
    await db.commit()
    return success(None, f"{modified} notification(s) marked as read", modified_count=modified)


@router.post("/test/send", status_code=status.HTTP_201_CREATED)
async def send_test_notification(
    payload: TestNotificationRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Send a notification to yourself to check live delivery"""
    notification = await NotificationService(db).create(
        school_id=current_user.school_id,
        title=payload.title,
        message=payload.message,
        recipient_type=RecipientType.SPECIFIC_USER,
        recipient_ids=[current_user.id],
        sender=current_user,
        category=payload.category,
        priority=payload.priority,
        extra={"is_test": True},
    )
    await db.commit()

    return success(
        NotificationResponse.from_notification(notification, current_user.id),
        "Test notification sent",
        socket_connected=notification_manager.is_user_connected(current_user.id),
    )


@router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = NotificationService(db)
    notification = await service.get(notification_id, current_user.school_id)
    if notification.recipient_for(current_user.id) is None:
        raise AuthorizationError("You are not a recipient of this notification")
    service.ensure_delivered(notification)

    await service.mark_read(notification, current_user.id)
    await db.commit()

    await notification_manager.send_event(
        current_user.id, EventType.NOTIFICATION_READ, {"notification_id": notification.id}
    )
    return success(NotificationResponse.from_notification(notification, current_user.id), "Notification marked as read")


@router.get("/{notification_id}")
async def get_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Recipients reading a notification also mark it read"""
    service = NotificationService(db)
    notification = await service.get(notification_id, current_user.school_id)

    is_recipient = notification.recipient_for(current_user.id) is not None
    if not current_user.is_admin:
        if not is_recipient:
            raise AuthorizationError("You are not a recipient of this notification")
        service.ensure_delivered(notification)

    if is_recipient and await service.mark_read(notification, current_user.id):
        await db.commit()

    return success(NotificationResponse.from_notification(notification, current_user.id))


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    service = NotificationService(db)
    notification = await service.get(notification_id, current_user.school_id)
    await service.delete(notification)
    await db.commit()

    logger.info(f"[Notification] Deleted {notification_id}")
    return success(None, "Notification deleted successfully")


async def _handle_socket_event(user: User, event_type: str, data: dict) -> None:
    if event_type == EventType.PING.value:
        await notification_manager.send_event(user.id, EventType.PONG, {})

    elif event_type == EventType.REGISTER.value:
        async with session_scope() as db:
            unread = await NotificationService(db).unread_count(user.id)
        await notification_manager.send_event(user.id, EventType.REGISTERED, {
            "user_id": user.id,
            "unread_count": unread,
        })

    elif event_type == EventType.MARK_NOTIFICATION_READ.value:
        notification_id = data.get("notification_id") or data.get("notificationId")
        if not notification_id:
            await notification_manager.send_event(user.id, EventType.ERROR, {"message": "notification_id is required"})
            return
        async with session_scope() as db:
            service = NotificationService(db)
            notification = await service.get(notification_id, user.school_id)
            service.ensure_delivered(notification)
            await service.mark_read(notification, user.id)
        await notification_manager.send_event(
            user.id, EventType.NOTIFICATION_READ, {"notification_id": notification_id}
        )

    else:
        await notification_manager.send_event(
            user.id, EventType.ERROR, {"message": f"Unknown event type: {event_type}"}
        )


@router.websocket("/ws")
async def notifications_websocket(
    websocket: WebSocket,
    token: str = Query("")
):
    """
    Live notification channel.

    Client events: register, markNotificationRead, ping
    Server events: registered, newNotification, notificationRead, pong, error
    """
    try:
        async with session_scope() as db:
            user = await get_user_from_token(token, db)
    except SchoolHubError as e:
        logger.warning(f"[Realtime] Rejected websocket connection: {e.message}")
        await websocket.close(code=4001, reason="Invalid or expired token")
        return

    connection = await notification_manager.connect(websocket, user.id, user.school_id)

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await notification_manager.send_event(user.id, EventType.ERROR, {"message": "Invalid JSON"})
                continue
            if not isinstance(message, dict):
                await notification_manager.send_event(user.id, EventType.ERROR, {"message": "Invalid message format"})
                continue

            try:
                await _handle_socket_event(user, message.get("type", ""), message.get("data") or {})
            except SchoolHubError as e:
                await notification_manager.send_event(user.id, EventType.ERROR, {"message": e.message})

    except WebSocketDisconnect:
        logger.info(f"[Realtime] Socket closed by user {user.id}")
    finally:
        await notification_manager.disconnect(connection)
