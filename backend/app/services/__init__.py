from app.services.storage_service import StorageService, storage_service
from app.services.realtime import NotificationConnectionManager, notification_manager
from app.services.notification_service import NotificationService

__all__ = [
    # Core services
    "StorageService",
    "storage_service",
    # Notifications
    "NotificationConnectionManager",
    "notification_manager",
    "NotificationService",
]
