from .notification_service import NotificationService, NotificationEventPublisher

__all__ = ['NotificationService', 'NotificationEventPublisher']
