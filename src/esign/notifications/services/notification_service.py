# esign/notifications/services/notification_service.py
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from esign.common.events import DomainEventPublisher, GROUP_DOCUMENT_UPDATE, GROUP_MEMBER_UPDATE
from esign.groups.models.group import GroupMember
from esign.notifications.models.notification import Notification
from esign.notifications.repositories.notification_repository import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationTemplate:
    def __init__(self, title: str, message: str):
        self.title = title
        self.message = message


class DocumentUpdateNotification(NotificationTemplate):
    def __init__(self, payload: dict):
        action = payload.get("action")
        name = payload.get("title") or f"#{payload.get('document_id')}"
        if action == "finalized":
            title = "Dokumen difinalisasi"
            message = f"Dokumen '{name}' telah difinalisasi dan siap diverifikasi."
        elif action == "new_document":
            title = "Dokumen baru di grup"
            message = f"Dokumen '{name}' telah ditambahkan ke grup."
        else:
            title = "Penanda tangan diperbarui"
            message = f"Daftar penanda tangan dokumen '{name}' telah diperbarui."
        super().__init__(title, message)


class MemberUpdateNotification(NotificationTemplate):
    def __init__(self, payload: dict):
        if payload.get("action") == "kicked":
            title = "Anggota dikeluarkan"
            message = f"Pengguna #{payload.get('user_id')} telah dikeluarkan dari grup."
        else:
            title = "Anggota baru"
            message = f"Pengguna #{payload.get('user_id')} telah bergabung ke grup."
        super().__init__(title, message)


TEMPLATES = {
    GROUP_DOCUMENT_UPDATE: DocumentUpdateNotification,
    GROUP_MEMBER_UPDATE: MemberUpdateNotification,
}


class NotificationService:
    def __init__(self, repository: NotificationRepository):
        self.notification_repository = repository

    def create_group_notifications(
        self,
        group_id: int,
        recipient_ids: List[int],
        event: str,
        payload: dict
    ) -> List[Notification]:
        if event in TEMPLATES:
            rendered = TEMPLATES[event](payload)
        else:
            rendered = NotificationTemplate(event, payload.get("action", event))
        notifications = [
            Notification(
                user_id=user_id,
                group_id=group_id,
                event=event,
                title=rendered.title,
                message=rendered.message,
                payload=payload
            )
            for user_id in recipient_ids
        ]
        return self.notification_repository.save_all(notifications)

    def get_notifications(self, user_id: int, unread_only: bool = False) -> List[Notification]:
        return self.notification_repository.find_by_user_id(user_id, unread_only)

    def mark_as_read(self, notification_id: int) -> Optional[Notification]:
        return self.notification_repository.update(notification_id, {'read': True})


class NotificationEventPublisher(DomainEventPublisher):
    """
    Persists group events as notifications for every member of the group
    the room belongs to, except the actor that caused them.
    """

    def __init__(self, session: Session):
        self.session = session
        self.service = NotificationService(NotificationRepository(session))

    def publish(self, room: str, event: str, payload: dict) -> None:
        if not room.startswith("group_"):
            logger.debug("No notification route for room %s", room)
            return
        group_id = int(room[len("group_"):])
        actor_id = payload.get("actor_id")
        try:
            member_ids = [
                row[0]
                for row in self.session.query(GroupMember.user_id)
                .filter(GroupMember.group_id == group_id)
                .all()
            ]
            # A kicked user is no longer a member but still gets told
            if event == GROUP_MEMBER_UPDATE and payload.get("action") == "kicked":
                member_ids.append(payload.get("user_id"))
            recipients = [uid for uid in member_ids if uid is not None and uid != actor_id]
            if recipients:
                self.service.create_group_notifications(group_id, recipients, event, payload)
        except SQLAlchemyError:
            self.session.rollback()
            raise
