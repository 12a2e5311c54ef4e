# esign/notifications/controllers/notification_controller.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from esign.common.dependencies import get_db
from esign.notifications.repositories.notification_repository import NotificationRepository
from esign.notifications.services.notification_service import NotificationService
from esign.notifications.models.schemas import NotificationResponse

router = APIRouter()


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    repo = NotificationRepository(db)
    return NotificationService(repo)


@router.get(
    "/users/{user_id}",
    response_model=List[NotificationResponse],
    summary="Daftar notifikasi pengguna"
)
def list_notifications(
    user_id: int,
    unread_only: bool = False,
    service: NotificationService = Depends(get_notification_service)
):
    return service.get_notifications(user_id, unread_only)


@router.patch(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Tandai notifikasi sudah dibaca"
)
def mark_notification_as_read(
    notification_id: int,
    service: NotificationService = Depends(get_notification_service)
):
    notif = service.mark_as_read(notification_id)
    if not notif:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notifikasi tidak ditemukan"
        )
    return notif
