from typing import Optional
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from database import SessionLocal
from esign.common.audit import AuditLogger, LoggingAuditLogger
from esign.common.events import DomainEventPublisher
from esign.common.storage import FileStorage, LocalFileStorage
from esign.notifications.services.notification_service import NotificationEventPublisher
from settings import settings


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_storage() -> FileStorage:
    return LocalFileStorage(settings.upload_dir, settings.public_file_base_url)


def get_publisher(db: Session = Depends(get_db)) -> DomainEventPublisher:
    return NotificationEventPublisher(db)


def get_audit() -> AuditLogger:
    return LoggingAuditLogger()


def request_context(request: Request) -> dict:
    client_ip: Optional[str] = request.headers.get("x-forwarded-for")
    if client_ip:
        client_ip = client_ip.split(",")[0].strip()
    elif request.client:
        client_ip = request.client.host
    return {"ip_address": client_ip, "user_agent": request.headers.get("user-agent")}
