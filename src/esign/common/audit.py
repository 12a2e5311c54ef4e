"""
Best-effort audit trail.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("esign.audit")


class AuditLogger(ABC):

    @abstractmethod
    def log(
        self,
        action: str,
        actor_id: int,
        subject_id: int,
        description: str,
        request_context: Optional[dict] = None,
    ) -> None:
        ...


class LoggingAuditLogger(AuditLogger):

    def log(self, action, actor_id, subject_id, description, request_context=None):
        context = request_context or {}
        audit_logger.info(
            "%s actor=%s subject=%s ip=%s ua=%s :: %s",
            action,
            actor_id,
            subject_id,
            context.get("ip_address"),
            context.get("user_agent"),
            description,
        )


def safe_audit(
    audit: Optional[AuditLogger],
    action: str,
    actor_id: int,
    subject_id: int,
    description: str,
    request_context: Optional[dict] = None,
) -> None:
    if audit is None:
        return
    try:
        audit.log(action, actor_id, subject_id, description, request_context)
    except Exception:
        logger.exception("Audit log failed for %s on %s", action, subject_id)
