"""
Domain event publishing.

Services emit events to a room (``group_{id}``) through a publisher. The
publisher is optional: with no transport configured the ``NullEventPublisher``
is used and the services behave the same.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)

GROUP_DOCUMENT_UPDATE = "group_document_update"
GROUP_MEMBER_UPDATE = "group_member_update"


def group_room(group_id: int) -> str:
    return f"group_{group_id}"


class DomainEventPublisher(ABC):

    @abstractmethod
    def publish(self, room: str, event: str, payload: dict) -> None:
        ...


class NullEventPublisher(DomainEventPublisher):

    def publish(self, room: str, event: str, payload: dict) -> None:
        logger.debug("Event %s for %s dropped (no transport)", event, room)


def safe_publish(publisher: Optional[DomainEventPublisher], room: str, event: str, payload: dict) -> None:
    """Fire-and-forget: a failing publisher never affects the caller."""
    if publisher is None:
        return
    try:
        publisher.publish(room, event, payload)
    except Exception:
        logger.exception("Failed to publish %s to %s", event, room)
