import logging
from sqlalchemy.orm import Session
from esign.common.errors import InvalidStatusTransition, NotFound
from esign.documents.models.document import Document, DocumentStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    DocumentStatus.DRAFT: {DocumentStatus.PENDING, DocumentStatus.COMPLETED, DocumentStatus.ARCHIVED},
    DocumentStatus.PENDING: {DocumentStatus.DRAFT, DocumentStatus.COMPLETED, DocumentStatus.ARCHIVED},
    DocumentStatus.COMPLETED: {DocumentStatus.ARCHIVED},
    DocumentStatus.ARCHIVED: set(),
}


class DocumentStateService:

    @staticmethod
    def can_transition(current: DocumentStatus, target: DocumentStatus) -> bool:
        """
        Same-state is always allowed (no-op); everything else must be in the table
        """
        return current == target or target in ALLOWED_TRANSITIONS[current]

    @staticmethod
    def apply_transition(document: Document, target: DocumentStatus) -> bool:
        """
        Moves the in-memory document to ``target``. Returns True when the status
        actually changed. Does not commit.
        """
        current = document.status
        if not DocumentStateService.can_transition(current, target):
            raise InvalidStatusTransition(current, target)
        if current == target:
            return False
        document.status = target
        logger.info("Document %s changed from %s to %s", document.id, current.value, target.value)
        return True

    @staticmethod
    def change_document_status(session: Session, document_id: int, target: DocumentStatus) -> Document:
        document = session.get(Document, document_id)
        if not document:
            raise NotFound("Dokumen tidak ditemukan.")
        DocumentStateService.apply_transition(document, target)
        session.commit()
        return document

    @staticmethod
    def get_allowed_transitions(document: Document) -> list[DocumentStatus]:
        """
        Returns list of states the document can transition to
        """
        return [s for s in DocumentStatus if s in ALLOWED_TRANSITIONS[document.status]]
