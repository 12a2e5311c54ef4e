"""
Required-signer bookkeeping for group documents.

Each (document, user) pair has one GroupDocumentSigner row. The number of
PENDING rows is what finalization is gated on, and the presence of any row
is what moves a document between draft and pending.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from esign.common.errors import BadRequest, CannotRemoveSignedSigner
from esign.common.events import DomainEventPublisher, GROUP_DOCUMENT_UPDATE, group_room, safe_publish
from esign.documents.models.document import Document, DocumentStatus
from esign.documents.services.document_state_service import DocumentStateService
from esign.groups.models.group import GroupMember
from esign.groups.models.signer import GroupDocumentSigner, SignerStatus

logger = logging.getLogger(__name__)

LOCKED_STATUSES = (DocumentStatus.COMPLETED, DocumentStatus.ARCHIVED)


def _unique(ids: Iterable[int]) -> list[int]:
    seen = []
    for user_id in ids or []:
        if user_id not in seen:
            seen.append(user_id)
    return seen


class SignerTracker:
    def __init__(self, session: Session, publisher: Optional[DomainEventPublisher] = None):
        self.session = session
        self.publisher = publisher

    def assign_signers(self, document: Document, signer_ids: Iterable[int], actor_id: Optional[int] = None,
                       commit: bool = True) -> list[GroupDocumentSigner]:
        """Adds PENDING rows for signers not yet required; status follows the list."""
        self._ensure_editable(document)
        signer_ids = _unique(signer_ids)
        self._ensure_members(document, signer_ids)

        existing = {s.user_id for s in document.signers}
        created = []
        for user_id in signer_ids:
            if user_id in existing:
                continue
            row = GroupDocumentSigner(document_id=document.id, user_id=user_id, status=SignerStatus.PENDING)
            document.signers.append(row)
            created.append(row)

        target = DocumentStatus.PENDING if document.signers else DocumentStatus.DRAFT
        DocumentStateService.apply_transition(document, target)

        # Without commit the caller owns the transaction and announces the change
        if commit:
            self.session.commit()
            self._publish(document, actor_id)
        else:
            self.session.flush()
        return created

    def update_signers(self, document: Document, new_signer_ids: Iterable[int],
                       actor_id: Optional[int] = None) -> dict:
        """
        Replaces the signer list. Removing a signer that already signed is
        refused before anything is changed.
        """
        self._ensure_editable(document)
        new_signer_ids = _unique(new_signer_ids)

        current = {s.user_id: s for s in document.signers}
        to_add = [uid for uid in new_signer_ids if uid not in current]
        to_remove = [uid for uid in current if uid not in new_signer_ids]

        for user_id in to_remove:
            if current[user_id].status == SignerStatus.SIGNED:
                raise CannotRemoveSignedSigner(user_id)
        self._ensure_members(document, to_add)

        for user_id in to_remove:
            row = current[user_id]
            document.signers.remove(row)
            self.session.delete(row)
        for user_id in to_add:
            document.signers.append(
                GroupDocumentSigner(document_id=document.id, user_id=user_id, status=SignerStatus.PENDING)
            )

        remaining = len(document.signers)
        if remaining > 0 and document.status == DocumentStatus.DRAFT:
            DocumentStateService.apply_transition(document, DocumentStatus.PENDING)
        elif remaining == 0 and document.status == DocumentStatus.PENDING:
            DocumentStateService.apply_transition(document, DocumentStatus.DRAFT)

        self.session.commit()
        logger.info(
            "Signers of document %s updated: +%d -%d", document.id, len(to_add), len(to_remove)
        )
        self._publish(document, actor_id)
        return {
            "message": "Daftar penanda tangan diperbarui.",
            "added": len(to_add),
            "removed": len(to_remove),
        }

    def count_pending(self, document_id: int) -> int:
        return (
            self.session.query(func.count(GroupDocumentSigner.id))
            .filter(
                GroupDocumentSigner.document_id == document_id,
                GroupDocumentSigner.status == SignerStatus.PENDING
            )
            .scalar()
        )

    def mark(self, document_id: int, user_id: int, status: SignerStatus,
             signature_id: Optional[int] = None) -> Optional[GroupDocumentSigner]:
        """Moves the user's PENDING row to ``status``; None when there is none."""
        row = (
            self.session.query(GroupDocumentSigner)
            .filter(
                GroupDocumentSigner.document_id == document_id,
                GroupDocumentSigner.user_id == user_id,
                GroupDocumentSigner.status == SignerStatus.PENDING
            )
            .first()
        )
        if row is None:
            return None
        row.status = status
        if signature_id is not None:
            row.signature_id = signature_id
        return row

    def clear(self, document: Document) -> int:
        """Drops every signer row of the document (used when it leaves the group)."""
        count = len(document.signers)
        for row in list(document.signers):
            document.signers.remove(row)
            self.session.delete(row)
        return count

    def remove_member_requests(self, group_id: int, user_id: int) -> int:
        """
        Deletes the user's PENDING rows in the group's documents. Documents
        left without any signer fall back to draft. Does not commit.
        """
        rows = (
            self.session.query(GroupDocumentSigner)
            .join(Document, Document.id == GroupDocumentSigner.document_id)
            .filter(
                Document.group_id == group_id,
                GroupDocumentSigner.user_id == user_id,
                GroupDocumentSigner.status == SignerStatus.PENDING
            )
            .all()
        )
        for row in rows:
            document = row.document
            document.signers.remove(row)
            self.session.delete(row)
            if not document.signers and document.status == DocumentStatus.PENDING:
                DocumentStateService.apply_transition(document, DocumentStatus.DRAFT)
        return len(rows)

    def _ensure_editable(self, document: Document):
        if document.status in LOCKED_STATUSES:
            raise BadRequest("Tidak dapat mengubah penanda tangan untuk dokumen yang sudah selesai.")

    def _ensure_members(self, document: Document, user_ids: list[int]):
        if not user_ids:
            return
        if document.group_id is None:
            raise BadRequest("Dokumen belum berada di dalam grup.")
        member_ids = {
            row[0]
            for row in self.session.query(GroupMember.user_id)
            .filter(GroupMember.group_id == document.group_id, GroupMember.user_id.in_(user_ids))
            .all()
        }
        missing = [uid for uid in user_ids if uid not in member_ids]
        if missing:
            raise BadRequest(f"Pengguna {missing} bukan anggota grup ini.")

    def _publish(self, document: Document, actor_id: Optional[int]):
        safe_publish(
            self.publisher,
            group_room(document.group_id),
            GROUP_DOCUMENT_UPDATE,
            {
                "action": "signers_updated",
                "document_id": document.id,
                "title": document.title,
                "actor_id": actor_id,
            },
        )
