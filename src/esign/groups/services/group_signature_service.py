import logging
from typing import Optional

from sqlalchemy.orm import Session

from esign.common.audit import AuditLogger, safe_audit
from esign.common.clock import utcnow
from esign.common.errors import BadRequest, NotFound, Unauthorized
from esign.common.events import DomainEventPublisher
from esign.documents.models.document import Document, DocumentStatus
from esign.groups.models.group import GroupMember
from esign.groups.models.group_signature import GroupSignature, SignatureStatus
from esign.groups.models.signer import SignerStatus
from esign.groups.services.signer_tracker import SignerTracker

logger = logging.getLogger(__name__)

PLACEMENT_FIELDS = ("position_x", "position_y", "width", "height", "page_number")


class GroupSignatureService:
    """Per-signer actions on a group document: drafts, signing and rejection."""

    def __init__(self, session: Session, publisher: Optional[DomainEventPublisher] = None,
                 audit: Optional[AuditLogger] = None):
        self.session = session
        self.tracker = SignerTracker(session, publisher)
        self.audit = audit

    def save_draft(self, user_id: int, document_id: int, signature_data: dict) -> GroupSignature:
        """
        Auto-save of a dragged signature. A user keeps a single draft per
        version: an existing one is updated instead of creating another.
        """
        document = self._get_group_document(document_id, user_id)

        draft = self._find_by_signer_and_version(user_id, document.current_version_id)
        if draft is not None and draft.status != SignatureStatus.DRAFT:
            raise BadRequest("Anda sudah menandatangani dokumen ini.")
        if draft is None:
            draft = GroupSignature(
                signer_id=user_id,
                document_version_id=document.current_version_id,
                status=SignatureStatus.DRAFT,
            )
            self.session.add(draft)

        draft.method = signature_data.get("method") or "canvas"
        draft.signature_image = signature_data["signature_image"]
        draft.position_x = signature_data["position_x"]
        draft.position_y = signature_data["position_y"]
        draft.page_number = signature_data.get("page_number") or 1
        draft.width = signature_data.get("width") or 0
        draft.height = signature_data.get("height") or 0

        self.session.commit()
        logger.debug("Draft %s saved for user %s on document %s", draft.id, user_id, document_id)
        return draft

    def update_draft_position(self, signature_id: int, user_id: int, position: dict) -> GroupSignature:
        draft = self._get_own_draft(signature_id, user_id)
        for field in PLACEMENT_FIELDS:
            if position.get(field) is not None:
                setattr(draft, field, position[field])
        self.session.commit()
        return draft

    def delete_draft(self, signature_id: int, user_id: int) -> bool:
        draft = self._get_own_draft(signature_id, user_id)
        self.session.delete(draft)
        self.session.commit()
        return True

    def sign_document(self, user_id: int, document_id: int, signature_data: dict,
                      request_context: Optional[dict] = None) -> dict:
        """
        Records the user's final signature. Requires a PENDING signer row;
        the PDF itself is only produced when the admin finalizes.
        """
        request_context = request_context or {}
        document = self.session.get(Document, document_id)
        if not document or not self._is_pending_signer(document, user_id):
            raise BadRequest("Anda tidak memiliki akses atau sudah tanda tangan.")
        if document.current_version_id is None:
            raise NotFound("Dokumen tidak memiliki versi aktif.")

        signature = self._find_by_signer_and_version(user_id, document.current_version_id)
        image = signature_data.get("signature_image") or (signature.signature_image if signature else None)
        if not image:
            raise BadRequest("Gambar tanda tangan wajib diisi.")
        if signature is None:
            signature = GroupSignature(signer_id=user_id, document_version_id=document.current_version_id)
            self.session.add(signature)

        signature.status = SignatureStatus.FINAL
        signature.method = signature_data.get("method") or signature.method or "canvas"
        signature.signature_image = image
        for field in PLACEMENT_FIELDS:
            if signature_data.get(field) is not None:
                setattr(signature, field, signature_data[field])
        if signature.page_number is None:
            signature.page_number = 1
        signature.ip_address = request_context.get("ip_address")
        signature.user_agent = request_context.get("user_agent")
        signature.signed_at = utcnow()
        self.session.flush()

        self.tracker.mark(document_id, user_id, SignerStatus.SIGNED, signature.id)
        self.session.commit()

        safe_audit(
            self.audit, "SIGN_DOCUMENT_GROUP", user_id, document_id,
            f"User menandatangani dokumen grup: {document.title}", request_context
        )

        remaining = self.tracker.count_pending(document_id)
        return {
            "signature_id": signature.id,
            "message": "Tanda tangan berhasil. Menunggu finalisasi Admin." if remaining == 0
            else "Tanda tangan disimpan.",
            "ready_to_finalize": remaining == 0,
            "remaining_signers": remaining,
        }

    def reject_signing(self, user_id: int, document_id: int,
                       request_context: Optional[dict] = None) -> dict:
        row = self.tracker.mark(document_id, user_id, SignerStatus.REJECTED)
        if row is None:
            raise BadRequest("Anda tidak memiliki akses atau sudah tanda tangan.")
        self.session.commit()
        safe_audit(self.audit, "REJECT_DOCUMENT_GROUP", user_id, document_id,
                   "User menolak menandatangani dokumen grup", request_context)
        return {"message": "Permintaan tanda tangan ditolak.", "remaining_signers": self.tracker.count_pending(document_id)}

    def _get_group_document(self, document_id: int, user_id: int) -> Document:
        document = self.session.get(Document, document_id)
        if not document or document.group_id is None:
            raise NotFound(f"Dokumen dengan ID '{document_id}' tidak ditemukan.")
        member = (
            self.session.query(GroupMember)
            .filter(GroupMember.group_id == document.group_id, GroupMember.user_id == user_id)
            .first()
        )
        if not member:
            raise Unauthorized("Anda bukan anggota grup ini.")
        if document.status in (DocumentStatus.COMPLETED, DocumentStatus.ARCHIVED):
            raise BadRequest("Dokumen sudah difinalisasi.")
        if document.current_version_id is None:
            raise NotFound("Dokumen tidak memiliki versi aktif.")
        return document

    def _get_own_draft(self, signature_id: int, user_id: int) -> GroupSignature:
        draft = self.session.get(GroupSignature, signature_id)
        if not draft or draft.signer_id != user_id:
            raise NotFound("Draft tanda tangan tidak ditemukan.")
        if draft.status != SignatureStatus.DRAFT:
            raise BadRequest("Tanda tangan final tidak dapat diubah.")
        return draft

    def _find_by_signer_and_version(self, user_id: int, version_id: int) -> Optional[GroupSignature]:
        return (
            self.session.query(GroupSignature)
            .filter(GroupSignature.signer_id == user_id, GroupSignature.document_version_id == version_id)
            .order_by(GroupSignature.id)
            .first()
        )

    @staticmethod
    def _is_pending_signer(document: Document, user_id: int) -> bool:
        return any(s.user_id == user_id and s.status == SignerStatus.PENDING for s in document.signers)
