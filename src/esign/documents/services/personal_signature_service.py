"""
Personal signing: the owner of a document outside any group signs it
directly, producing a completed signed version in one step.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from esign.common import quota
from esign.common.audit import AuditLogger, safe_audit
from esign.common.clock import utcnow
from esign.common.errors import (
    AlreadyFinalized,
    BadRequest,
    InvalidStatusTransition,
    MissingSignatureConfig,
    NotFound,
    Unauthorized,
)
from esign.common.hashing import sha256_hex
from esign.common.storage import FileStorage
from esign.common.urls import build_verification_url
from esign.documents.models.document import Document, DocumentStatus
from esign.documents.models.personal_signature import PersonalSignature
from esign.documents.services.document_service import DocumentService
from esign.documents.services.document_state_service import DocumentStateService
from esign.documents.services.pdf_service import PdfService, SignaturePlacement, SigningOptions
from esign.documents.services.user_service import UserService

logger = logging.getLogger(__name__)


class PersonalSignatureService:
    def __init__(
        self,
        session: Session,
        storage: FileStorage,
        audit: Optional[AuditLogger] = None,
        pdf_service: Optional[PdfService] = None,
    ):
        self.session = session
        self.audit = audit
        self.pdf_service = pdf_service or PdfService(session, storage)

    def add_personal_signature(self, user_id: int, document_id: int, signatures: list[dict],
                               display_qr_code: bool = True, request_context: Optional[dict] = None) -> dict:
        request_context = request_context or {}
        document = self.session.get(Document, document_id)
        if not document:
            raise NotFound(f"Dokumen dengan ID '{document_id}' tidak ditemukan.")
        if document.user_id != user_id:
            raise Unauthorized()
        if document.group_id is not None or document.signers:
            raise BadRequest("Dokumen grup harus ditandatangani melalui alur grup.")
        if document.status == DocumentStatus.COMPLETED:
            raise AlreadyFinalized("Dokumen sudah ditandatangani.")
        if document.current_version_id is None:
            raise NotFound("Dokumen tidak memiliki versi aktif.")
        if not signatures:
            raise MissingSignatureConfig()

        quota.check_version_limit(
            DocumentService.count_versions(self.session, document_id),
            UserService.is_user_premium(self.session, user_id),
        )
        if not DocumentStateService.can_transition(document.status, DocumentStatus.COMPLETED):
            raise InvalidStatusTransition(document.status, DocumentStatus.COMPLETED)

        source_version_id = document.current_version_id
        try:
            rows = [
                PersonalSignature(
                    document_version_id=source_version_id,
                    signer_id=user_id,
                    signature_image=entry.get("signature_image"),
                    page_number=entry.get("page_number") or 1,
                    position_x=entry.get("position_x"),
                    position_y=entry.get("position_y"),
                    width=entry.get("width"),
                    height=entry.get("height"),
                    method=entry.get("method") or "canvas",
                    display_qr_code=display_qr_code,
                    signed_at=utcnow(),
                    ip_address=request_context.get("ip_address"),
                    user_agent=request_context.get("user_agent"),
                )
                for entry in signatures
            ]
            self.session.add_all(rows)
            self.session.flush()

            signed = self.pdf_service.generate_signed_pdf(
                source_version_id,
                [SignaturePlacement.from_record(row) for row in rows],
                SigningOptions(
                    display_qr_code=display_qr_code,
                    verification_url=build_verification_url(rows[0].id, kind="PERSONAL"),
                ),
            )
            if signed.access_code:
                rows[0].access_code = signed.access_code

            new_hash = sha256_hex(signed.signed_file_buffer)
            version = DocumentService.add_version(
                self.session, document, user_id, signed.public_url, new_hash, signed_file_hash=new_hash
            )
            for row in rows:
                row.document_version_id = version.id

            DocumentStateService.apply_transition(document, DocumentStatus.COMPLETED)
            document.current_version_id = version.id
            document.signed_file_url = signed.public_url
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Document %s signed personally by user %s as version %s", document_id, user_id, version.id)
        safe_audit(
            self.audit, "SIGN_DOCUMENT_PERSONAL", user_id, document_id,
            f"User menandatangani dokumen: {document.title}", request_context,
        )
        return {
            "message": "Dokumen berhasil ditandatangani.",
            "document": document,
            "signature_id": rows[0].id,
            "url": signed.public_url,
            "access_code": signed.access_code,
        }
