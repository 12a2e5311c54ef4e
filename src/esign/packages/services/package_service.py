"""
Signing packages: one session signing several documents at once.

Documents are signed strictly one after another. Each document runs in its
own transaction, so a failure only discards that document's work and is
reported in the ``failed`` list while the loop moves on.
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
    IncompleteSignatures,
    MissingSignatureConfig,
    NotFound,
    SigningError,
)
from esign.common.hashing import sha256_hex
from esign.common.storage import FileStorage
from esign.common.urls import build_verification_url
from esign.documents.models.document import Document, DocumentStatus
from esign.documents.services.document_service import DocumentService
from esign.documents.services.document_state_service import DocumentStateService
from esign.documents.services.pdf_service import PdfService, SignaturePlacement, SigningOptions
from esign.documents.services.user_service import UserService
from esign.groups.services.signer_tracker import SignerTracker
from esign.packages.models.package import Package, PackageDocument, PackageSignature, PackageStatus

logger = logging.getLogger(__name__)


class PackageService:
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

    def create_package(self, user_id: int, title: str, document_ids: list[int]) -> Package:
        """
        Bundles the current versions of the user's documents. Completed
        documents and documents without a version are refused.
        """
        document_ids = list(dict.fromkeys(document_ids or []))
        if not document_ids:
            raise BadRequest("Tidak ada dokumen valid untuk diproses.")

        quota.check_package_size(len(document_ids), UserService.is_user_premium(self.session, user_id))

        package = Package(owner_id=user_id, title=title or "Paket Tanda Tangan", status=PackageStatus.DRAFT)
        for document_id in document_ids:
            document = self.session.get(Document, document_id)
            if not document or document.user_id != user_id:
                raise NotFound(f"Dokumen dengan ID '{document_id}' tidak ditemukan.")
            if not document.current_version_id:
                raise BadRequest(f"Tidak memiliki versi aktif (dokumen {document_id}).")
            if document.status == DocumentStatus.COMPLETED:
                raise BadRequest(f"Dokumen '{document.title}' sudah selesai & tidak dapat ditambah ke paket.")
            if document.group_id is not None or document.signers:
                raise BadRequest(f"Dokumen grup '{document.title}' harus difinalisasi melalui alur grup.")
            package.documents.append(PackageDocument(doc_version_id=document.current_version_id))

        self.session.add(package)
        self.session.commit()
        logger.info("Package %s created by user %s with %d document(s)", package.id, user_id, len(document_ids))
        return package

    def get_package_details(self, package_id: int, user_id: int) -> Package:
        package = self.session.get(Package, package_id)
        if not package or package.owner_id != user_id:
            raise NotFound(f"Paket dengan ID '{package_id}' tidak ditemukan.")
        return package

    def sign_package(self, package_id: int, user_id: int, signatures_payload: list[dict],
                     ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> dict:
        package = self.get_package_details(package_id, user_id)
        if package.status == PackageStatus.COMPLETED:
            raise AlreadyFinalized("Paket ini sudah selesai & tidak dapat diproses ulang.")

        success: list[int] = []
        failed: list[dict] = []
        package_document_ids = [pd.id for pd in package.documents]

        for package_document_id in package_document_ids:
            package_document = self.session.get(PackageDocument, package_document_id)
            document_id = package_document.doc_version.document_id
            try:
                self._sign_document(package_document, user_id, signatures_payload, ip_address, user_agent)
                success.append(document_id)
            except Exception as e:
                self.session.rollback()
                message = e.message if isinstance(e, SigningError) else str(e)
                logger.warning("Package %s: document %s failed: %s", package_id, document_id, message)
                failed.append({"document_id": document_id, "error": message})

        package = self.session.get(Package, package_id)
        package.status = PackageStatus.COMPLETED if not failed else PackageStatus.PARTIAL_FAILURE
        self.session.commit()

        safe_audit(
            self.audit, "SIGN_PACKAGE", user_id, package_id,
            f"Paket '{package.title}' diproses: {len(success)} berhasil, {len(failed)} gagal",
            {"ip_address": ip_address, "user_agent": user_agent},
        )
        return {
            "package_id": package_id,
            "status": package.status.value,
            "success": success,
            "failed": failed,
        }

    def _sign_document(self, package_document: PackageDocument, user_id: int, payload: list[dict],
                       ip_address: Optional[str], user_agent: Optional[str]) -> None:
        """
        Signs one package document and commits. The signed PDF buffer lives
        only in this frame.
        """
        source_version = package_document.doc_version
        document = source_version.document

        # Signed by an earlier run of this package
        if package_document.signed_at is not None:
            return
        if document.status == DocumentStatus.COMPLETED:
            raise AlreadyFinalized(f"Dokumen '{document.title}' sudah selesai.")
        # Assigned to a group after the package was created
        pending = SignerTracker(self.session).count_pending(document.id)
        if pending > 0:
            raise IncompleteSignatures(pending)

        quota.check_version_limit(
            DocumentService.count_versions(self.session, document.id),
            UserService.is_user_premium(self.session, user_id),
        )

        entries = [sig for sig in payload if sig.get("package_doc_id") == package_document.id]
        if not entries:
            raise MissingSignatureConfig()

        rows = [
            PackageSignature(
                package_document_id=package_document.id,
                signer_id=user_id,
                signature_image=entry.get("signature_image"),
                page_number=entry.get("page_number") or 1,
                position_x=entry.get("position_x"),
                position_y=entry.get("position_y"),
                width=entry.get("width"),
                height=entry.get("height"),
                method=entry.get("method") or "canvas",
                signed_at=utcnow(),
                ip_address=ip_address,
                user_agent=user_agent,
            )
            for entry in entries
        ]
        self.session.add_all(rows)
        # ids are needed for the verification URL
        self.session.flush()

        display_qr = entries[0].get("display_qr_code", True)
        signed = self.pdf_service.generate_signed_pdf(
            source_version.id,
            [SignaturePlacement.from_record(row) for row in rows],
            SigningOptions(
                display_qr_code=display_qr,
                verification_url=build_verification_url(rows[0].id, kind="PACKAGE"),
            ),
        )
        if signed.access_code:
            rows[0].access_code = signed.access_code

        new_hash = sha256_hex(signed.signed_file_buffer)
        version = DocumentService.add_version(
            self.session, document, user_id, signed.public_url, new_hash, signed_file_hash=new_hash
        )
        package_document.doc_version_id = version.id
        package_document.signed_at = utcnow()

        DocumentStateService.apply_transition(document, DocumentStatus.COMPLETED)
        document.current_version_id = version.id
        document.signed_file_url = signed.public_url

        self.session.commit()
        logger.info("Package document %s signed as version %s", package_document.id, version.id)
