import io
import logging
import os
from typing import Optional

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from esign.common import quota
from esign.common.errors import BadRequest, IncompleteSignatures, NotFound, Unauthorized
from esign.common.hashing import sha256_hex
from esign.common.storage import FileStorage
from esign.documents.models.document import Document, DocumentStatus, DocumentVersion
from esign.documents.models.personal_signature import PersonalSignature
from esign.documents.services.document_state_service import DocumentStateService
from esign.documents.services.user_service import UserService
from esign.groups.models.group import GroupMember, GroupRole
from esign.groups.models.group_signature import GroupSignature, SignatureStatus
from esign.groups.models.signer import SignerStatus
from esign.packages.models.package import PackageDocument

logger = logging.getLogger(__name__)


class DocumentService:

    @staticmethod
    def get_documents_by_user(session: Session, user_id: int) -> list[Document]:
        return (
            session.query(Document)
            .filter(Document.user_id == user_id, Document.group_id.is_(None))
            .order_by(Document.id.desc())
            .all()
        )

    @staticmethod
    def get_document(session: Session, document_id: int) -> Document:
        document = session.get(Document, document_id)
        if not document:
            raise NotFound(f"Dokumen dengan ID '{document_id}' tidak ditemukan.")
        return document

    @staticmethod
    def upload_document(
        session: Session,
        storage: FileStorage,
        user_id: int,
        file_contents: bytes,
        filename: str,
        content_type: str,
        group_id: Optional[int] = None,
        commit: bool = True
    ) -> Document:
        """
        Stores a new document:
        - validates the file against the uploader's tier
        - picks a unique title
        - uploads the bytes
        - creates the document with its first version
        """
        is_premium = UserService.is_user_premium(session, user_id)
        DocumentService.validate_file(file_contents, filename, content_type, is_premium)

        title = DocumentService._get_unique_title(session, user_id, filename)

        file_hash = sha256_hex(file_contents)
        url = storage.upload_file(f"documents/{user_id}/{file_hash}.pdf", file_contents, "application/pdf")

        document = Document(
            title=title,
            status=DocumentStatus.DRAFT,
            user_id=user_id,
            group_id=group_id
        )
        session.add(document)
        session.flush()

        version = DocumentService.add_version(session, document, user_id, url, file_hash)
        document.current_version_id = version.id

        if commit:
            session.commit()
        logger.info("Document %s uploaded by user %s as '%s'", document.id, user_id, title)
        return document

    @staticmethod
    def validate_file(file_contents: bytes, filename: str, content_type: str, is_premium: bool):
        """MIME, extension, tier upload size and PDF integrity."""

        if content_type != "application/pdf":
            raise BadRequest("File harus berupa PDF.")

        if not filename or not filename.lower().endswith(".pdf"):
            raise BadRequest("Ekstensi file harus .pdf.")

        quota.check_upload_size(len(file_contents), is_premium)

        try:
            reader = PdfReader(io.BytesIO(file_contents))
        except PdfReadError as e:
            raise BadRequest("PDF tidak valid atau rusak.") from e

        # Password protected files are accepted here; the signing engine rejects them
        if reader.is_encrypted:
            logger.warning("Encrypted PDF uploaded: %s", filename)
            return

        try:
            _ = reader.pages[0]
        except (PdfReadError, IndexError) as e:
            raise BadRequest("PDF tidak valid atau rusak.") from e

    @staticmethod
    def add_version(
        session: Session,
        document: Document,
        user_id: int,
        url: str,
        file_hash: str,
        signed_file_hash: Optional[str] = None
    ) -> DocumentVersion:
        """Appends a version; versions are never updated afterwards."""
        version = DocumentVersion(
            document_id=document.id,
            user_id=user_id,
            url=url,
            hash=file_hash,
            signed_file_hash=signed_file_hash
        )
        session.add(version)
        session.flush()
        return version

    @staticmethod
    def use_old_version(session: Session, document_id: int, version_id: int, user_id: int) -> Document:
        """
        Points the document back at one of its versions. A signed version
        completes the document; an unsigned one reopens it as draft, or as
        pending when the group document has signers, whose requests start
        over.
        """
        document = DocumentService.get_document(session, document_id)
        DocumentService._ensure_can_manage_versions(
            session, document, user_id,
            "Hanya admin grup yang dapat mengembalikan versi dokumen."
        )

        if document.group_id is not None and document.current_version_id is not None:
            signed_current = (
                session.query(func.count(GroupSignature.id))
                .filter(
                    GroupSignature.document_version_id == document.current_version_id,
                    GroupSignature.status == SignatureStatus.FINAL
                )
                .scalar()
            )
            if signed_current:
                raise BadRequest(
                    "Dokumen tidak dapat di-rollback karena sudah ada anggota yang menandatangani versi ini."
                )

        version = DocumentService._get_version(session, document, version_id)
        if version.signed_file_hash:
            pending = sum(1 for s in document.signers if s.status == SignerStatus.PENDING)
            if pending:
                raise IncompleteSignatures(pending)
            target = DocumentStatus.COMPLETED
        else:
            target = DocumentStatus.PENDING if document.signers else DocumentStatus.DRAFT
        DocumentStateService.apply_transition(document, target)

        if target != DocumentStatus.COMPLETED:
            for signer in document.signers:
                signer.status = SignerStatus.PENDING
                signer.signature_id = None
            session.query(GroupSignature).filter(
                GroupSignature.document_version_id == document.current_version_id,
                GroupSignature.status == SignatureStatus.DRAFT
            ).delete(synchronize_session=False)

        document.current_version_id = version.id
        document.signed_file_url = version.url if target == DocumentStatus.COMPLETED else None
        session.commit()
        logger.info("Document %s now uses version %s (%s)", document.id, version.id, target.value)
        return document

    @staticmethod
    def delete_version(session: Session, storage: FileStorage, document_id: int, version_id: int,
                       user_id: int) -> dict:
        document = DocumentService.get_document(session, document_id)
        DocumentService._ensure_can_manage_versions(
            session, document, user_id,
            "Anda tidak memiliki izin untuk menghapus versi dokumen ini."
        )
        version = DocumentService._get_version(session, document, version_id)

        if version.id == document.current_version_id:
            raise BadRequest("Versi aktif tidak dapat dihapus.")
        # Verification links resolve through signed versions
        if version.signed_file_hash:
            raise BadRequest("Versi yang sudah ditandatangani tidak dapat dihapus.")
        if DocumentService._is_referenced(session, version.id):
            raise BadRequest("Versi masih digunakan oleh tanda tangan atau paket.")

        session.query(GroupSignature).filter(GroupSignature.document_version_id == version.id).delete(
            synchronize_session=False
        )
        url = version.url
        session.delete(version)
        session.commit()

        shared = session.query(func.count(DocumentVersion.id)).filter(DocumentVersion.url == url).scalar()
        if not shared:
            try:
                storage.delete_file(url)
            except OSError as e:
                logger.warning("Could not delete file of version %s: %s", version_id, e)
        return {"message": "Versi dokumen berhasil dihapus."}

    @staticmethod
    def count_versions(session: Session, document_id: int) -> int:
        return (
            session.query(func.count(DocumentVersion.id))
            .filter(DocumentVersion.document_id == document_id)
            .scalar()
        )

    @staticmethod
    def _get_unique_title(session: Session, user_id: int, original_name: str) -> str:
        """Returns original_name, or base_n.ext with the first free n"""
        base, ext = os.path.splitext(original_name)

        existing = {
            row[0]
            for row in session.query(Document.title)
            .filter(
                Document.user_id == user_id,
                or_(
                    Document.title == original_name,
                    Document.title.like(f"{base}\\_%{ext}", escape="\\")
                )
            )
            .all()
        }
        if original_name not in existing:
            return original_name

        used_numbers = set()
        prefix = f"{base}_"
        for title in existing:
            if title.startswith(prefix) and title.endswith(ext):
                number = title[len(prefix):len(title) - len(ext)] if ext else title[len(prefix):]
                if number.isdigit():
                    used_numbers.add(int(number))

        next_num = 1
        while next_num in used_numbers:
            next_num += 1
        return f"{base}_{next_num}{ext}"

    @staticmethod
    def _ensure_can_manage_versions(session: Session, document: Document, user_id: int, message: str):
        if document.user_id == user_id:
            return
        if document.group_id is not None:
            member = (
                session.query(GroupMember)
                .filter(GroupMember.group_id == document.group_id, GroupMember.user_id == user_id)
                .first()
            )
            if member and member.role == GroupRole.ADMIN_GROUP:
                return
        raise Unauthorized(message)

    @staticmethod
    def _get_version(session: Session, document: Document, version_id: int) -> DocumentVersion:
        version = session.get(DocumentVersion, version_id)
        if not version or version.document_id != document.id:
            raise BadRequest(f"Versi '{version_id}' bukan milik dokumen '{document.id}'.")
        return version

    @staticmethod
    def _is_referenced(session: Session, version_id: int) -> bool:
        """Final group signatures, personal signatures or packages use the version."""
        final_group = session.query(GroupSignature.id).filter(
            GroupSignature.document_version_id == version_id,
            GroupSignature.status == SignatureStatus.FINAL
        ).first()
        personal = session.query(PersonalSignature.id).filter(
            PersonalSignature.document_version_id == version_id
        ).first()
        packaged = session.query(PackageDocument.id).filter(PackageDocument.doc_version_id == version_id).first()
        return bool(final_group or personal or packaged)
