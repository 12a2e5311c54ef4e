"""
Public verification of signed documents, reached through the QR code link
``/verify/{signature_id}``.

Group, package and personal signatures live in separate tables; ``kind``
picks one, and when it is omitted they are looked up in that order.
"""
import logging
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from esign.common.errors import BadRequest, NotFound, SigningError
from esign.common.hashing import sha256_hex
from esign.documents.models.document import DocumentStatus
from esign.documents.models.personal_signature import PersonalSignature
from esign.groups.models.group_signature import GroupSignature, SignatureStatus
from esign.packages.models.package import PackageSignature
from esign.verification.services.pin_gate import PinGate

logger = logging.getLogger(__name__)


class SignatureKind(str, Enum):
    GROUP = "GROUP"
    PACKAGE = "PACKAGE"
    PERSONAL = "PERSONAL"


class VerificationService:
    def __init__(self, session: Session, pin_gate: Optional[PinGate] = None):
        self.session = session
        self.pin_gate = pin_gate or PinGate(session)

    def get_verification_details(self, signature_id: int, kind: Optional[SignatureKind] = None) -> dict:
        signature, kind = self._resolve(signature_id, kind)
        if signature.access_code:
            return self._locked_payload(signature, kind)

        if kind != SignatureKind.GROUP:
            return self._signer_payload(signature, kind)

        version = signature.document_version
        document = version.document
        if not version.signed_file_hash and document.status != DocumentStatus.COMPLETED:
            return {
                "document_title": document.title,
                "verification_status": "PENDING_FINALIZATION",
                "verification_message": "Dokumen belum difinalisasi oleh Admin Grup.",
                "require_upload": False,
                "is_locked": False,
                "type": kind.value,
            }

        final_version = document.current_version
        return {
            "signer_name": document.owner.name,
            "signer_email": document.owner.email,
            "document_title": document.title,
            "signed_at": document.created_at,
            "stored_file_hash": final_version.signed_file_hash if final_version else None,
            "verification_status": "REGISTERED",
            "verification_message": "Tanda tangan grup terdaftar.",
            "original_document_url": version.url,
            "group_signers": self._group_signers(signature.document_version_id),
            "type": kind.value,
            "is_locked": False,
        }

    def unlock(self, signature_id: int, input_code: str, kind: Optional[SignatureKind] = None) -> dict:
        """
        A correct PIN only grants the right to upload the file for the hash
        check; signer identity stays hidden until then.
        """
        signature, kind = self._resolve(signature_id, kind)
        self.pin_gate.verify(signature, input_code)

        version = self._final_version(signature, kind)
        return {
            "signer_name": None,
            "signer_email": None,
            "ip_address": None,
            "signed_at": None,
            "document_title": version.document.title if version else None,
            "stored_file_hash": version.signed_file_hash if version else None,
            "verification_status": "REGISTERED",
            "verification_message": "PIN Diterima. Unggah file untuk membuka seluruh metadata.",
            "type": kind.value,
            "is_locked": False,
            "require_upload": True,
        }

    def verify_uploaded_file(self, signature_id: int, file_contents: bytes, access_code: Optional[str] = None,
                             kind: Optional[SignatureKind] = None) -> dict:
        signature, kind = self._resolve(signature_id, kind)

        if signature.access_code:
            if not access_code:
                return self._locked_payload(signature, kind)
            self.pin_gate.verify(signature, access_code)

        if kind == SignatureKind.GROUP:
            document = signature.document_version.document
            if document.status != DocumentStatus.COMPLETED:
                raise BadRequest("Dokumen grup ini belum difinalisasi oleh Admin.")

        version = self._final_version(signature, kind)
        stored_hash = version.signed_file_hash if version else None
        if kind == SignatureKind.PACKAGE and version is not None and not stored_hash:
            stored_hash = version.hash
        if not stored_hash:
            raise SigningError("Data Hash dokumen final tidak ditemukan.")

        recalculated = sha256_hex(file_contents)
        is_match = recalculated == stored_hash
        logger.info("Upload check for %s signature %s: %s", kind.value, signature_id, "match" if is_match else "mismatch")

        if kind == SignatureKind.GROUP:
            document = version.document
            identity = {
                "signer_name": document.owner.name,
                "signer_email": document.owner.email,
                "ip_address": "-",
                "signed_at": document.created_at,
                "group_signers": self._group_signers(signature.document_version_id),
            }
        else:
            identity = {
                "signer_name": signature.signer.name,
                "signer_email": signature.signer.email,
                "ip_address": signature.ip_address or "-",
                "signed_at": signature.signed_at,
            }

        return {
            **identity,
            "document_title": version.document.title,
            "stored_file_hash": stored_hash,
            "recalculated_file_hash": recalculated,
            "verification_status": "VALID" if is_match else "INVALID",
            "is_hash_match": is_match,
            "type": kind.value,
            "is_locked": False,
        }

    def _resolve(self, signature_id: int, kind: Optional[SignatureKind]):
        if kind in (None, SignatureKind.GROUP):
            signature = self.session.get(GroupSignature, signature_id)
            if signature is not None:
                return signature, SignatureKind.GROUP
        if kind in (None, SignatureKind.PACKAGE):
            signature = self.session.get(PackageSignature, signature_id)
            if signature is not None:
                return signature, SignatureKind.PACKAGE
        if kind in (None, SignatureKind.PERSONAL):
            signature = self.session.get(PersonalSignature, signature_id)
            if signature is not None:
                return signature, SignatureKind.PERSONAL
        raise NotFound("Data tanda tangan tidak ditemukan.")

    @staticmethod
    def _final_version(signature, kind: SignatureKind):
        if kind == SignatureKind.GROUP:
            return signature.document_version.document.current_version
        if kind == SignatureKind.PERSONAL:
            return signature.document_version
        return signature.package_document.doc_version

    def _locked_payload(self, signature, kind: SignatureKind) -> dict:
        title = self._final_version(signature, kind).document.title
        time_locked = self.pin_gate.is_locked(signature)
        return {
            "is_locked": True,
            "signature_id": signature.id,
            "document_title": title or "Dokumen Terkunci",
            "type": kind.value,
            "message": "Akses dibekukan sementara karena terlalu banyak percobaan gagal."
            if time_locked
            else "Dokumen dilindungi kode akses (PIN). Silakan masukkan PIN yang tertera di dokumen.",
            "locked_until": signature.locked_until,
        }

    def _signer_payload(self, signature, kind: SignatureKind) -> dict:
        version = self._final_version(signature, kind)
        return {
            "signer_name": signature.signer.name,
            "signer_email": signature.signer.email,
            "document_title": version.document.title,
            "signed_at": signature.signed_at,
            "ip_address": signature.ip_address or "-",
            "stored_file_hash": version.signed_file_hash or version.hash,
            "verification_status": "REGISTERED",
            "original_document_url": version.url,
            "type": kind.value,
            "is_locked": False,
        }

    def _group_signers(self, version_id: int) -> list[dict]:
        signatures = (
            self.session.query(GroupSignature)
            .filter(
                GroupSignature.document_version_id == version_id,
                GroupSignature.status == SignatureStatus.FINAL
            )
            .order_by(GroupSignature.id)
            .all()
        )
        return [
            {
                "name": s.signer.name,
                "email": s.signer.email,
                "signed_at": s.signed_at,
                "ip_address": s.ip_address or "-",
            }
            for s in signatures
        ]
