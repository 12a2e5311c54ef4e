"""
Domain errors shared by every module.

Each error carries a stable ``code``, the HTTP status the web layer answers
with and a user-facing message (Indonesian, like the rest of the product).
"""
from typing import Optional


class SigningError(Exception):
    """Base class for every business error raised by the services."""

    code = "SIGNING_ERROR"
    status_code = 500
    default_message = "Terjadi kesalahan internal pada server."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class BadRequest(SigningError):
    code = "BAD_REQUEST"
    status_code = 400
    default_message = "Permintaan tidak valid atau format data salah."


class Unauthorized(SigningError):
    code = "UNAUTHORIZED"
    status_code = 403
    default_message = "Anda tidak memiliki izin untuk tindakan ini."


class NotFound(SigningError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Sumber daya yang dicari tidak ditemukan."


class IncompleteSignatures(SigningError):
    code = "INCOMPLETE_SIGNATURES"
    status_code = 400

    def __init__(self, pending_count: int):
        self.pending_count = pending_count
        super().__init__(
            f"Belum bisa finalisasi. Masih ada {pending_count} orang yang belum tanda tangan."
        )


class AlreadyFinalized(SigningError):
    code = "ALREADY_FINALIZED"
    status_code = 409
    default_message = "Dokumen sudah difinalisasi sebelumnya."


class InvalidStatusTransition(SigningError):
    code = "INVALID_STATUS_TRANSITION"
    status_code = 409

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Status dokumen tidak dapat diubah dari '{current.value}' ke '{target.value}'."
        )


class PolicyLimitExceeded(SigningError):
    code = "POLICY_LIMIT_EXCEEDED"
    status_code = 403

    def __init__(self, message: str, limit: int, upgrade_hint: Optional[str] = None):
        self.limit = limit
        self.upgrade_hint = upgrade_hint
        full = f"{message} {upgrade_hint}" if upgrade_hint else message
        super().__init__(full)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["limit"] = self.limit
        return data


class DocumentEncrypted(SigningError):
    code = "DOCUMENT_ENCRYPTED"
    status_code = 400
    default_message = (
        "Dokumen terenkripsi (dilindungi password). "
        "Hapus password dari file PDF lalu unggah ulang."
    )


class MissingSignatureConfig(SigningError):
    code = "MISSING_SIGNATURE_CONFIG"
    status_code = 400
    default_message = "Tidak ada konfigurasi tanda tangan untuk dokumen ini."


class NoSignaturesFound(SigningError):
    code = "NO_SIGNATURES_FOUND"
    status_code = 500
    default_message = "Tidak ada tanda tangan yang ditemukan untuk difinalisasi."


class CannotRemoveSignedSigner(SigningError):
    code = "CANNOT_REMOVE_SIGNED_SIGNER"
    status_code = 400

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(
            f"Penanda tangan dengan ID '{user_id}' sudah tanda tangan dan tidak dapat dihapus."
        )


class InvalidInvitation(SigningError):
    code = "INVALID_INVITATION"
    status_code = 400
    default_message = "Undangan tidak valid atau telah kedaluwarsa."


class AlreadyMember(SigningError):
    code = "ALREADY_MEMBER"
    status_code = 409
    default_message = "Anda sudah menjadi anggota grup ini."


class IncorrectPin(SigningError):
    code = "INCORRECT_PIN"
    status_code = 400

    def __init__(self, remaining_attempts: int):
        self.remaining_attempts = remaining_attempts
        super().__init__(f"PIN Salah. Sisa percobaan: {remaining_attempts} kali.")


class LockedOut(SigningError):
    code = "LOCKED_OUT"
    status_code = 403

    def __init__(self, lockout_minutes: int):
        self.lockout_minutes = lockout_minutes
        super().__init__(
            f"Terlalu banyak percobaan salah. Dokumen dikunci selama {lockout_minutes} menit."
        )


class TemporarilyLocked(SigningError):
    code = "TEMPORARILY_LOCKED"
    status_code = 403

    def __init__(self, remaining_minutes: int):
        self.remaining_minutes = remaining_minutes
        super().__init__(
            f"Dokumen terkunci sementara. Coba lagi dalam {remaining_minutes} menit."
        )
