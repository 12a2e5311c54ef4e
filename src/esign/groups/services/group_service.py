"""
Group lifecycle and group document finalization.

Quotas of a group (members, documents, versions) follow the tier of the
group owner, resolved fresh at each check.
"""
import logging
import secrets
from datetime import timedelta
from typing import Iterable, Optional

from sqlalchemy import exists, func, update
from sqlalchemy.orm import Session

from esign.common import quota
from esign.common.audit import AuditLogger, safe_audit
from esign.common.clock import utcnow
from esign.common.errors import (
    AlreadyFinalized,
    AlreadyMember,
    BadRequest,
    IncompleteSignatures,
    InvalidInvitation,
    InvalidStatusTransition,
    NoSignaturesFound,
    NotFound,
    Unauthorized,
)
from esign.common.events import (
    DomainEventPublisher,
    GROUP_DOCUMENT_UPDATE,
    GROUP_MEMBER_UPDATE,
    group_room,
    safe_publish,
)
from esign.common.hashing import sha256_hex
from esign.common.storage import FileStorage
from esign.common.urls import build_verification_url
from esign.documents.models.document import Document, DocumentStatus, DocumentVersion
from esign.documents.services.document_service import DocumentService
from esign.documents.services.document_state_service import DocumentStateService
from esign.documents.services.pdf_service import PdfService, SignaturePlacement, SigningOptions
from esign.documents.services.user_service import UserService
from esign.groups.models.group import Group, GroupInvitation, GroupMember, GroupRole, InvitationStatus
from esign.groups.models.group_signature import GroupSignature, SignatureStatus
from esign.groups.models.signer import GroupDocumentSigner, SignerStatus
from esign.groups.services.signer_tracker import SignerTracker

logger = logging.getLogger(__name__)

INVITATION_TTL = timedelta(hours=24)


class GroupService:
    def __init__(
        self,
        session: Session,
        storage: FileStorage,
        publisher: Optional[DomainEventPublisher] = None,
        audit: Optional[AuditLogger] = None,
        pdf_service: Optional[PdfService] = None,
    ):
        self.session = session
        self.storage = storage
        self.publisher = publisher
        self.audit = audit
        self.pdf_service = pdf_service or PdfService(session, storage)
        self.tracker = SignerTracker(session, publisher)

    # Groups and membership

    def create_group(self, admin_id: int, name: str) -> Group:
        if not name or not name.strip():
            raise BadRequest("Nama grup tidak boleh kosong.")

        owned = self.session.query(func.count(Group.id)).filter(Group.admin_id == admin_id).scalar()
        quota.check_groups_owned_limit(owned, UserService.is_user_premium(self.session, admin_id))

        group = Group(name=name.strip(), admin_id=admin_id)
        group.members.append(GroupMember(user_id=admin_id, role=GroupRole.ADMIN_GROUP))
        self.session.add(group)
        self.session.commit()
        logger.info("Group %s created by user %s", group.id, admin_id)
        return group

    def get_group(self, group_id: int, user_id: int) -> Group:
        self._require_member(group_id, user_id)
        group = self.session.get(Group, group_id)
        if not group:
            raise NotFound(f"Grup dengan ID '{group_id}' tidak ditemukan.")
        return group

    def get_user_groups(self, user_id: int) -> list[Group]:
        return (
            self.session.query(Group)
            .join(GroupMember, GroupMember.group_id == Group.id)
            .filter(GroupMember.user_id == user_id)
            .order_by(Group.id)
            .all()
        )

    def create_invitation(self, group_id: int, inviter_id: int, role: GroupRole = GroupRole.MEMBER) -> GroupInvitation:
        self._require_admin(group_id, inviter_id, "Hanya admin grup yang dapat membuat undangan.")
        group = self.session.get(Group, group_id)
        self._check_member_quota(group)

        invitation = GroupInvitation(
            group_id=group_id,
            created_by=inviter_id,
            role=role,
            token=secrets.token_hex(20),
            expires_at=utcnow() + INVITATION_TTL,
            status=InvitationStatus.ACTIVE,
        )
        self.session.add(invitation)
        self.session.commit()
        return invitation

    def accept_invitation(self, token: str, user_id: int) -> GroupMember:
        invitation = self.session.query(GroupInvitation).filter(GroupInvitation.token == token).first()
        if not invitation:
            raise InvalidInvitation("Token undangan tidak ditemukan.")

        if self._find_member(invitation.group_id, user_id):
            raise AlreadyMember()

        if invitation.status != InvitationStatus.ACTIVE or invitation.expires_at < utcnow():
            raise InvalidInvitation("Undangan tidak valid atau telah kedaluwarsa.")

        self._check_member_quota(invitation.group)

        member = GroupMember(group_id=invitation.group_id, user_id=user_id, role=invitation.role)
        self.session.add(member)
        self.session.commit()
        logger.info("User %s joined group %s", user_id, invitation.group_id)
        safe_publish(
            self.publisher, group_room(invitation.group_id), GROUP_MEMBER_UPDATE,
            {"action": "joined", "user_id": user_id, "actor_id": user_id},
        )
        return member

    def remove_member(self, group_id: int, admin_id: int, user_id_to_remove: int) -> dict:
        self._require_admin(group_id, admin_id, "Hanya admin grup yang dapat mengeluarkan anggota.")

        target = self._find_member(group_id, user_id_to_remove)
        if not target:
            raise NotFound("Anggota tidak ditemukan di grup ini.")

        group = self.session.get(Group, group_id)
        if group.admin_id == user_id_to_remove:
            raise BadRequest("Tidak dapat mengeluarkan pemilik utama grup.")

        drafts_deleted = self._delete_member_drafts(group_id, user_id_to_remove)
        requests_deleted = self.tracker.remove_member_requests(group_id, user_id_to_remove)
        self.session.delete(target)
        self.session.commit()

        logger.info(
            "User %s removed from group %s (%d drafts, %d signer requests dropped)",
            user_id_to_remove, group_id, drafts_deleted, requests_deleted,
        )
        safe_publish(
            self.publisher, group_room(group_id), GROUP_MEMBER_UPDATE,
            {"action": "kicked", "user_id": user_id_to_remove, "actor_id": admin_id},
        )
        safe_audit(self.audit, "REMOVE_GROUP_MEMBER", admin_id, user_id_to_remove,
                   f"Anggota dikeluarkan dari grup {group.name}")
        return {"message": "Anggota berhasil dikeluarkan.", "removed_signer_requests": requests_deleted}

    # Group documents

    def upload_group_document(
        self,
        user_id: int,
        group_id: int,
        file_contents: bytes,
        filename: str,
        content_type: str,
        title: Optional[str] = None,
        signer_ids: Iterable[int] = (),
    ) -> Document:
        self._require_member(group_id, user_id)
        group = self.session.get(Group, group_id)
        self._check_document_quota(group)

        document = DocumentService.upload_document(
            self.session, self.storage, user_id, file_contents, filename, content_type,
            group_id=group_id, commit=False,
        )
        if title:
            document.title = title
        self.tracker.assign_signers(document, list(signer_ids), actor_id=user_id, commit=False)
        self.session.commit()

        safe_publish(
            self.publisher, group_room(group_id), GROUP_DOCUMENT_UPDATE,
            {"action": "new_document", "document_id": document.id, "title": document.title, "actor_id": user_id},
        )
        return document

    def assign_document_to_group(self, document_id: int, group_id: int, user_id: int,
                                 signer_ids: Iterable[int] = ()) -> Document:
        document = self.session.get(Document, document_id)
        if not document or document.user_id != user_id:
            raise NotFound(f"Dokumen dengan ID '{document_id}' tidak ditemukan.")
        self._require_member(group_id, user_id, "Anda harus menjadi anggota grup.")
        if document.group_id != group_id:
            self._check_document_quota(self.session.get(Group, group_id))

        document.group_id = group_id
        self.tracker.assign_signers(document, list(signer_ids), actor_id=user_id, commit=False)
        self.session.commit()
        safe_publish(
            self.publisher, group_room(group_id), GROUP_DOCUMENT_UPDATE,
            {"action": "new_document", "document_id": document.id, "title": document.title, "actor_id": user_id},
        )
        return document

    def update_group_document_signers(self, group_id: int, document_id: int, admin_id: int,
                                      new_signer_ids: Iterable[int]) -> dict:
        self._require_admin(group_id, admin_id, "Hanya admin grup yang dapat mengelola penanda tangan.")
        document = self._get_group_document(group_id, document_id)
        return self.tracker.update_signers(document, list(new_signer_ids), actor_id=admin_id)

    def unassign_document_from_group(self, group_id: int, document_id: int, user_id: int) -> Document:
        self._require_admin(group_id, user_id, "Hanya admin yang bisa menghapus dokumen dari grup.")
        document = self._get_group_document(group_id, document_id)

        self.tracker.clear(document)
        document.group_id = None
        if document.status == DocumentStatus.PENDING:
            DocumentStateService.apply_transition(document, DocumentStatus.DRAFT)
        self.session.commit()
        return document

    # Finalization

    def finalize_group_document(self, group_id: int, document_id: int, requestor_id: int,
                                request_context: Optional[dict] = None) -> dict:
        """
        Burns every final signature of the current version into one new PDF
        version and locks the document. Preconditions fail fast, before any
        PDF work; the document update is a compare-and-swap committed with
        the version insert.
        """
        member = self._find_member(group_id, requestor_id)
        if not member:
            raise Unauthorized("Anda bukan anggota grup ini.")

        document = self.session.get(Document, document_id)
        if not document or document.group_id != group_id or document.current_version_id is None:
            raise NotFound("Dokumen tidak ditemukan di dalam grup ini.")

        if member.role != GroupRole.ADMIN_GROUP and document.user_id != requestor_id:
            raise Unauthorized("Hanya admin grup atau pemilik dokumen yang dapat memfinalisasi dokumen.")

        pending = self.tracker.count_pending(document_id)
        if pending > 0:
            raise IncompleteSignatures(pending)

        if document.status == DocumentStatus.COMPLETED:
            raise AlreadyFinalized()
        if not DocumentStateService.can_transition(document.status, DocumentStatus.COMPLETED):
            raise InvalidStatusTransition(document.status, DocumentStatus.COMPLETED)

        group = self.session.get(Group, group_id)
        owner_is_premium = UserService.is_user_premium(self.session, group.admin_id)
        quota.check_version_limit(DocumentService.count_versions(self.session, document_id), owner_is_premium)

        signatures = (
            self.session.query(GroupSignature)
            .filter(
                GroupSignature.document_version_id == document.current_version_id,
                GroupSignature.status == SignatureStatus.FINAL
            )
            .order_by(GroupSignature.id)
            .all()
        )
        if not signatures:
            raise NoSignaturesFound()

        reference = signatures[0]
        verification_url = build_verification_url(reference.id, kind="GROUP")
        signed = self.pdf_service.generate_signed_pdf(
            document.current_version_id,
            [SignaturePlacement.from_record(sig) for sig in signatures],
            SigningOptions(display_qr_code=True, verification_url=verification_url),
        )

        new_hash = sha256_hex(signed.signed_file_buffer)
        try:
            if signed.access_code:
                reference.access_code = signed.access_code
            version = DocumentService.add_version(
                self.session, document, requestor_id, signed.public_url, new_hash, signed_file_hash=new_hash
            )
            result = self.session.execute(
                update(Document)
                .where(
                    Document.id == document_id,
                    Document.status != DocumentStatus.COMPLETED,
                    ~exists().where(
                        GroupDocumentSigner.document_id == document_id,
                        GroupDocumentSigner.status == SignerStatus.PENDING
                    )
                )
                .values(
                    current_version_id=version.id,
                    status=DocumentStatus.COMPLETED,
                    signed_file_url=signed.public_url,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise AlreadyFinalized()
            self.session.commit()
        except AlreadyFinalized:
            self.session.rollback()
            pending = self.tracker.count_pending(document_id)
            if pending > 0:
                raise IncompleteSignatures(pending)
            raise
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(document)

        logger.info("Document %s finalized by user %s as version %s", document_id, requestor_id, version.id)
        safe_publish(
            self.publisher, group_room(group_id), GROUP_DOCUMENT_UPDATE,
            {"action": "finalized", "document_id": document_id, "title": document.title, "actor_id": requestor_id},
        )
        safe_audit(
            self.audit, "FINALIZE_GROUP_DOCUMENT", requestor_id, document_id,
            f"Dokumen grup difinalisasi: {document.title}", request_context,
        )
        return {
            "message": "Dokumen berhasil difinalisasi.",
            "document": document,
            "url": signed.public_url,
            "access_code": signed.access_code,
        }

    # Helpers

    def _find_member(self, group_id: int, user_id: int) -> Optional[GroupMember]:
        return (
            self.session.query(GroupMember)
            .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
            .first()
        )

    def _require_member(self, group_id: int, user_id: int, message: str = "Anda bukan anggota grup ini.") -> GroupMember:
        member = self._find_member(group_id, user_id)
        if not member:
            raise Unauthorized(message)
        return member

    def _require_admin(self, group_id: int, user_id: int, message: str) -> GroupMember:
        member = self._find_member(group_id, user_id)
        if not member or member.role != GroupRole.ADMIN_GROUP:
            raise Unauthorized(message)
        return member

    def _get_group_document(self, group_id: int, document_id: int) -> Document:
        document = self.session.get(Document, document_id)
        if not document or document.group_id != group_id:
            raise NotFound("Dokumen tidak ditemukan di dalam grup ini.")
        return document

    def _check_member_quota(self, group: Group):
        count = self.session.query(func.count(GroupMember.id)).filter(GroupMember.group_id == group.id).scalar()
        quota.check_group_member_limit(count, UserService.is_user_premium(self.session, group.admin_id))

    def _check_document_quota(self, group: Group):
        count = self.session.query(func.count(Document.id)).filter(Document.group_id == group.id).scalar()
        quota.check_group_document_limit(count, UserService.is_user_premium(self.session, group.admin_id))

    def _delete_member_drafts(self, group_id: int, user_id: int) -> int:
        drafts = (
            self.session.query(GroupSignature)
            .join(DocumentVersion, DocumentVersion.id == GroupSignature.document_version_id)
            .join(Document, Document.id == DocumentVersion.document_id)
            .filter(
                Document.group_id == group_id,
                GroupSignature.signer_id == user_id,
                GroupSignature.status == SignatureStatus.DRAFT
            )
            .all()
        )
        for draft in drafts:
            self.session.delete(draft)
        return len(drafts)
