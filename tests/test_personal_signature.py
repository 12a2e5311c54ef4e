import re

import pytest

from esign.common.errors import AlreadyFinalized, BadRequest, DocumentEncrypted, MissingSignatureConfig, Unauthorized
from esign.documents.models.document import Document, DocumentStatus
from esign.documents.models.personal_signature import PersonalSignature
from esign.documents.services.document_service import DocumentService
from esign.documents.services.personal_signature_service import PersonalSignatureService
from esign.verification.services.verification_service import SignatureKind, VerificationService

from conftest import create_encrypted_pdf_bytes, create_pdf_bytes, create_user, setup_group, signature_payload


def upload(session, storage, user_id=1, contents=None):
    return DocumentService.upload_document(
        session, storage, user_id, contents or create_pdf_bytes(), "surat.pdf", "application/pdf"
    )


def test_signing_completes_document_with_new_version(session, storage, audit):
    create_user(session, 1)
    document = upload(session, storage)
    original_version_id = document.current_version_id

    result = PersonalSignatureService(session, storage, audit).add_personal_signature(
        1, document.id, [signature_payload(), signature_payload(position_y=0.8)],
        request_context={"ip_address": "10.2.2.2", "user_agent": "pytest"},
    )

    assert re.fullmatch(r"\d{6}", result["access_code"])
    assert document.status == DocumentStatus.COMPLETED
    assert document.current_version_id != original_version_id
    assert document.signed_file_url == result["url"]
    assert document.current_version.signed_file_hash
    assert DocumentService.count_versions(session, document.id) == 2

    rows = session.query(PersonalSignature).order_by(PersonalSignature.id).all()
    assert len(rows) == 2
    assert {r.document_version_id for r in rows} == {document.current_version_id}
    assert rows[0].access_code == result["access_code"]
    assert rows[1].access_code is None
    assert rows[0].ip_address == "10.2.2.2"
    assert audit.entries[-1][0] == "SIGN_DOCUMENT_PERSONAL"

    with pytest.raises(AlreadyFinalized):
        PersonalSignatureService(session, storage).add_personal_signature(1, document.id, [signature_payload()])


def test_verification_of_personal_signature(session, storage):
    create_user(session, 1)
    document = upload(session, storage)
    result = PersonalSignatureService(session, storage).add_personal_signature(
        1, document.id, [signature_payload()], request_context={"ip_address": "10.3.3.3"}
    )
    signed_bytes = storage.download_file_as_buffer(result["url"])
    verification = VerificationService(session)

    locked = verification.get_verification_details(result["signature_id"])
    assert locked["is_locked"] is True
    assert locked["type"] == "PERSONAL"
    assert locked["document_title"] == "surat.pdf"

    unlocked = verification.unlock(result["signature_id"], result["access_code"], SignatureKind.PERSONAL)
    assert unlocked["require_upload"] is True
    assert unlocked["stored_file_hash"] == document.current_version.signed_file_hash

    valid = verification.verify_uploaded_file(
        result["signature_id"], signed_bytes, result["access_code"], SignatureKind.PERSONAL
    )
    assert valid["verification_status"] == "VALID"
    assert valid["signer_email"] == "user1@mail.test"
    assert valid["ip_address"] == "10.3.3.3"

    tampered = verification.verify_uploaded_file(
        result["signature_id"], signed_bytes + b"%", result["access_code"], SignatureKind.PERSONAL
    )
    assert tampered["verification_status"] == "INVALID"


def test_without_qr_details_are_public(session, storage):
    create_user(session, 1)
    document = upload(session, storage)
    result = PersonalSignatureService(session, storage).add_personal_signature(
        1, document.id, [signature_payload()], display_qr_code=False
    )

    assert result["access_code"] is None
    details = VerificationService(session).get_verification_details(result["signature_id"], SignatureKind.PERSONAL)
    assert details["is_locked"] is False
    assert details["signer_name"] == "User 1"
    assert details["stored_file_hash"] == document.current_version.signed_file_hash


def test_only_owner_signs_personal_documents(session, storage):
    create_user(session, 1)
    create_user(session, 2)
    document = upload(session, storage)
    service = PersonalSignatureService(session, storage)

    with pytest.raises(Unauthorized):
        service.add_personal_signature(2, document.id, [signature_payload()])
    with pytest.raises(MissingSignatureConfig):
        service.add_personal_signature(1, document.id, [])


def test_group_documents_are_refused(session, storage):
    group_service, group = setup_group(session, storage, member_ids=(2,))
    document = group_service.upload_group_document(
        1, group.id, create_pdf_bytes(), "grup.pdf", "application/pdf", signer_ids=[2]
    )
    with pytest.raises(BadRequest):
        PersonalSignatureService(session, storage).add_personal_signature(1, document.id, [signature_payload()])
    assert session.query(PersonalSignature).count() == 0


def test_encrypted_source_rolls_back(session, storage):
    create_user(session, 1)
    document = upload(session, storage, contents=create_encrypted_pdf_bytes())

    with pytest.raises(DocumentEncrypted):
        PersonalSignatureService(session, storage).add_personal_signature(1, document.id, [signature_payload()])

    assert session.query(PersonalSignature).count() == 0
    assert DocumentService.count_versions(session, document.id) == 1
    assert session.get(Document, document.id).status == DocumentStatus.DRAFT
