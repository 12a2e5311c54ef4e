import pytest

from esign.common.errors import AlreadyFinalized, BadRequest, NotFound, PolicyLimitExceeded
from esign.documents.models.document import Document, DocumentStatus
from esign.documents.services.document_service import DocumentService
from esign.groups.services.signer_tracker import SignerTracker
from esign.packages.models.package import PackageSignature, PackageStatus
from esign.packages.services.package_service import PackageService

from conftest import create_encrypted_pdf_bytes, create_pdf_bytes, create_user, setup_group, signature_payload


def upload_documents(session, storage, count, user_id=1):
    return [
        DocumentService.upload_document(
            session, storage, user_id, create_pdf_bytes(), f"dokumen{n}.pdf", "application/pdf"
        )
        for n in range(count)
    ]


def entry_for(package_document, **overrides):
    data = signature_payload(package_doc_id=package_document.id)
    data.update(overrides)
    return data


def test_partial_failure_is_reported_per_document(session, storage, audit):
    create_user(session, 1)
    first, second = upload_documents(session, storage, 2)
    service = PackageService(session, storage, audit)
    package = service.create_package(1, "Paket kontrak", [first.id, second.id])

    result = service.sign_package(package.id, 1, [entry_for(package.documents[0])], "10.0.0.1", "pytest")

    assert result["status"] == PackageStatus.PARTIAL_FAILURE.value
    assert result["success"] == [first.id]
    assert len(result["failed"]) == 1
    assert result["failed"][0]["document_id"] == second.id
    assert "konfigurasi" in result["failed"][0]["error"]

    assert session.get(Document, first.id).status == DocumentStatus.COMPLETED
    assert DocumentService.count_versions(session, first.id) == 2
    assert session.get(Document, second.id).status == DocumentStatus.DRAFT
    assert DocumentService.count_versions(session, second.id) == 1
    assert audit.entries[-1][0] == "SIGN_PACKAGE"


def test_retry_only_signs_what_is_left(session, storage):
    create_user(session, 1)
    first, second = upload_documents(session, storage, 2)
    service = PackageService(session, storage)
    package = service.create_package(1, "Paket", [first.id, second.id])
    first_pd, second_pd = package.documents
    service.sign_package(package.id, 1, [entry_for(first_pd)])

    result = service.sign_package(package.id, 1, [entry_for(first_pd), entry_for(second_pd)])

    assert result["status"] == PackageStatus.COMPLETED.value
    assert sorted(result["success"]) == sorted([first.id, second.id])
    assert result["failed"] == []
    assert DocumentService.count_versions(session, first.id) == 2
    assert session.query(PackageSignature).count() == 2

    with pytest.raises(AlreadyFinalized):
        service.sign_package(package.id, 1, [])


def test_signed_version_and_access_code(session, storage):
    create_user(session, 1)
    (document,) = upload_documents(session, storage, 1)
    service = PackageService(session, storage)
    package = service.create_package(1, "Paket", [document.id])
    package_document = package.documents[0]
    original_version_id = package_document.doc_version_id

    service.sign_package(package.id, 1, [entry_for(package_document)])

    session.refresh(package_document)
    assert package_document.signed_at is not None
    assert package_document.doc_version_id != original_version_id
    assert package_document.doc_version.signed_file_hash
    signature = session.query(PackageSignature).one()
    assert signature.access_code and len(signature.access_code) == 6


def test_without_qr_there_is_no_access_code(session, storage):
    create_user(session, 1)
    (document,) = upload_documents(session, storage, 1)
    service = PackageService(session, storage)
    package = service.create_package(1, "Paket", [document.id])

    service.sign_package(package.id, 1, [entry_for(package.documents[0], display_qr_code=False)])
    assert session.query(PackageSignature).one().access_code is None


def test_package_size_limit(session, storage):
    create_user(session, 1)
    documents = upload_documents(session, storage, 4)
    service = PackageService(session, storage)
    with pytest.raises(PolicyLimitExceeded):
        service.create_package(1, "Paket", [d.id for d in documents])
    # duplicates count once
    package = service.create_package(1, "Paket", [documents[0].id, documents[0].id, documents[1].id])
    assert len(package.documents) == 2


def test_create_package_validation(session, storage):
    create_user(session, 1)
    create_user(session, 2)
    (document,) = upload_documents(session, storage, 1)
    service = PackageService(session, storage)

    with pytest.raises(BadRequest):
        service.create_package(1, "Paket", [])
    with pytest.raises(NotFound):
        service.create_package(2, "Paket", [document.id])

    document.status = DocumentStatus.COMPLETED
    session.commit()
    with pytest.raises(BadRequest) as exc:
        service.create_package(1, "Paket", [document.id])
    assert "sudah selesai" in exc.value.message


def test_package_details_are_owner_only(session, storage):
    create_user(session, 1)
    (document,) = upload_documents(session, storage, 1)
    service = PackageService(session, storage)
    package = service.create_package(1, "Paket", [document.id])
    assert service.get_package_details(package.id, 1).id == package.id
    with pytest.raises(NotFound):
        service.get_package_details(package.id, 2)


def test_failed_document_leaves_nothing_behind(session, storage):
    create_user(session, 1)
    good = DocumentService.upload_document(
        session, storage, 1, create_pdf_bytes(), "bersih.pdf", "application/pdf"
    )
    locked = DocumentService.upload_document(
        session, storage, 1, create_encrypted_pdf_bytes(), "terkunci.pdf", "application/pdf"
    )
    service = PackageService(session, storage)
    package = service.create_package(1, "Paket", [locked.id, good.id])
    locked_pd, good_pd = package.documents

    # the encrypted source fails after its signature rows were flushed
    result = service.sign_package(package.id, 1, [entry_for(locked_pd), entry_for(good_pd)])

    assert result["status"] == PackageStatus.PARTIAL_FAILURE.value
    assert result["success"] == [good.id]
    assert [f["document_id"] for f in result["failed"]] == [locked.id]
    assert len(result["success"]) + len(result["failed"]) == len(package.documents)

    assert session.query(PackageSignature).filter(
        PackageSignature.package_document_id == locked_pd.id
    ).count() == 0
    assert DocumentService.count_versions(session, locked.id) == 1
    assert session.get(Document, locked.id).status == DocumentStatus.DRAFT
    session.refresh(locked_pd)
    assert locked_pd.signed_at is None

    assert session.get(Document, good.id).status == DocumentStatus.COMPLETED
    assert session.query(PackageSignature).filter(
        PackageSignature.package_document_id == good_pd.id
    ).count() == 1


def test_version_quota_applies_per_document(session, storage):
    create_user(session, 1)
    crowded, fresh = upload_documents(session, storage, 2)
    for number in range(4):
        DocumentService.add_version(session, crowded, 1, f"http://files.test/v{number}.pdf", f"hash{number}")
    session.commit()
    service = PackageService(session, storage)
    package = service.create_package(1, "Paket", [crowded.id, fresh.id])
    crowded_pd, fresh_pd = package.documents

    result = service.sign_package(package.id, 1, [entry_for(crowded_pd), entry_for(fresh_pd)])

    assert result["success"] == [fresh.id]
    assert result["failed"][0]["document_id"] == crowded.id
    assert "Batas revisi" in result["failed"][0]["error"]
    assert DocumentService.count_versions(session, crowded.id) == 5
    assert session.get(Document, crowded.id).status == DocumentStatus.DRAFT


def test_group_documents_cannot_be_packaged(session, storage):
    group_service, group = setup_group(session, storage, member_ids=(2,))
    document = group_service.upload_group_document(
        1, group.id, create_pdf_bytes(), "grup.pdf", "application/pdf", signer_ids=[2]
    )
    with pytest.raises(BadRequest) as exc:
        PackageService(session, storage).create_package(1, "Paket", [document.id])
    assert "alur grup" in exc.value.message


def test_document_moved_into_group_is_not_signed(session, storage):
    group_service, group = setup_group(session, storage, member_ids=(2, 3))
    (document,) = upload_documents(session, storage, 1)
    service = PackageService(session, storage)
    package = service.create_package(1, "Paket", [document.id])

    group_service.assign_document_to_group(document.id, group.id, 1, signer_ids=[2, 3])
    result = service.sign_package(package.id, 1, [entry_for(package.documents[0])])

    assert result["success"] == []
    assert result["failed"][0]["document_id"] == document.id
    assert session.get(Document, document.id).status == DocumentStatus.PENDING
    assert SignerTracker(session).count_pending(document.id) == 2
    assert DocumentService.count_versions(session, document.id) == 1
    assert session.query(PackageSignature).count() == 0
