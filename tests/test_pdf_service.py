import io
import re

import pytest
from PyPDF2 import PdfReader

from esign.common.errors import BadRequest, DocumentEncrypted, MissingSignatureConfig, NotFound
from esign.common.hashing import sha256_hex
from esign.documents.services.document_service import DocumentService
from esign.documents.services.pdf_service import (
    PdfService,
    SignaturePlacement,
    SigningOptions,
    fit_image_in_box,
    generate_access_code,
    signature_box,
)

from conftest import create_encrypted_pdf_bytes, create_pdf_bytes, create_user, signature_data_url


def placement(**overrides):
    data = dict(position_x=0.5, position_y=0.5, width=0.2, height=0.05,
                signature_image=signature_data_url(), page_number=1, signer_name="User 1")
    data.update(overrides)
    return SignaturePlacement(**data)


def uploaded_version(session, storage, contents=None):
    create_user(session, 1)
    document = DocumentService.upload_document(
        session, storage, 1, contents or create_pdf_bytes(pages=2), "kontrak.pdf", "application/pdf"
    )
    return document.current_version_id


def test_signature_box_flips_y_axis():
    assert signature_box(placement(), 600, 800) == pytest.approx((300, 360, 120, 40))


def test_image_is_fitted_and_centered():
    # 4:1 image in a 3:1 box fills the width
    assert fit_image_in_box(200, 50, (300, 360, 120, 40)) == pytest.approx((300, 365, 120, 30))
    # 1:1 image fills the height
    assert fit_image_in_box(50, 50, (300, 360, 120, 40)) == pytest.approx((340, 360, 40, 40))


def test_access_code_is_six_digits():
    for _ in range(20):
        assert re.fullmatch(r"\d{6}", generate_access_code())


def test_sign_without_qr(session, storage):
    version_id = uploaded_version(session, storage)
    signed = PdfService(session, storage).generate_signed_pdf(version_id, [placement()])

    assert signed.access_code is None
    assert len(PdfReader(io.BytesIO(signed.signed_file_buffer)).pages) == 2
    assert signed.file_hash == sha256_hex(signed.signed_file_buffer)
    assert storage.download_file_as_buffer(signed.public_url) == signed.signed_file_buffer


def test_sign_with_qr_keeps_page_count(session, storage):
    version_id = uploaded_version(session, storage)
    signed = PdfService(session, storage).generate_signed_pdf(
        version_id,
        [placement(), placement(page_number=2, position_x=0.1)],
        SigningOptions(display_qr_code=True, verification_url="http://verify.test/verify/1"),
    )

    assert re.fullmatch(r"\d{6}", signed.access_code)
    assert len(PdfReader(io.BytesIO(signed.signed_file_buffer)).pages) == 2


def test_audit_page_is_opt_in(session, storage):
    version_id = uploaded_version(session, storage)
    signed = PdfService(session, storage).generate_signed_pdf(
        version_id,
        [placement()],
        SigningOptions(
            display_qr_code=True,
            verification_url="http://verify.test/verify/1",
            append_audit_page=True,
        ),
    )

    reader = PdfReader(io.BytesIO(signed.signed_file_buffer))
    assert len(reader.pages) == 3
    assert "/signed-documents/1/" in signed.public_url


def test_out_of_range_page_is_skipped(session, storage):
    version_id = uploaded_version(session, storage)
    signed = PdfService(session, storage).generate_signed_pdf(version_id, [placement(page_number=9)])
    assert len(PdfReader(io.BytesIO(signed.signed_file_buffer)).pages) == 2


def test_encrypted_source_is_rejected(session, storage):
    version_id = uploaded_version(session, storage, create_encrypted_pdf_bytes())
    with pytest.raises(DocumentEncrypted):
        PdfService(session, storage).generate_signed_pdf(version_id, [placement()])


def test_bad_image_is_rejected(session, storage):
    version_id = uploaded_version(session, storage)
    with pytest.raises(BadRequest):
        PdfService(session, storage).generate_signed_pdf(
            version_id, [placement(signature_image="data:image/png;base64,bm90IGFuIGltYWdl")]
        )


def test_missing_inputs(session, storage):
    version_id = uploaded_version(session, storage)
    service = PdfService(session, storage)
    with pytest.raises(MissingSignatureConfig):
        service.generate_signed_pdf(version_id, [])
    with pytest.raises(NotFound):
        service.generate_signed_pdf(999, [placement()])
