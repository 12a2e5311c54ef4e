"""
PDF signing engine.

Burns signature images (and optionally a verification QR code) into a stored
document version and uploads the result. Placement inputs are fractions of
the page measured from the top-left corner; PDF user space starts at the
bottom-left, so the y axis is flipped here.
"""
import base64
import binascii
import io
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import qrcode
from PIL import Image, UnidentifiedImageError
from PyPDF2 import PdfReader, PdfWriter
from PyPDF2.errors import PdfReadError
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from esign.common.errors import BadRequest, DocumentEncrypted, MissingSignatureConfig, NotFound
from esign.common.hashing import sha256_hex
from esign.common.storage import FileStorage
from esign.documents.models.document import DocumentVersion
from settings import settings

logger = logging.getLogger(__name__)

QR_X = 40
QR_Y = 40
QR_SIZE = 80


@dataclass
class SignaturePlacement:
    """What the engine needs from a group or package signature row."""

    position_x: float
    position_y: float
    width: float
    height: float
    signature_image: str
    page_number: int = 1
    signer_name: Optional[str] = None
    signed_at: Optional[datetime] = None
    ip_address: Optional[str] = None

    @classmethod
    def from_record(cls, record) -> "SignaturePlacement":
        signer = getattr(record, "signer", None)
        return cls(
            position_x=record.position_x,
            position_y=record.position_y,
            width=record.width,
            height=record.height,
            signature_image=record.signature_image,
            page_number=record.page_number or 1,
            signer_name=signer.name if signer is not None else None,
            signed_at=record.signed_at,
            ip_address=record.ip_address,
        )


@dataclass
class SigningOptions:
    display_qr_code: bool = False
    verification_url: Optional[str] = None
    protect_with_pin: bool = True
    # Extra page listing signers, the verification link and the PIN
    append_audit_page: bool = False


@dataclass
class SignedPdf:
    signed_file_buffer: bytes
    public_url: str
    access_code: Optional[str] = None
    file_hash: str = field(init=False)

    def __post_init__(self):
        self.file_hash = sha256_hex(self.signed_file_buffer)


def signature_box(sig: SignaturePlacement, page_width: float, page_height: float) -> tuple[float, float, float, float]:
    """Absolute (x, y, width, height) of the signature box, origin bottom-left."""
    box_w = sig.width * page_width
    box_h = sig.height * page_height
    x = sig.position_x * page_width
    y = page_height - sig.position_y * page_height - box_h
    return x, y, box_w, box_h


def fit_image_in_box(
    image_width: float,
    image_height: float,
    box: tuple[float, float, float, float],
) -> tuple[float, float, float, float]:
    """
    Scales the image to fit inside the box keeping its aspect ratio and
    centers it. Returns the drawing rectangle (x, y, width, height).
    """
    x, y, box_w, box_h = box
    image_ratio = image_width / image_height
    box_ratio = box_w / box_h
    if image_ratio > box_ratio:
        final_w = box_w
        final_h = final_w / image_ratio
    else:
        final_h = box_h
        final_w = final_h * image_ratio
    return x + (box_w - final_w) / 2, y + (box_h - final_h) / 2, final_w, final_h


def generate_access_code(length: Optional[int] = None) -> str:
    length = length or settings.access_code_length
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def decode_signature_image(data_url: str) -> Image.Image:
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        raw = base64.b64decode(payload, validate=True)
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (binascii.Error, ValueError, UnidentifiedImageError) as e:
        raise BadRequest("Gambar tanda tangan tidak valid.") from e
    return image.convert("RGBA")


def make_qr_image(url: str) -> Image.Image:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=4,
        border=1,
    )
    qr.add_data(url)
    qr.make(fit=True)
    return qr.make_image(fill_color="black", back_color="white").get_image().convert("RGB")


class PdfService:
    def __init__(self, session: Session, storage: FileStorage):
        self.session = session
        self.storage = storage

    def generate_signed_pdf(
        self,
        document_version_id: int,
        signatures: list[SignaturePlacement],
        options: Optional[SigningOptions] = None,
    ) -> SignedPdf:
        options = options or SigningOptions()

        version = self.session.get(DocumentVersion, document_version_id)
        if not version:
            raise NotFound(f"Versi dokumen dengan ID '{document_version_id}' tidak ditemukan.")
        if not signatures:
            raise MissingSignatureConfig()

        source = self.storage.download_file_as_buffer(version.url)
        reader = self._open(source)

        with_qr = bool(options.display_qr_code and options.verification_url)
        access_code = generate_access_code() if with_qr and options.protect_with_pin else None

        writer = PdfWriter()
        page_count = len(reader.pages)
        by_page: dict[int, list[SignaturePlacement]] = {}
        for sig in signatures:
            if not sig.signature_image:
                logger.warning("Signature without image skipped on version %s", version.id)
                continue
            index = sig.page_number - 1
            if index < 0 or index >= page_count:
                logger.warning(
                    "Signature page %s outside document (%s pages), skipped", sig.page_number, page_count
                )
                continue
            by_page.setdefault(index, []).append(sig)

        for index, page in enumerate(reader.pages):
            width = float(page.mediabox.width)
            height = float(page.mediabox.height)
            placed = by_page.get(index, [])
            stamp_qr = with_qr and index == page_count - 1
            if placed or stamp_qr:
                overlay = self._make_overlay(
                    width, height, placed, options.verification_url if stamp_qr else None
                )
                page.merge_page(PdfReader(io.BytesIO(overlay)).pages[0])
            writer.add_page(page)

        if with_qr and options.append_audit_page:
            audit_pdf = self._make_audit_page(signatures, options.verification_url, access_code)
            for audit_page in PdfReader(io.BytesIO(audit_pdf)).pages:
                writer.add_page(audit_page)

        out = io.BytesIO()
        writer.write(out)
        signed_bytes = out.getvalue()

        file_hash = sha256_hex(signed_bytes)
        signed_path = f"signed-documents/{version.document.user_id}/{file_hash}.pdf"
        public_url = self.storage.upload_file(signed_path, signed_bytes, "application/pdf")
        logger.info("Signed version %s with %d signature(s) -> %s", version.id, len(signatures), signed_path)

        return SignedPdf(signed_file_buffer=signed_bytes, public_url=public_url, access_code=access_code)

    @staticmethod
    def _open(source: bytes) -> PdfReader:
        try:
            reader = PdfReader(io.BytesIO(source))
        except PdfReadError as e:
            raise BadRequest(f"Gagal memproses PDF: {e}") from e
        if reader.is_encrypted:
            raise DocumentEncrypted()
        try:
            _ = len(reader.pages)
        except PdfReadError as e:
            raise BadRequest(f"Gagal memproses PDF: {e}") from e
        return reader

    @staticmethod
    def _make_overlay(
        page_w: float,
        page_h: float,
        placed: list[SignaturePlacement],
        qr_url: Optional[str],
    ) -> bytes:
        """
        One overlay page the size of the target page holding every signature
        placed on it and, on the last page, the QR code.
        """
        buf = io.BytesIO()
        c = canvas.Canvas(buf, pagesize=(page_w, page_h))

        for sig in placed:
            image = decode_signature_image(sig.signature_image)
            box = signature_box(sig, page_w, page_h)
            x, y, w, h = fit_image_in_box(image.width, image.height, box)
            c.drawImage(ImageReader(image), x, y, width=w, height=h, mask="auto")

        if qr_url:
            c.drawImage(ImageReader(make_qr_image(qr_url)), QR_X, QR_Y, width=QR_SIZE, height=QR_SIZE)

        c.save()
        return buf.getvalue()

    @staticmethod
    def _make_audit_page(
        signatures: list[SignaturePlacement],
        verification_url: str,
        access_code: Optional[str],
    ) -> bytes:
        buf = io.BytesIO()
        page_w, page_h = A4
        c = canvas.Canvas(buf, pagesize=A4)
        y = page_h - 72

        c.setFont("Helvetica-Bold", 16)
        c.drawString(72, y, "Jejak Audit Tanda Tangan")
        y -= 32

        c.setFont("Helvetica", 10)
        for number, sig in enumerate(signatures, start=1):
            signed_at = sig.signed_at.strftime("%Y-%m-%d %H:%M UTC") if sig.signed_at else "-"
            c.drawString(72, y, f"{number}. {sig.signer_name or 'Penanda tangan'}  |  {signed_at}  |  IP {sig.ip_address or '-'}")
            y -= 16
            if y < 160:
                c.showPage()
                c.setFont("Helvetica", 10)
                y = page_h - 72

        y -= 16
        c.drawString(72, y, f"Verifikasi: {verification_url}")
        if access_code:
            y -= 16
            c.drawString(72, y, f"Kode akses (PIN): {access_code}")

        c.drawImage(ImageReader(make_qr_image(verification_url)), page_w - 72 - QR_SIZE, 72, width=QR_SIZE, height=QR_SIZE)
        c.save()
        return buf.getvalue()
