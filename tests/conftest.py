import base64
import io
import os
from datetime import timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

import pytest
from PIL import Image
from PyPDF2 import PdfReader, PdfWriter
from reportlab.pdfgen import canvas
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import create_tables  # noqa: F401  registers every model on Base
from database import Base
from esign.common.audit import AuditLogger
from esign.common.clock import utcnow
from esign.common.events import DomainEventPublisher
from esign.common.storage import LocalFileStorage
from esign.documents.models.user import User, UserStatus

PUBLIC_BASE = "http://files.test"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingPublisher(DomainEventPublisher):
    def __init__(self):
        self.events = []

    def publish(self, room, event, payload):
        self.events.append((room, event, payload))


class RecordingAudit(AuditLogger):
    def __init__(self):
        self.entries = []

    def log(self, action, actor_id, subject_id, description, request_context=None):
        self.entries.append((action, actor_id, subject_id, description, request_context))


@pytest.fixture
def session():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage(tmp_path):
    return LocalFileStorage(str(tmp_path / "files"), PUBLIC_BASE)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def audit():
    return RecordingAudit()


def create_pdf_bytes(pages=1, size=(600, 800), text="Dokumen uji"):
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=size)
    for number in range(1, pages + 1):
        c.drawString(50, size[1] - 50, f"{text} - halaman {number}")
        c.showPage()
    c.save()
    return buf.getvalue()


def create_encrypted_pdf_bytes():
    reader = PdfReader(io.BytesIO(create_pdf_bytes()))
    writer = PdfWriter()
    for page in reader.pages:
        writer.add_page(page)
    writer.encrypt("secret")
    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()


def signature_data_url(width=200, height=50):
    image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    for x in range(10, width - 10):
        image.putpixel((x, height // 2), (0, 0, 160, 255))
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()


def signature_payload(**overrides):
    data = {
        "signature_image": signature_data_url(),
        "position_x": 0.5,
        "position_y": 0.5,
        "width": 0.2,
        "height": 0.05,
        "page_number": 1,
        "method": "canvas",
    }
    data.update(overrides)
    return data


def create_user(session, id, premium=False, premium_until=None):
    if premium and premium_until is None:
        premium_until = utcnow() + timedelta(days=30)
    user = User(
        id=id,
        name=f"User {id}",
        email=f"user{id}@mail.test",
        user_status=UserStatus.PREMIUM if premium else UserStatus.FREE,
        premium_until=premium_until,
        is_active=True,
    )
    session.add(user)
    session.commit()
    return user


def setup_group(session, storage, member_ids=(2, 3), admin_id=1, publisher=None, audit=None,
                admin_premium=False, pdf_service=None):
    """Admin plus members joined through one invitation; returns (service, group)."""
    from esign.groups.services.group_service import GroupService

    create_user(session, admin_id, premium=admin_premium)
    service = GroupService(session, storage, publisher, audit, pdf_service=pdf_service)
    group = service.create_group(admin_id, "Tim Legal")
    if member_ids:
        invitation = service.create_invitation(group.id, admin_id)
        for user_id in member_ids:
            create_user(session, user_id)
            service.accept_invitation(invitation.token, user_id)
    return service, group
