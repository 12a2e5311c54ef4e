from datetime import timedelta

import pytest

from esign.common.clock import utcnow
from esign.common.errors import (
    AlreadyMember,
    BadRequest,
    InvalidInvitation,
    PolicyLimitExceeded,
    Unauthorized,
)
from esign.common.events import GROUP_DOCUMENT_UPDATE, GROUP_MEMBER_UPDATE
from esign.documents.models.document import DocumentStatus
from esign.groups.models.group import GroupMember
from esign.groups.models.group_signature import GroupSignature
from esign.groups.services.group_signature_service import GroupSignatureService
from esign.groups.services.signer_tracker import SignerTracker
from esign.notifications.models.notification import Notification
from esign.notifications.services.notification_service import NotificationEventPublisher

from conftest import create_pdf_bytes, create_user, setup_group, signature_payload


def test_free_owner_can_own_one_group(session, storage):
    service, _ = setup_group(session, storage, member_ids=())
    with pytest.raises(PolicyLimitExceeded):
        service.create_group(1, "Grup kedua")


def test_member_limit_follows_owner_tier(session, storage):
    # admin + 4 members fills a free group
    service, group = setup_group(session, storage, member_ids=(2, 3, 4, 5))
    member_count = session.query(GroupMember).filter(GroupMember.group_id == group.id).count()
    assert member_count == 5

    with pytest.raises(PolicyLimitExceeded) as exc:
        service.create_invitation(group.id, 1)
    assert "5 anggota" in exc.value.message
    assert "anggota tanpa batas" in exc.value.message


def test_premium_owner_has_no_member_limit(session, storage):
    service, group = setup_group(session, storage, member_ids=(2, 3, 4, 5), admin_premium=True)
    invitation = service.create_invitation(group.id, 1)
    create_user(session, 6)
    member = service.accept_invitation(invitation.token, 6)
    assert member.group_id == group.id


def test_invitation_rules(session, storage, publisher):
    service, group = setup_group(session, storage, member_ids=(2,), publisher=publisher)
    invitation = service.create_invitation(group.id, 1)

    with pytest.raises(AlreadyMember):
        service.accept_invitation(invitation.token, 2)
    with pytest.raises(InvalidInvitation):
        service.accept_invitation("nope", 3)
    with pytest.raises(Unauthorized):
        service.create_invitation(group.id, 2)

    invitation.expires_at = utcnow() - timedelta(minutes=1)
    session.commit()
    create_user(session, 3)
    with pytest.raises(InvalidInvitation):
        service.accept_invitation(invitation.token, 3)

    joined = [p for _, event, p in publisher.events if event == GROUP_MEMBER_UPDATE]
    assert joined == [{"action": "joined", "user_id": 2, "actor_id": 2}]


def test_remove_member_drops_drafts_and_requests(session, storage, publisher, audit):
    service, group = setup_group(session, storage, member_ids=(2, 3), publisher=publisher, audit=audit)
    only_two = service.upload_group_document(
        1, group.id, create_pdf_bytes(), "a.pdf", "application/pdf", signer_ids=[2]
    )
    both = service.upload_group_document(
        1, group.id, create_pdf_bytes(), "b.pdf", "application/pdf", signer_ids=[2, 3]
    )
    GroupSignatureService(session).save_draft(2, both.id, signature_payload())

    result = service.remove_member(group.id, 1, 2)

    assert result["removed_signer_requests"] == 2
    assert only_two.status == DocumentStatus.DRAFT
    assert both.status == DocumentStatus.PENDING
    assert SignerTracker(session).count_pending(both.id) == 1
    assert session.query(GroupSignature).filter(GroupSignature.signer_id == 2).count() == 0
    assert publisher.events[-1][2] == {"action": "kicked", "user_id": 2, "actor_id": 1}
    assert audit.entries[-1][0] == "REMOVE_GROUP_MEMBER"


def test_owner_cannot_be_removed(session, storage):
    service, group = setup_group(session, storage, member_ids=(2,))
    with pytest.raises(BadRequest):
        service.remove_member(group.id, 1, 1)
    with pytest.raises(Unauthorized):
        service.remove_member(group.id, 2, 1)


def test_group_document_quota(session, storage):
    service, group = setup_group(session, storage, member_ids=())
    for number in range(10):
        service.upload_group_document(1, group.id, create_pdf_bytes(), f"d{number}.pdf", "application/pdf")
    with pytest.raises(PolicyLimitExceeded) as exc:
        service.upload_group_document(1, group.id, create_pdf_bytes(), "extra.pdf", "application/pdf")
    assert "Penyimpanan grup penuh (10 dokumen)" in exc.value.message


def test_new_document_event(session, storage, publisher):
    service, group = setup_group(session, storage, member_ids=(2,), publisher=publisher)
    document = service.upload_group_document(
        1, group.id, create_pdf_bytes(), "a.pdf", "application/pdf", signer_ids=[2]
    )
    room, event, payload = publisher.events[-1]
    assert room == f"group_{group.id}"
    assert event == GROUP_DOCUMENT_UPDATE
    assert payload["action"] == "new_document"
    assert payload["document_id"] == document.id


def test_notifications_skip_the_actor(session, storage):
    service, group = setup_group(
        session, storage, member_ids=(2, 3), publisher=NotificationEventPublisher(session)
    )
    service.upload_group_document(1, group.id, create_pdf_bytes(), "a.pdf", "application/pdf")

    recipients = sorted(
        n.user_id for n in session.query(Notification).filter(Notification.event == GROUP_DOCUMENT_UPDATE)
    )
    assert recipients == [2, 3]
