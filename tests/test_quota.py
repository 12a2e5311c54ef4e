from datetime import timedelta

import pytest

from esign.common import quota
from esign.common.clock import utcnow
from esign.common.errors import PolicyLimitExceeded
from esign.documents.models.user import UserStatus
from esign.documents.services.user_service import UserService

from conftest import create_user


def test_free_and_premium_limits():
    free = quota.limits_for(False)
    premium = quota.limits_for(True)
    assert (free.group_documents, free.document_versions, free.group_members) == (10, 5, 5)
    assert (free.groups_owned, free.package_documents) == (1, 3)
    assert (premium.group_documents, premium.document_versions, premium.group_members) == (100, 20, None)
    assert (premium.groups_owned, premium.package_documents) == (10, 20)
    assert free.upload_size_bytes == 10 * quota.MB
    assert premium.upload_size_bytes == 50 * quota.MB


def test_version_limit_blocks_at_limit():
    quota.check_version_limit(4, is_premium=False)
    with pytest.raises(PolicyLimitExceeded) as exc:
        quota.check_version_limit(5, is_premium=False)
    assert exc.value.limit == 5
    assert "Batas revisi dokumen tercapai (5 versi)" in exc.value.message
    assert "Upgrade ke Premium untuk batas 20 versi." in exc.value.message


def test_premium_message_has_no_upgrade_hint():
    with pytest.raises(PolicyLimitExceeded) as exc:
        quota.check_version_limit(20, is_premium=True)
    assert exc.value.upgrade_hint is None
    assert "Upgrade" not in exc.value.message


def test_premium_members_are_unlimited():
    quota.check_group_member_limit(1000, is_premium=True)
    with pytest.raises(PolicyLimitExceeded) as exc:
        quota.check_group_member_limit(5, is_premium=False)
    assert "5 anggota" in exc.value.message


def test_package_size_blocks_above_limit():
    quota.check_package_size(3, is_premium=False)
    with pytest.raises(PolicyLimitExceeded) as exc:
        quota.check_package_size(4, is_premium=False)
    assert "Maksimal 3 dokumen per paket." in exc.value.message
    assert "hingga 20 dokumen" in exc.value.message


def test_upload_size():
    quota.check_upload_size(10 * quota.MB, is_premium=False)
    with pytest.raises(PolicyLimitExceeded) as exc:
        quota.check_upload_size(10 * quota.MB + 1, is_premium=False)
    assert "(10MB)" in exc.value.message
    quota.check_upload_size(40 * quota.MB, is_premium=True)


def test_limit_error_serializes_limit():
    with pytest.raises(PolicyLimitExceeded) as exc:
        quota.check_groups_owned_limit(1, is_premium=False)
    body = exc.value.to_dict()
    assert body["code"] == "POLICY_LIMIT_EXCEEDED"
    assert body["limit"] == 1
    assert exc.value.status_code == 403


def test_is_user_premium(session):
    create_user(session, 1)
    create_user(session, 2, premium=True)
    create_user(session, 3, premium=True, premium_until=utcnow() - timedelta(minutes=1))
    user = create_user(session, 4)
    user.user_status = UserStatus.PREMIUM
    session.commit()

    assert UserService.is_user_premium(session, 1) is False
    assert UserService.is_user_premium(session, 2) is True
    assert UserService.is_user_premium(session, 3) is False
    # PREMIUM without an expiry date is not premium
    assert UserService.is_user_premium(session, 4) is False
    assert UserService.is_user_premium(session, 999) is False
