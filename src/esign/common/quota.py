"""
Subscription tier limits.

The functions here are pure: callers resolve ``is_premium`` through the
premium oracle right before the mutation they guard and pass it in.
"""
from dataclasses import dataclass
from typing import Optional

from esign.common.errors import PolicyLimitExceeded

MB = 1024 * 1024


@dataclass(frozen=True)
class TierLimits:
    group_documents: int
    document_versions: int
    group_members: Optional[int]  # None = unlimited
    groups_owned: int
    package_documents: int
    upload_size_bytes: int


FREE_LIMITS = TierLimits(
    group_documents=10,
    document_versions=5,
    group_members=5,
    groups_owned=1,
    package_documents=3,
    upload_size_bytes=10 * MB,
)

PREMIUM_LIMITS = TierLimits(
    group_documents=100,
    document_versions=20,
    group_members=None,
    groups_owned=10,
    package_documents=20,
    upload_size_bytes=50 * MB,
)


def limits_for(is_premium: bool) -> TierLimits:
    return PREMIUM_LIMITS if is_premium else FREE_LIMITS


def _upgrade_hint(is_premium: bool, what: str) -> Optional[str]:
    if is_premium:
        return None
    return f"Upgrade ke Premium untuk {what}."


def check_version_limit(current_count: int, is_premium: bool) -> None:
    limit = limits_for(is_premium).document_versions
    if current_count >= limit:
        raise PolicyLimitExceeded(
            f"Batas revisi dokumen tercapai ({limit} versi).",
            limit=limit,
            upgrade_hint=_upgrade_hint(is_premium, f"batas {PREMIUM_LIMITS.document_versions} versi"),
        )


def check_group_document_limit(current_count: int, is_premium: bool) -> None:
    limit = limits_for(is_premium).group_documents
    if current_count >= limit:
        raise PolicyLimitExceeded(
            f"Penyimpanan grup penuh ({limit} dokumen).",
            limit=limit,
            upgrade_hint=_upgrade_hint(is_premium, f"hingga {PREMIUM_LIMITS.group_documents} dokumen per grup"),
        )


def check_group_member_limit(current_count: int, is_premium: bool) -> None:
    limit = limits_for(is_premium).group_members
    if limit is not None and current_count >= limit:
        raise PolicyLimitExceeded(
            f"Grup sudah mencapai batas maksimal {limit} anggota.",
            limit=limit,
            upgrade_hint=_upgrade_hint(is_premium, "anggota tanpa batas"),
        )


def check_groups_owned_limit(current_count: int, is_premium: bool) -> None:
    limit = limits_for(is_premium).groups_owned
    if current_count >= limit:
        raise PolicyLimitExceeded(
            f"Anda sudah mencapai batas maksimal {limit} grup.",
            limit=limit,
            upgrade_hint=_upgrade_hint(is_premium, f"hingga {PREMIUM_LIMITS.groups_owned} grup"),
        )


def check_package_size(document_count: int, is_premium: bool) -> None:
    limit = limits_for(is_premium).package_documents
    if document_count > limit:
        raise PolicyLimitExceeded(
            f"Maksimal {limit} dokumen per paket.",
            limit=limit,
            upgrade_hint=_upgrade_hint(is_premium, f"hingga {PREMIUM_LIMITS.package_documents} dokumen"),
        )


def check_upload_size(size_bytes: int, is_premium: bool) -> None:
    limit = limits_for(is_premium).upload_size_bytes
    if size_bytes > limit:
        raise PolicyLimitExceeded(
            f"Ukuran file melebihi batas paket Anda ({limit // MB}MB).",
            limit=limit,
            upgrade_hint=_upgrade_hint(is_premium, f"upload hingga {PREMIUM_LIMITS.upload_size_bytes // MB}MB"),
        )
