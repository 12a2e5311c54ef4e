from .group import Group, GroupMember, GroupRole, GroupInvitation, InvitationStatus
from .signer import GroupDocumentSigner, SignerStatus
from .group_signature import GroupSignature, SignatureStatus

__all__ = [
    'Group', 'GroupMember', 'GroupRole', 'GroupInvitation', 'InvitationStatus',
    'GroupDocumentSigner', 'SignerStatus',
    'GroupSignature', 'SignatureStatus',
]
