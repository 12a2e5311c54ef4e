from .user import User, UserStatus
from .document import Document, DocumentStatus, DocumentVersion
from .signature import SignaturePlacementMixin
from .personal_signature import PersonalSignature

__all__ = [
    'User', 'UserStatus',
    'Document', 'DocumentStatus', 'DocumentVersion',
    'SignaturePlacementMixin', 'PersonalSignature',
]
