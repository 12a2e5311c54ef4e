from .signer_tracker import SignerTracker
from .group_service import GroupService
from .group_signature_service import GroupSignatureService

__all__ = ['SignerTracker', 'GroupService', 'GroupSignatureService']
