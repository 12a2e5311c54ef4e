from .document_service import DocumentService
from .document_state_service import DocumentStateService
from .user_service import UserService
from .pdf_service import PdfService, SignaturePlacement, SigningOptions, SignedPdf
from .personal_signature_service import PersonalSignatureService

__all__ = [
    'DocumentService', 'DocumentStateService', 'UserService',
    'PdfService', 'SignaturePlacement', 'SigningOptions', 'SignedPdf',
    'PersonalSignatureService',
]
