from .document_schemas import (
    DocumentResponse,
    DocumentVersionResponse,
    PersonalSignRequest,
    PersonalSignResponse,
    SignaturePlacementInput,
    StatusChangeRequest,
)

__all__ = [
    'DocumentResponse', 'DocumentVersionResponse', 'StatusChangeRequest',
    'SignaturePlacementInput', 'PersonalSignRequest', 'PersonalSignResponse',
]
