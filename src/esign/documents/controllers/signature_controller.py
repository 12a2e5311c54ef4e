# esign/documents/controllers/signature_controller.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from esign.common.audit import AuditLogger
from esign.common.dependencies import get_audit, get_db, get_storage, request_context
from esign.common.storage import FileStorage
from esign.documents.schemas import PersonalSignRequest, PersonalSignResponse
from esign.documents.services.personal_signature_service import PersonalSignatureService

router = APIRouter()


def get_personal_signature_service(
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit)
) -> PersonalSignatureService:
    return PersonalSignatureService(db, storage, audit)


@router.post("/personal", response_model=PersonalSignResponse)
def add_personal_signature(
    user_id: int,
    payload: PersonalSignRequest,
    context: dict = Depends(request_context),
    service: PersonalSignatureService = Depends(get_personal_signature_service)
):
    """
    Signs a personal document in one step. The response carries the PIN
    printed beside the QR code, when one was drawn.
    """
    return service.add_personal_signature(
        user_id,
        payload.document_id,
        [s.model_dump() for s in payload.signatures],
        display_qr_code=payload.display_qr_code,
        request_context=context,
    )
