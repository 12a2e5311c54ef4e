# esign/groups/controllers/signature_controller.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from esign.common.audit import AuditLogger
from esign.common.dependencies import get_audit, get_db, get_publisher, request_context
from esign.common.events import DomainEventPublisher
from esign.groups.schemas import PositionUpdate, SignatureInput, SignatureResponse
from esign.groups.services.group_signature_service import GroupSignatureService

router = APIRouter()


def get_signature_service(
    db: Session = Depends(get_db),
    publisher: DomainEventPublisher = Depends(get_publisher),
    audit: AuditLogger = Depends(get_audit)
) -> GroupSignatureService:
    return GroupSignatureService(db, publisher, audit)


@router.post("/documents/{document_id}/drafts", response_model=SignatureResponse)
def save_draft(
    document_id: int,
    user_id: int,
    payload: SignatureInput,
    service: GroupSignatureService = Depends(get_signature_service)
):
    return service.save_draft(user_id, document_id, payload.model_dump())


@router.patch("/drafts/{signature_id}", response_model=SignatureResponse)
def update_draft_position(
    signature_id: int,
    user_id: int,
    payload: PositionUpdate,
    service: GroupSignatureService = Depends(get_signature_service)
):
    return service.update_draft_position(signature_id, user_id, payload.model_dump(exclude_none=True))


@router.delete("/drafts/{signature_id}")
def delete_draft(
    signature_id: int,
    user_id: int,
    service: GroupSignatureService = Depends(get_signature_service)
):
    service.delete_draft(signature_id, user_id)
    return {"message": "Draft tanda tangan dihapus."}


@router.post("/documents/{document_id}/sign")
def sign_document(
    document_id: int,
    user_id: int,
    payload: SignatureInput,
    context: dict = Depends(request_context),
    service: GroupSignatureService = Depends(get_signature_service)
):
    """
    Records the user's signature. The PDF is only produced when the group
    admin finalizes the document.
    """
    return service.sign_document(user_id, document_id, payload.model_dump(), context)


@router.post("/documents/{document_id}/reject")
def reject_document(
    document_id: int,
    user_id: int,
    context: dict = Depends(request_context),
    service: GroupSignatureService = Depends(get_signature_service)
):
    return service.reject_signing(user_id, document_id, context)
