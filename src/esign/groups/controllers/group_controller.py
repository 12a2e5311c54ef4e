# esign/groups/controllers/group_controller.py
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from esign.common.audit import AuditLogger
from esign.common.dependencies import get_audit, get_db, get_publisher, get_storage, request_context
from esign.common.events import DomainEventPublisher
from esign.common.storage import FileStorage
from esign.documents.schemas import DocumentResponse
from esign.groups.schemas import (
    AssignDocumentRequest,
    FinalizeResponse,
    GroupCreate,
    GroupResponse,
    InvitationAccept,
    InvitationCreate,
    InvitationResponse,
    SignersUpdate,
)
from esign.groups.services.group_service import GroupService

router = APIRouter()


def get_group_service(
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    publisher: DomainEventPublisher = Depends(get_publisher),
    audit: AuditLogger = Depends(get_audit)
) -> GroupService:
    return GroupService(db, storage, publisher, audit)


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
def create_group(user_id: int, payload: GroupCreate, service: GroupService = Depends(get_group_service)):
    return service.create_group(user_id, payload.name)


@router.get("/users/{user_id}", response_model=List[GroupResponse])
def list_groups(user_id: int, service: GroupService = Depends(get_group_service)):
    return service.get_user_groups(user_id)


@router.get("/{group_id}", response_model=GroupResponse)
def get_group(group_id: int, user_id: int, service: GroupService = Depends(get_group_service)):
    return service.get_group(group_id, user_id)


@router.post("/{group_id}/invitations", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
def create_invitation(
    group_id: int,
    user_id: int,
    payload: InvitationCreate,
    service: GroupService = Depends(get_group_service)
):
    return service.create_invitation(group_id, user_id, payload.role)


@router.post("/invitations/accept")
def accept_invitation(user_id: int, payload: InvitationAccept, service: GroupService = Depends(get_group_service)):
    member = service.accept_invitation(payload.token, user_id)
    return {"message": "Berhasil bergabung dengan grup.", "group_id": member.group_id, "role": member.role.value}


@router.delete("/{group_id}/members/{member_user_id}")
def remove_member(
    group_id: int,
    member_user_id: int,
    user_id: int,
    service: GroupService = Depends(get_group_service)
):
    return service.remove_member(group_id, user_id, member_user_id)


@router.post("/{group_id}/documents/upload", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_group_document(
    group_id: int,
    user_id: int,
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    signer_ids: List[int] = Form([]),
    service: GroupService = Depends(get_group_service)
):
    contents = await file.read()
    return service.upload_group_document(
        user_id, group_id, contents, file.filename, file.content_type, title, signer_ids
    )


@router.post("/{group_id}/documents", response_model=DocumentResponse)
def assign_document(
    group_id: int,
    user_id: int,
    payload: AssignDocumentRequest,
    service: GroupService = Depends(get_group_service)
):
    return service.assign_document_to_group(payload.document_id, group_id, user_id, payload.signer_ids)


@router.put("/{group_id}/documents/{document_id}/signers")
def update_signers(
    group_id: int,
    document_id: int,
    user_id: int,
    payload: SignersUpdate,
    service: GroupService = Depends(get_group_service)
):
    return service.update_group_document_signers(group_id, document_id, user_id, payload.signer_ids)


@router.delete("/{group_id}/documents/{document_id}", response_model=DocumentResponse)
def unassign_document(
    group_id: int,
    document_id: int,
    user_id: int,
    service: GroupService = Depends(get_group_service)
):
    return service.unassign_document_from_group(group_id, document_id, user_id)


@router.post("/{group_id}/documents/{document_id}/finalize", response_model=FinalizeResponse)
def finalize_document(
    group_id: int,
    document_id: int,
    user_id: int,
    context: dict = Depends(request_context),
    service: GroupService = Depends(get_group_service)
):
    result = service.finalize_group_document(group_id, document_id, user_id, context)
    document = result["document"]
    return FinalizeResponse(
        message=result["message"],
        document_id=document.id,
        status=document.status,
        url=result["url"],
        access_code=result["access_code"],
    )
