from typing import List
from fastapi import APIRouter, UploadFile, File, Depends
from sqlalchemy.orm import Session

from esign.common.dependencies import get_db, get_storage
from esign.common.errors import Unauthorized
from esign.common.storage import FileStorage
from esign.documents.schemas import DocumentResponse, DocumentVersionResponse, StatusChangeRequest
from esign.documents.services.document_service import DocumentService
from esign.documents.services.document_state_service import DocumentStateService

router = APIRouter(
    tags=["documents"]
)


@router.post("/upload")
async def upload_document(
    user_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage)
):
    contents = await file.read()
    doc = DocumentService.upload_document(
        db, storage, user_id, contents, file.filename, file.content_type
    )
    return {"message": "Dokumen berhasil diunggah", "document_id": doc.id, "title": doc.title}


@router.get("/users/{user_id}", response_model=List[DocumentResponse])
def list_documents(user_id: int, db: Session = Depends(get_db)):
    return DocumentService.get_documents_by_user(db, user_id)


@router.get("/{document_id}/versions", response_model=List[DocumentVersionResponse])
def list_versions(document_id: int, user_id: int, db: Session = Depends(get_db)):
    document = DocumentService.get_document(db, document_id)
    if document.user_id != user_id:
        raise Unauthorized()
    return document.versions


@router.patch("/{document_id}/status", response_model=DocumentResponse)
def change_status(
    document_id: int,
    user_id: int,
    payload: StatusChangeRequest,
    db: Session = Depends(get_db)
):
    """
    Manual status change (e.g. archiving). Only transitions in the allowed
    table are accepted.
    """
    document = DocumentService.get_document(db, document_id)
    if document.user_id != user_id:
        raise Unauthorized()
    return DocumentStateService.change_document_status(db, document_id, payload.status)


@router.put("/{document_id}/versions/{version_id}/use", response_model=DocumentResponse)
def use_old_version(document_id: int, version_id: int, user_id: int, db: Session = Depends(get_db)):
    return DocumentService.use_old_version(db, document_id, version_id, user_id)


@router.delete("/{document_id}/versions/{version_id}")
def delete_version(
    document_id: int,
    version_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage)
):
    return DocumentService.delete_version(db, storage, document_id, version_id, user_id)
