# esign/verification/controllers/verification_controller.py
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from esign.common.dependencies import get_db
from esign.verification.schemas import UnlockRequest
from esign.verification.services.verification_service import SignatureKind, VerificationService

router = APIRouter()


def get_verification_service(db: Session = Depends(get_db)) -> VerificationService:
    return VerificationService(db)


@router.get("/{signature_id}")
def get_verification_details(
    signature_id: int,
    type: Optional[SignatureKind] = None,
    service: VerificationService = Depends(get_verification_service)
):
    return service.get_verification_details(signature_id, type)


@router.post("/{signature_id}/unlock")
def unlock(
    signature_id: int,
    payload: UnlockRequest,
    type: Optional[SignatureKind] = None,
    service: VerificationService = Depends(get_verification_service)
):
    return service.unlock(signature_id, payload.access_code, type)


@router.post("/{signature_id}/upload")
async def verify_uploaded_file(
    signature_id: int,
    file: UploadFile = File(...),
    access_code: Optional[str] = Form(None),
    type: Optional[SignatureKind] = None,
    service: VerificationService = Depends(get_verification_service)
):
    contents = await file.read()
    return service.verify_uploaded_file(signature_id, contents, access_code, type)
