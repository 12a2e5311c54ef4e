from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from esign.documents.models.document import DocumentStatus


class DocumentResponse(BaseModel):
    id: int
    title: str
    status: DocumentStatus
    user_id: int
    group_id: Optional[int] = None
    current_version_id: Optional[int] = None
    signed_file_url: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class DocumentVersionResponse(BaseModel):
    id: int
    document_id: int
    user_id: int
    url: str
    hash: str
    signed_file_hash: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class StatusChangeRequest(BaseModel):
    status: DocumentStatus


class SignaturePlacementInput(BaseModel):
    signature_image: str
    position_x: float = Field(ge=0, le=1)
    position_y: float = Field(ge=0, le=1)
    width: float = Field(gt=0, le=1)
    height: float = Field(gt=0, le=1)
    page_number: int = Field(default=1, ge=1)
    method: str = "canvas"


class PersonalSignRequest(BaseModel):
    document_id: int
    signatures: List[SignaturePlacementInput] = Field(min_length=1)
    display_qr_code: bool = True


class PersonalSignResponse(BaseModel):
    message: str
    document: DocumentResponse
    signature_id: int
    url: str
    access_code: Optional[str] = None
