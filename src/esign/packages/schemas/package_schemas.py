from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from esign.packages.models.package import PackageStatus


class PackageCreate(BaseModel):
    title: str
    document_ids: List[int]


class PackageDocumentResponse(BaseModel):
    id: int
    doc_version_id: int
    signed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PackageResponse(BaseModel):
    id: int
    title: str
    status: PackageStatus
    owner_id: int
    created_at: datetime
    documents: List[PackageDocumentResponse] = []

    model_config = {"from_attributes": True}


class PackageSignatureInput(BaseModel):
    package_doc_id: int
    signature_image: str
    position_x: float = Field(ge=0, le=1)
    position_y: float = Field(ge=0, le=1)
    width: float = Field(gt=0, le=1)
    height: float = Field(gt=0, le=1)
    page_number: int = Field(default=1, ge=1)
    method: str = "canvas"
    display_qr_code: bool = True


class SignPackageRequest(BaseModel):
    signatures: List[PackageSignatureInput]


class FailedDocument(BaseModel):
    document_id: int
    error: str


class SignPackageResponse(BaseModel):
    package_id: int
    status: PackageStatus
    success: List[int]
    failed: List[FailedDocument]
