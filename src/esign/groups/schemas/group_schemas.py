from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from esign.documents.models.document import DocumentStatus
from esign.groups.models.group import GroupRole
from esign.groups.models.group_signature import SignatureStatus


class GroupCreate(BaseModel):
    name: str


class GroupMemberResponse(BaseModel):
    user_id: int
    role: GroupRole
    joined_at: datetime

    model_config = {"from_attributes": True}


class GroupResponse(BaseModel):
    id: int
    name: str
    admin_id: int
    created_at: datetime
    members: List[GroupMemberResponse] = []

    model_config = {"from_attributes": True}


class InvitationCreate(BaseModel):
    role: GroupRole = GroupRole.MEMBER


class InvitationResponse(BaseModel):
    group_id: int
    token: str
    role: GroupRole
    expires_at: datetime

    model_config = {"from_attributes": True}


class InvitationAccept(BaseModel):
    token: str


class AssignDocumentRequest(BaseModel):
    document_id: int
    signer_ids: List[int] = []


class SignersUpdate(BaseModel):
    signer_ids: List[int]


class SignatureInput(BaseModel):
    signature_image: str
    position_x: float = Field(ge=0, le=1)
    position_y: float = Field(ge=0, le=1)
    width: float = Field(gt=0, le=1)
    height: float = Field(gt=0, le=1)
    page_number: int = Field(default=1, ge=1)
    method: str = "canvas"


class PositionUpdate(BaseModel):
    position_x: Optional[float] = Field(default=None, ge=0, le=1)
    position_y: Optional[float] = Field(default=None, ge=0, le=1)
    width: Optional[float] = Field(default=None, gt=0, le=1)
    height: Optional[float] = Field(default=None, gt=0, le=1)
    page_number: Optional[int] = Field(default=None, ge=1)


class SignatureResponse(BaseModel):
    id: int
    document_version_id: int
    signer_id: int
    status: SignatureStatus
    position_x: float
    position_y: float
    width: float
    height: float
    page_number: int

    model_config = {"from_attributes": True}


class FinalizeResponse(BaseModel):
    message: str
    document_id: int
    status: DocumentStatus
    url: str
    access_code: Optional[str] = None
