from .group_schemas import (
    GroupCreate, GroupResponse, GroupMemberResponse, InvitationCreate, InvitationResponse,
    InvitationAccept, AssignDocumentRequest, SignersUpdate, SignatureInput, PositionUpdate,
    SignatureResponse, FinalizeResponse
)
