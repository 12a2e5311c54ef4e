from sqlalchemy import Column, Integer, Enum, ForeignKey
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from database import Base
from esign.documents.models.signature import SignaturePlacementMixin


class SignatureStatus(PyEnum):
    DRAFT = "draft"
    FINAL = "final"


class GroupSignature(SignaturePlacementMixin, Base):
    __tablename__ = 'group_signatures'

    id = Column(Integer, primary_key=True)
    status = Column(Enum(SignatureStatus), nullable=False, default=SignatureStatus.DRAFT)

    document_version_id = Column(Integer, ForeignKey('document_versions.id'), nullable=False)
    document_version = relationship("DocumentVersion")

    signer_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    signer = relationship("User")
