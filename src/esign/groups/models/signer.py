from sqlalchemy import Column, Integer, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum
from database import Base


class SignerStatus(PyEnum):
    PENDING = "PENDING"
    SIGNED = "SIGNED"
    REJECTED = "REJECTED"


class GroupDocumentSigner(Base):
    __tablename__ = 'group_document_signers'
    __table_args__ = (UniqueConstraint('document_id', 'user_id', name='uq_document_signer'),)

    id = Column(Integer, primary_key=True)
    status = Column(Enum(SignerStatus), nullable=False, default=SignerStatus.PENDING)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    document_id = Column(Integer, ForeignKey('documents.id'), nullable=False)
    document = relationship("Document", back_populates="signers")

    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    user = relationship("User")

    signature_id = Column(Integer, ForeignKey('group_signatures.id'), nullable=True)
