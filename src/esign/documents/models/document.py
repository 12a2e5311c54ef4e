from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum
from database import Base


class DocumentStatus(PyEnum):
    DRAFT = "draft"
    PENDING = "pending"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Document(Base):
    __tablename__ = 'documents'

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    status = Column(Enum(DocumentStatus), nullable=False, default=DocumentStatus.DRAFT)
    # Only mutable pointer into the append-only version history
    current_version_id = Column(Integer, nullable=True)
    signed_file_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    owner = relationship("User", back_populates="documents")

    group_id = Column(Integer, ForeignKey('groups.id'), nullable=True)
    group = relationship("Group", back_populates="documents")

    versions = relationship(
        "DocumentVersion",
        back_populates="document",
        order_by="DocumentVersion.id",
        cascade="all, delete-orphan"
    )
    current_version = relationship(
        "DocumentVersion",
        primaryjoin="foreign(Document.current_version_id) == DocumentVersion.id",
        viewonly=True,
        uselist=False
    )
    signers = relationship(
        "GroupDocumentSigner",
        back_populates="document",
        cascade="all, delete-orphan"
    )


class DocumentVersion(Base):
    __tablename__ = 'document_versions'

    id = Column(Integer, primary_key=True)
    url = Column(String, nullable=False)
    hash = Column(String(64), nullable=False)
    signed_file_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    document_id = Column(Integer, ForeignKey('documents.id'), nullable=False)
    document = relationship("Document", back_populates="versions")

    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    creator = relationship("User")
