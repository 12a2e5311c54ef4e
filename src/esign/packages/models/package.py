from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum
from database import Base
from esign.documents.models.signature import SignaturePlacementMixin


class PackageStatus(PyEnum):
    DRAFT = "draft"
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"


class Package(Base):
    __tablename__ = 'packages'

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    status = Column(Enum(PackageStatus), nullable=False, default=PackageStatus.DRAFT)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    owner = relationship("User")

    documents = relationship(
        "PackageDocument",
        back_populates="package",
        order_by="PackageDocument.id",
        cascade="all, delete-orphan"
    )


class PackageDocument(Base):
    __tablename__ = 'package_documents'

    id = Column(Integer, primary_key=True)
    # Set once the document has been signed inside this package
    signed_at = Column(DateTime, nullable=True)

    package_id = Column(Integer, ForeignKey('packages.id'), nullable=False)
    package = relationship("Package", back_populates="documents")

    # Repointed to the signed version after signing
    doc_version_id = Column(Integer, ForeignKey('document_versions.id'), nullable=False)
    doc_version = relationship("DocumentVersion")

    signatures = relationship("PackageSignature", back_populates="package_document")


class PackageSignature(SignaturePlacementMixin, Base):
    __tablename__ = 'package_signatures'

    id = Column(Integer, primary_key=True)

    package_document_id = Column(Integer, ForeignKey('package_documents.id'), nullable=False)
    package_document = relationship("PackageDocument", back_populates="signatures")

    signer_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    signer = relationship("User")
