from sqlalchemy import Column, Integer, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from esign.documents.models.signature import SignaturePlacementMixin


class PersonalSignature(SignaturePlacementMixin, Base):
    """Signature burned by the owner of a personal document."""
    __tablename__ = 'personal_signatures'

    id = Column(Integer, primary_key=True)
    display_qr_code = Column(Boolean, nullable=False, default=True)

    # Points at the signed version once signing succeeds
    document_version_id = Column(Integer, ForeignKey('document_versions.id'), nullable=False)
    document_version = relationship("DocumentVersion")

    signer_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    signer = relationship("User")
