# create_tables.py
import logging
from database import engine, Base
# Import every model so it registers with Base
from esign.documents.models.user import User
from esign.documents.models.document import Document, DocumentVersion
from esign.documents.models.personal_signature import PersonalSignature
from esign.groups.models.group import Group, GroupMember, GroupInvitation
from esign.groups.models.signer import GroupDocumentSigner
from esign.groups.models.group_signature import GroupSignature
from esign.packages.models.package import Package, PackageDocument, PackageSignature
from esign.notifications.models.notification import Notification

logger = logging.getLogger(__name__)


def create_tables(bind=None):
    """Creates every table that does not exist yet"""
    bind = bind or engine
    logger.info("Tables to create: %s", list(Base.metadata.tables.keys()))
    Base.metadata.create_all(bind=bind)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_tables()
