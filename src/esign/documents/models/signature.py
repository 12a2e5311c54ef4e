from sqlalchemy import Column, Integer, Float, String, Text, DateTime
from datetime import datetime


class SignaturePlacementMixin:
    """
    Columns shared by personal, group and package signatures: the visual placement
    (fractions of the page, origin top-left), the image, audit fields and
    the PIN gate state.
    """

    position_x = Column(Float, nullable=False)
    position_y = Column(Float, nullable=False)
    page_number = Column(Integer, nullable=False, default=1)
    width = Column(Float, nullable=False)
    height = Column(Float, nullable=False)
    signature_image = Column(Text, nullable=False)
    method = Column(String, nullable=False, default="canvas")

    signed_at = Column(DateTime, default=datetime.utcnow)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)

    access_code = Column(String(12), nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime, nullable=True)
