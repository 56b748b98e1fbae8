import uuid

from sqlalchemy import Column, Integer, String, BigInteger, Boolean, DateTime, Text, Index, JSON, func
from scope.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class ImageMetadata(Base):
    __tablename__ = "image_metadata"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=True)
    path = Column(String(1000), nullable=False)
    filename = Column(String(500), nullable=True)
    ext = Column(String(10), nullable=True)
    mime_type = Column(String(50), nullable=True)
    size = Column(BigInteger, nullable=True)
    # Legacy single-valued attributes; always mirror the first list element
    category = Column(String(100), nullable=True)
    bleb_color = Column(String(20), nullable=True)
    fiber_bundles_color = Column(String(20), nullable=True)
    fibers_color = Column(String(20), nullable=True)
    categories = Column(JSON, nullable=True)
    colors = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    uploader_initials = Column(String(10), nullable=True)
    uploader_age = Column(Integer, nullable=True)
    uploader_location = Column(String(200), nullable=True)
    uploader_contact_opt_in = Column(Boolean, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_image_category", "category"),
        Index("idx_image_created", "created_at"),
        Index("idx_image_user", "user_id"),
    )
