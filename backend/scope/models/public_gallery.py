from sqlalchemy import Column, Integer, String, DateTime, Index, func
from scope.database import Base


class PublicGalleryItem(Base):
    """An anonymized thumbnail published to the site-wide gallery."""

    __tablename__ = "public_gallery"

    id = Column(Integer, primary_key=True, autoincrement=True)
    public_path = Column(String(1000), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_public_gallery_created", "created_at"),
    )
