import logging

from scope.schemas.public_gallery import PublicGalleryResponse, PublicImage
from scope.services.data_store import MediaDataStore, StoreError

logger = logging.getLogger(__name__)


class PublicGalleryService:
    """Site-wide gallery of anonymized thumbnails, newest first."""

    def __init__(self, store: MediaDataStore):
        self.store = store

    async def recent(self, limit: int) -> PublicGalleryResponse:
        try:
            rows = await self.store.fetch_public(limit)
            items = [
                PublicImage(
                    path=row["public_path"],
                    url=self.store.resolve_thumb_url(row["public_path"]),
                    created_at=row.get("created_at"),
                )
                for row in rows
                if row.get("public_path")
            ]
        except (StoreError, ValueError, KeyError) as e:
            logger.warning(f"Public gallery load failed: {e}")
            return PublicGalleryResponse(items=[], status="failed", status_message="Could not load gallery.")
        if not items:
            return PublicGalleryResponse(items=[], status="empty", status_message="No images yet.")
        return PublicGalleryResponse(items=items, status="loaded", status_message="")
