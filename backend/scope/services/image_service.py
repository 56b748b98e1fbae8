import logging
from typing import Optional

from scope.schemas.media import MediaRecordDetail
from scope.services.attributes import reconcile_row
from scope.services.data_store import MediaDataStore
from scope.vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)


class ImageService:
    """Single-image detail reads and notes editing."""

    def __init__(self, store: MediaDataStore, vocabulary: Vocabulary = DEFAULT_VOCABULARY):
        self.store = store
        self.vocabulary = vocabulary

    async def get_image(self, image_id: str) -> Optional[MediaRecordDetail]:
        row = await self.store.fetch_record(image_id)
        if not row:
            return None
        detail = MediaRecordDetail.model_validate(reconcile_row(row, self.vocabulary))
        detail.public_url = self.store.resolve_public_url(detail.path)
        return detail

    async def save_notes(self, image_id: str, notes: Optional[str]) -> Optional[str]:
        """Store trimmed notes (blank clears them); returns an error message or None."""
        value = notes.strip() if notes and notes.strip() else None
        result = await self.store.patch_attributes(image_id, "notes", value)
        if not result.ok:
            logger.warning(f"Saving notes for image {image_id} failed: {result.error}")
            return result.error
        return None
