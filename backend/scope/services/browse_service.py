import asyncio
import logging
from typing import List

from scope.schemas.category import CategoryResponse
from scope.services.data_store import MediaDataStore, StoreError
from scope.vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)


class BrowseService:
    def __init__(self, store: MediaDataStore, vocabulary: Vocabulary = DEFAULT_VOCABULARY):
        self.store = store
        self.vocabulary = vocabulary

    async def _count(self, label: str) -> int:
        try:
            return await self.store.count(label)
        except StoreError as e:
            logger.warning(f"Count for category {label} failed: {e}")
            return 0

    async def list_categories(self) -> List[CategoryResponse]:
        """Every category in vocabulary order with its image count."""
        labels = list(self.vocabulary.categories)
        counts = await asyncio.gather(*(self._count(label) for label in labels))
        return [
            CategoryResponse(
                slug=self.vocabulary.slug_for_category(label) or "",
                label=label,
                color_bearing=self.vocabulary.is_color_bearing(label),
                count=count,
            )
            for label, count in zip(labels, counts)
        ]
