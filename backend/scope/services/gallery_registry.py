import logging
import uuid
from collections import OrderedDict
from typing import Optional

from scope.services.gallery import FilteredPaginatedGallery

logger = logging.getLogger(__name__)


class GalleryRegistry:
    """Live gallery instances keyed by id, evicting the least recently used."""

    def __init__(self, max_size: int = 256):
        self.max_size = max_size
        self._galleries: "OrderedDict[str, FilteredPaginatedGallery]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._galleries)

    def add(self, gallery: FilteredPaginatedGallery) -> str:
        gallery_id = uuid.uuid4().hex
        self._galleries[gallery_id] = gallery
        while len(self._galleries) > self.max_size:
            evicted, _ = self._galleries.popitem(last=False)
            logger.debug(f"Evicted gallery {evicted}")
        return gallery_id

    def get(self, gallery_id: str) -> Optional[FilteredPaginatedGallery]:
        gallery = self._galleries.get(gallery_id)
        if gallery is not None:
            self._galleries.move_to_end(gallery_id)
        return gallery

    def remove(self, gallery_id: str) -> bool:
        return self._galleries.pop(gallery_id, None) is not None
