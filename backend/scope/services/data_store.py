"""Narrow data-access interface the gallery talks to.

Two implementations exist: ``SqlMediaStore`` over the local SQLAlchemy
database and ``SupabaseMediaStore`` over the hosted PostgREST API. Both match
records the same way: the category by exact match on ``category``, the color
(if any) against either the ``colors`` list or the category's legacy color
column (``bleb_color``, ``fiber_bundles_color`` or ``fibers_color``).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

# Columns read for gallery cards and the detail page
LIST_COLUMNS = (
    "id", "path", "filename", "category", "categories",
    "bleb_color", "fiber_bundles_color", "fibers_color", "colors",
    "notes", "created_at",
)
DETAIL_COLUMNS = LIST_COLUMNS + (
    "user_id", "ext", "mime_type", "size",
    "uploader_initials", "uploader_age", "uploader_location", "uploader_contact_opt_in",
)
PUBLIC_COLUMNS = ("public_path", "created_at")


class StoreError(RuntimeError):
    """A count or fetch query failed in transport or in the backend."""


@dataclass
class PatchResult:
    ok: bool
    error: Optional[str] = None


class MediaDataStore(Protocol):
    async def count(self, category: str, color: Optional[str] = None) -> int:
        ...

    async def fetch_page(
        self, category: str, color: Optional[str], offset: int, limit: int
    ) -> List[Dict[str, Any]]:
        """Rows ordered newest first; fewer than ``limit`` at the end."""
        ...

    async def fetch_record(self, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def patch_attributes(self, record_id: str, field: str, value: Any) -> PatchResult:
        """Write one column; failures are returned, never raised."""
        ...

    async def fetch_public(self, limit: int) -> List[Dict[str, Any]]:
        """Newest anonymized thumbnails from the site-wide gallery."""
        ...

    def resolve_public_url(self, path: Optional[str]) -> str:
        ...

    def resolve_thumb_url(self, path: Optional[str]) -> str:
        ...

    def with_access_token(self, access_token: str) -> "MediaDataStore":
        ...
