"""Filtered, paginated gallery over one category of images.

A gallery instance owns its filter, its page cursor and the records loaded so
far. Every filter change bumps ``FilterState.generation``; a page or count
response is applied only if the generation it was issued under is still the
current one, so responses for an abandoned filter are dropped silently.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from scope.config import settings
from scope.schemas.media import MediaRecord
from scope.services.attributes import dual_write, reconcile_row, unique_values
from scope.services.data_store import MediaDataStore, StoreError
from scope.vocabulary import CATEGORY_FIELDS, DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)


class GalleryStatus(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    EMPTY = "empty"
    FAILED = "failed"
    SAVED = "saved"


@dataclass(frozen=True)
class FilterState:
    category: str
    color: Optional[str] = None
    generation: int = 0


@dataclass
class PageCursor:
    page_size: int
    page_index: int = 0
    more: bool = True
    items: List[MediaRecord] = field(default_factory=list)


@dataclass
class EditResult:
    ok: bool
    status: GalleryStatus
    message: str
    needs_color: bool = False
    not_found: bool = False
    record: Optional[MediaRecord] = None


class FilteredPaginatedGallery:
    def __init__(
        self,
        store: MediaDataStore,
        category: str,
        page_size: Optional[int] = None,
        vocabulary: Vocabulary = DEFAULT_VOCABULARY,
    ):
        if category not in vocabulary.categories:
            raise ValueError(f"Unknown category: {category}")
        self.store = store
        self.vocabulary = vocabulary
        self.filter = FilterState(category=category)
        self.cursor = PageCursor(page_size=page_size or settings.PAGE_SIZE)
        self.count: Optional[int] = None
        self.status = GalleryStatus.IDLE
        self.error: Optional[str] = None
        self.count_error: Optional[str] = None
        self.message = ""
        self._in_flight = False

    # --- presentation state ---

    @property
    def items(self) -> List[MediaRecord]:
        return list(self.cursor.items)

    @property
    def more(self) -> bool:
        return self.cursor.more

    @property
    def loading(self) -> bool:
        return self._in_flight

    @property
    def status_message(self) -> str:
        if self.status == GalleryStatus.LOADING:
            return "Loading..."
        if self.status == GalleryStatus.EMPTY:
            return "No items in this category yet."
        if self.status == GalleryStatus.FAILED:
            return f"Load error: {self.error}"
        if self.status == GalleryStatus.SAVED:
            return self.message or "Saved."
        return self.message

    def _is_current(self, issued: FilterState) -> bool:
        return issued.generation == self.filter.generation

    def _to_record(self, row: dict) -> MediaRecord:
        record = MediaRecord.model_validate(reconcile_row(row, self.vocabulary))
        record.public_url = self.store.resolve_public_url(record.path)
        return record

    # --- filtering and pagination ---

    async def set_filter(self, color: Optional[str] = None) -> None:
        """Switch the color filter, drop everything loaded and start over."""
        color = color or None
        if color is not None and color not in self.vocabulary.colors:
            self.status = GalleryStatus.FAILED
            self.error = f"Unknown color: {color}"
            return
        self.filter = FilterState(
            category=self.filter.category,
            color=color,
            generation=self.filter.generation + 1,
        )
        self.cursor = PageCursor(page_size=self.cursor.page_size)
        self.count = None
        self.error = None
        self.count_error = None
        self.message = ""
        self.status = GalleryStatus.IDLE
        # A fetch issued under the previous filter may still be pending; its
        # response will be discarded, so it must not block the fresh one.
        self._in_flight = False
        logger.debug(f"Gallery filter -> {self.filter}")
        await asyncio.gather(self.refresh_count(), self.load_next_page())

    async def load_next_page(self) -> List[MediaRecord]:
        """Append the next page; returns the records appended (possibly none)."""
        if self._in_flight or not self.cursor.more:
            return []
        issued = self.filter
        cursor = self.cursor
        offset = cursor.page_index * cursor.page_size
        self._in_flight = True
        self.status = GalleryStatus.LOADING
        try:
            rows = await self.store.fetch_page(issued.category, issued.color, offset, cursor.page_size)
            if not self._is_current(issued):
                logger.debug(f"Discarding {len(rows)} rows for stale filter {issued}")
                return []
            records = [self._to_record(row) for row in rows]
        except StoreError as e:
            logger.warning(f"Gallery page load failed for {issued.category}/{issued.color}: {e}")
            self._page_failed(issued, str(e))
            return []
        except Exception as e:
            logger.exception(f"Unreadable page for {issued.category}/{issued.color}")
            self._page_failed(issued, f"{type(e).__name__}: {e}")
            return []
        finally:
            # A newer filter owns the flag once the generation has moved on
            if self._is_current(issued):
                self._in_flight = False

        cursor.items.extend(records)
        if records:
            cursor.page_index += 1
        if len(records) < cursor.page_size:
            cursor.more = False
        self._clamp_to_count()
        self.status = GalleryStatus.LOADED if cursor.items else GalleryStatus.EMPTY
        return records

    def _page_failed(self, issued: FilterState, message: str) -> None:
        if not self._is_current(issued):
            logger.debug(f"Discarding failed page for stale filter {issued}")
            return
        self.cursor.more = False
        self.error = message
        self.status = GalleryStatus.FAILED

    async def refresh_count(self) -> Optional[int]:
        issued = self.filter
        try:
            total = await self.store.count(issued.category, issued.color)
        except Exception as e:
            if self._is_current(issued):
                self.count = None
                self.count_error = str(e)
                logger.warning(f"Gallery count failed for {issued.category}/{issued.color}: {e}")
            return None
        if not self._is_current(issued):
            return None
        self.count = total
        self.count_error = None
        self._clamp_to_count()
        return total

    def _clamp_to_count(self) -> None:
        # A full last page looks like more data; a known total says otherwise
        if self.count is not None and self.cursor.items and len(self.cursor.items) >= self.count:
            if not self._in_flight:
                self.cursor.more = False

    async def get_count(self) -> Optional[int]:
        return await self.refresh_count()

    # --- attribute editing ---

    def _loaded(self, record_id: str) -> Optional[MediaRecord]:
        for record in self.cursor.items:
            if record.id == record_id:
                return record
        return None

    async def _current_record(self, record_id: str) -> Optional[MediaRecord]:
        record = self._loaded(record_id)
        if record is not None:
            return record
        try:
            row = await self.store.fetch_record(record_id)
            return self._to_record(row) if row else None
        except ValueError as e:
            raise StoreError(f"Unreadable image {record_id}: {e}") from e

    def _edit_failed(self, message: str, not_found: bool = False) -> EditResult:
        self.message = message
        return EditResult(ok=False, status=GalleryStatus.FAILED, message=message, not_found=not_found)

    async def _record_for_edit(self, record_id: str):
        """The record as it stands before an edit, or the failed result to return."""
        try:
            before = await self._current_record(record_id)
        except StoreError as e:
            logger.warning(f"Could not read image {record_id} before edit: {e}")
            return None, self._edit_failed(f"Save failed: {e}")
        if before is None:
            return None, self._edit_failed(f"Image {record_id} not found or not accessible.", not_found=True)
        return before, None

    def _apply_local(self, record_id: str, **changes) -> Optional[MediaRecord]:
        for i, record in enumerate(self.cursor.items):
            if record.id == record_id:
                updated = record.model_copy(update=changes)
                self.cursor.items[i] = updated
                return updated
        return None

    def _saved(self, updated: Optional[MediaRecord], needs_color: bool = False) -> EditResult:
        self.status = GalleryStatus.SAVED
        self.message = "Saved."
        return EditResult(
            ok=True,
            status=GalleryStatus.SAVED,
            message="Saved.",
            needs_color=needs_color,
            record=updated,
        )

    async def set_categories(self, record_id: str, labels: Iterable[str]) -> EditResult:
        """Replace the record's category set with ``labels``."""
        labels = unique_values(labels)
        unknown = self.vocabulary.unknown_categories(labels)
        if unknown:
            return self._edit_failed(f"Unknown categories: {', '.join(unknown)}")

        before, failed = await self._record_for_edit(record_id)
        if failed:
            return failed
        outcome = await dual_write(self.store, record_id, CATEGORY_FIELDS, labels)
        if not outcome.ok:
            return self._edit_failed(f"Save failed: {outcome.error}")

        gained_color_bearing = any(
            self.vocabulary.is_color_bearing(label) for label in labels if label not in before.categories
        )
        needs_color = gained_color_bearing and not before.colors

        updated = self._apply_local(record_id, categories=labels)
        return self._saved(updated or before.model_copy(update={"categories": labels}), needs_color)

    async def set_colors(self, record_id: str, colors: Iterable[str]) -> EditResult:
        """Replace the record's color tags; an empty set clears them.

        The legacy column written is the one of the record's first
        color-bearing category, so a Fibers image keeps ``fibers_color`` in
        step rather than ``bleb_color``.
        """
        colors = unique_values(colors)
        unknown = self.vocabulary.unknown_colors(colors)
        if unknown:
            return self._edit_failed(f"Unknown colors: {', '.join(unknown)}")

        before, failed = await self._record_for_edit(record_id)
        if failed:
            return failed
        fields = self.vocabulary.color_fields_for(before.categories or [self.filter.category])
        outcome = await dual_write(self.store, record_id, fields, colors)
        if not outcome.ok:
            return self._edit_failed(f"Save failed: {outcome.error}")

        updated = self._apply_local(record_id, colors=colors)
        return self._saved(updated or before.model_copy(update={"colors": colors}))

    set_secondary_attributes = set_colors
