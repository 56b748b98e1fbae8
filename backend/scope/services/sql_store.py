import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, func, desc, or_, cast, String
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scope.models.image_metadata import ImageMetadata
from scope.models.public_gallery import PublicGalleryItem
from scope.services.data_store import LIST_COLUMNS, DETAIL_COLUMNS, PUBLIC_COLUMNS, PatchResult, StoreError
from scope.vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)


def _row_to_dict(row, columns) -> Dict[str, Any]:
    return {c: getattr(row, c) for c in columns}


class SqlMediaStore:
    """Data store backed by the local ``image_metadata`` table.

    Image files are served from ``public_base_url`` and published thumbnails
    from ``thumbs_base_url``; ``scope.main`` mounts both under ``/media``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        public_base_url: str = "/media/images",
        thumbs_base_url: str = "/media/public-thumbs",
        vocabulary: Vocabulary = DEFAULT_VOCABULARY,
    ):
        self.session_factory = session_factory
        self.public_base_url = public_base_url.rstrip("/")
        self.thumbs_base_url = thumbs_base_url.rstrip("/")
        self.vocabulary = vocabulary

    def _build_filter_query(self, query, category: str, color: Optional[str] = None):
        query = query.where(ImageMetadata.category == category)
        if color:
            # JSON lists serialise as ["Clear", "Red"], so a quoted match is exact
            conditions = [cast(ImageMetadata.colors, String).like(f'%"{color}"%')]
            legacy = self.vocabulary.color_fields(category).legacy
            if legacy:
                conditions.append(getattr(ImageMetadata, legacy) == color)
            query = query.where(or_(*conditions))
        return query

    async def count(self, category: str, color: Optional[str] = None) -> int:
        query = self._build_filter_query(select(func.count(ImageMetadata.id)), category, color)
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise StoreError(f"Count query failed: {e}") from e

    async def fetch_page(
        self, category: str, color: Optional[str], offset: int, limit: int
    ) -> List[Dict[str, Any]]:
        query = self._build_filter_query(select(ImageMetadata), category, color)
        query = query.order_by(desc(ImageMetadata.created_at), desc(ImageMetadata.id))
        query = query.offset(offset).limit(limit)
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Page query failed: {e}") from e
        return [_row_to_dict(row, LIST_COLUMNS) for row in rows]

    async def fetch_record(self, record_id: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(ImageMetadata).where(ImageMetadata.id == record_id)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Record query failed: {e}") from e
        return _row_to_dict(row, DETAIL_COLUMNS) if row else None

    async def patch_attributes(self, record_id: str, field: str, value: Any) -> PatchResult:
        if field not in ImageMetadata.__table__.c:
            return PatchResult(ok=False, error=f'column "{field}" of relation "image_metadata" does not exist')
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(ImageMetadata).where(ImageMetadata.id == record_id).values({field: value})
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.warning(f"Patch of {field} on image {record_id} failed: {e}")
            return PatchResult(ok=False, error=str(e))
        if result.rowcount == 0:
            return PatchResult(ok=False, error=f"No image with id {record_id} may be updated by this account")
        return PatchResult(ok=True)

    async def fetch_public(self, limit: int) -> List[Dict[str, Any]]:
        query = (
            select(PublicGalleryItem)
            .order_by(desc(PublicGalleryItem.created_at), desc(PublicGalleryItem.id))
            .limit(limit)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Public gallery query failed: {e}") from e
        return [_row_to_dict(row, PUBLIC_COLUMNS) for row in rows]

    def resolve_public_url(self, path: Optional[str]) -> str:
        if not path:
            return ""
        return f"{self.public_base_url}/{path.lstrip('/')}"

    def resolve_thumb_url(self, path: Optional[str]) -> str:
        if not path:
            return ""
        return f"{self.thumbs_base_url}/{path.lstrip('/')}"

    def with_access_token(self, access_token: str) -> "SqlMediaStore":
        # The local database has no row-level security to hand a token to
        return self
