from pydantic import BaseModel
from typing import Optional, List

from scope.schemas.media import MediaRecord


class GalleryCreate(BaseModel):
    slug: str
    color: Optional[str] = None


class FilterUpdate(BaseModel):
    color: Optional[str] = None


class GalleryStateResponse(BaseModel):
    gallery_id: str
    slug: Optional[str] = None
    category: str
    color: Optional[str] = None
    items: List[MediaRecord]
    count: Optional[int] = None
    page_index: int
    page_size: int
    loading: bool
    more: bool
    status: str
    status_message: str
    error: Optional[str] = None
    count_error: Optional[str] = None
