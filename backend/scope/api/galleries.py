import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from scope.config import settings
from scope.schemas.gallery import GalleryCreate, FilterUpdate, GalleryStateResponse
from scope.schemas.media import CategoryUpdate, ColorUpdate, EditResponse
from scope.services.data_store import MediaDataStore
from scope.services.gallery import EditResult, FilteredPaginatedGallery
from scope.services.gallery_registry import GalleryRegistry
from scope.services.store_factory import get_store
from scope.vocabulary import DEFAULT_VOCABULARY

logger = logging.getLogger(__name__)

router = APIRouter()

# Singleton registry; galleries live as long as the process or until evicted
registry = GalleryRegistry(max_size=settings.GALLERY_REGISTRY_SIZE)


def get_registry() -> GalleryRegistry:
    return registry


def _check_color(color: Optional[str]) -> None:
    if color and color not in DEFAULT_VOCABULARY.colors:
        raise HTTPException(status_code=422, detail=f"Unknown color: {color}")


def _get_gallery(gallery_id: str, galleries: GalleryRegistry) -> FilteredPaginatedGallery:
    gallery = galleries.get(gallery_id)
    if not gallery:
        raise HTTPException(status_code=404, detail="Gallery not found")
    return gallery


def _state(gallery_id: str, gallery: FilteredPaginatedGallery) -> GalleryStateResponse:
    return GalleryStateResponse(
        gallery_id=gallery_id,
        slug=gallery.vocabulary.slug_for_category(gallery.filter.category),
        category=gallery.filter.category,
        color=gallery.filter.color,
        items=gallery.items,
        count=gallery.count,
        page_index=gallery.cursor.page_index,
        page_size=gallery.cursor.page_size,
        loading=gallery.loading,
        more=gallery.more,
        status=gallery.status.value,
        status_message=gallery.status_message,
        error=gallery.error,
        count_error=gallery.count_error,
    )


def _edit_response(result: EditResult) -> EditResponse:
    if not result.ok:
        raise HTTPException(status_code=404 if result.not_found else 400, detail=result.message)
    return EditResponse(
        ok=result.ok,
        status=result.status.value,
        message=result.message,
        needs_color=result.needs_color,
        record=result.record,
    )


@router.post("/", response_model=GalleryStateResponse)
async def create_gallery(
    body: GalleryCreate,
    store: MediaDataStore = Depends(get_store),
    galleries: GalleryRegistry = Depends(get_registry),
):
    category = DEFAULT_VOCABULARY.category_for_slug(body.slug)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    _check_color(body.color)

    gallery = FilteredPaginatedGallery(store, category, page_size=settings.PAGE_SIZE)
    await gallery.set_filter(body.color)
    gallery_id = galleries.add(gallery)
    logger.info(f"Opened gallery {gallery_id} for {category} (color={body.color})")
    return _state(gallery_id, gallery)


@router.get("/{gallery_id}", response_model=GalleryStateResponse)
async def get_gallery(gallery_id: str, galleries: GalleryRegistry = Depends(get_registry)):
    return _state(gallery_id, _get_gallery(gallery_id, galleries))


@router.delete("/{gallery_id}")
async def close_gallery(gallery_id: str, galleries: GalleryRegistry = Depends(get_registry)):
    if not galleries.remove(gallery_id):
        raise HTTPException(status_code=404, detail="Gallery not found")
    return {"status": "closed"}


@router.put("/{gallery_id}/filter", response_model=GalleryStateResponse)
async def set_gallery_filter(
    gallery_id: str, body: FilterUpdate, galleries: GalleryRegistry = Depends(get_registry)
):
    gallery = _get_gallery(gallery_id, galleries)
    _check_color(body.color)
    await gallery.set_filter(body.color)
    return _state(gallery_id, gallery)


@router.post("/{gallery_id}/next", response_model=GalleryStateResponse)
async def load_next_page(gallery_id: str, galleries: GalleryRegistry = Depends(get_registry)):
    gallery = _get_gallery(gallery_id, galleries)
    await gallery.load_next_page()
    return _state(gallery_id, gallery)


@router.put("/{gallery_id}/images/{image_id}/categories", response_model=EditResponse)
async def set_image_categories(
    gallery_id: str,
    image_id: str,
    body: CategoryUpdate,
    galleries: GalleryRegistry = Depends(get_registry),
):
    gallery = _get_gallery(gallery_id, galleries)
    unknown = gallery.vocabulary.unknown_categories(body.categories)
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown categories: {', '.join(unknown)}")
    return _edit_response(await gallery.set_categories(image_id, body.categories))


@router.put("/{gallery_id}/images/{image_id}/colors", response_model=EditResponse)
async def set_image_colors(
    gallery_id: str,
    image_id: str,
    body: ColorUpdate,
    galleries: GalleryRegistry = Depends(get_registry),
):
    gallery = _get_gallery(gallery_id, galleries)
    unknown = gallery.vocabulary.unknown_colors(body.colors)
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown colors: {', '.join(unknown)}")
    return _edit_response(await gallery.set_colors(image_id, body.colors))
