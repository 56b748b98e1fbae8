import logging

from fastapi import APIRouter, Depends, HTTPException

from scope.schemas.common import StatusResponse
from scope.schemas.media import MediaRecordDetail, NotesUpdate
from scope.services.data_store import MediaDataStore, StoreError
from scope.services.image_service import ImageService
from scope.services.store_factory import get_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{image_id}", response_model=MediaRecordDetail)
async def get_image(image_id: str, store: MediaDataStore = Depends(get_store)):
    service = ImageService(store)
    try:
        image = await service.get_image(image_id)
    except StoreError as e:
        logger.warning(f"Image {image_id} load failed: {e}")
        raise HTTPException(status_code=502, detail=f"Load failed: {e}")
    if not image:
        raise HTTPException(status_code=404, detail="Not found or not accessible.")
    return image


@router.put("/{image_id}/notes", response_model=StatusResponse)
async def save_notes(image_id: str, body: NotesUpdate, store: MediaDataStore = Depends(get_store)):
    service = ImageService(store)
    error = await service.save_notes(image_id, body.notes)
    if error:
        raise HTTPException(status_code=400, detail=f"Save failed: {error}")
    return StatusResponse(status="saved", message="Saved.")
