from fastapi import APIRouter, Depends
from typing import List

from scope.schemas.category import CategoryResponse
from scope.services.browse_service import BrowseService
from scope.services.data_store import MediaDataStore
from scope.services.store_factory import get_store

router = APIRouter()


@router.get("/", response_model=List[CategoryResponse])
async def list_categories(store: MediaDataStore = Depends(get_store)):
    service = BrowseService(store)
    return await service.list_categories()
