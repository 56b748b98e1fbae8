from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from scope.config import settings
from scope.schemas.public_gallery import PublicGalleryResponse
from scope.services.data_store import MediaDataStore
from scope.services.public_gallery_service import PublicGalleryService
from scope.services.store_factory import get_store

router = APIRouter()

bearer_scheme = HTTPBearer(auto_error=False)


@router.get("/public", response_model=PublicGalleryResponse)
async def public_gallery(store: MediaDataStore = Depends(get_store)):
    return await PublicGalleryService(store).recent(settings.PUBLIC_GALLERY_LIMIT)


@router.get("/members", response_model=PublicGalleryResponse)
async def members_gallery(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: MediaDataStore = Depends(get_store),
):
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please sign in to view the members gallery.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    # Supabase checks the token through row-level security on every read
    member_store = store.with_access_token(credentials.credentials)
    return await PublicGalleryService(member_store).recent(settings.MEMBERS_GALLERY_LIMIT)
