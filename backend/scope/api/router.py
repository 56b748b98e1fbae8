from fastapi import APIRouter
from scope.api import categories, galleries, images, logs, public_gallery

api_router = APIRouter()

api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_router.include_router(galleries.router, prefix="/galleries", tags=["galleries"])
api_router.include_router(images.router, prefix="/images", tags=["images"])
api_router.include_router(public_gallery.router, prefix="/gallery", tags=["gallery"])
api_router.include_router(logs.router, tags=["logs"])
