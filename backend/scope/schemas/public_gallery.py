from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class PublicImage(BaseModel):
    path: str
    url: str
    created_at: Optional[datetime] = None
    # Location chip; nothing populates it yet
    state: str = ""
    country: str = ""


class PublicGalleryResponse(BaseModel):
    items: List[PublicImage]
    status: str
    status_message: str
