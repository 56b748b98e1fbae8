from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class MediaRecord(BaseModel):
    """An image row with its effective (reconciled) category and color sets."""

    id: str
    path: Optional[str] = None
    filename: Optional[str] = None
    categories: List[str] = []
    colors: List[str] = []
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    public_url: str = ""

    model_config = {"from_attributes": True}

    @property
    def category(self) -> Optional[str]:
        return self.categories[0] if self.categories else None

    @property
    def color(self) -> Optional[str]:
        return self.colors[0] if self.colors else None


class MediaRecordDetail(MediaRecord):
    user_id: Optional[str] = None
    ext: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None
    uploader_initials: Optional[str] = None
    uploader_age: Optional[int] = None
    uploader_location: Optional[str] = None
    uploader_contact_opt_in: Optional[bool] = None


class CategoryUpdate(BaseModel):
    categories: List[str]


class ColorUpdate(BaseModel):
    colors: List[str] = []


class NotesUpdate(BaseModel):
    notes: Optional[str] = None


class EditResponse(BaseModel):
    ok: bool
    status: str
    message: str
    needs_color: bool = False
    record: Optional[MediaRecord] = None
