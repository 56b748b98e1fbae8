from pydantic import BaseModel


class CategoryResponse(BaseModel):
    slug: str
    label: str
    color_bearing: bool = False
    count: int = 0
