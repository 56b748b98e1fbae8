from pydantic_settings import BaseSettings
from typing import List
import json


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./scope.db"
    DATA_BACKEND: str = "sql"
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    STORAGE_BUCKET: str = "images"
    THUMBS_BUCKET: str = "public-thumbs"
    MEDIA_DIR: str = "./media"
    PUBLIC_GALLERY_LIMIT: int = 120
    MEMBERS_GALLERY_LIMIT: int = 180
    PAGE_SIZE: int = 24
    GALLERY_REGISTRY_SIZE: int = 256
    LOG_LEVEL: str = "INFO"
    API_PORT: int = 9876
    API_HOST: str = "0.0.0.0"
    CORS_ORIGINS: str = '["http://localhost:3000"]'

    @property
    def cors_origins_list(self) -> List[str]:
        return json.loads(self.CORS_ORIGINS)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
