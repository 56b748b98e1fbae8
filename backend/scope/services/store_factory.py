import logging
from functools import lru_cache

from scope.config import Settings, settings
from scope.database import async_session_factory
from scope.services.data_store import MediaDataStore
from scope.services.sql_store import SqlMediaStore
from scope.services.supabase_store import SupabaseMediaStore

logger = logging.getLogger(__name__)

# Where scope.main serves MEDIA_DIR for the SQL backend
MEDIA_URL_PREFIX = "/media"


def build_store(config: Settings) -> MediaDataStore:
    if config.DATA_BACKEND == "supabase":
        if not config.SUPABASE_URL or not config.SUPABASE_ANON_KEY:
            raise ValueError("DATA_BACKEND=supabase needs SUPABASE_URL and SUPABASE_ANON_KEY")
        logger.info(f"Using Supabase data store at {config.SUPABASE_URL}")
        return SupabaseMediaStore(
            config.SUPABASE_URL,
            config.SUPABASE_ANON_KEY,
            bucket=config.STORAGE_BUCKET,
            thumbs_bucket=config.THUMBS_BUCKET,
        )
    if config.DATA_BACKEND != "sql":
        raise ValueError(f"Unknown DATA_BACKEND: {config.DATA_BACKEND}")
    logger.info("Using SQL data store")
    return SqlMediaStore(
        async_session_factory,
        public_base_url=f"{MEDIA_URL_PREFIX}/{config.STORAGE_BUCKET}",
        thumbs_base_url=f"{MEDIA_URL_PREFIX}/{config.THUMBS_BUCKET}",
    )


@lru_cache
def get_store() -> MediaDataStore:
    return build_store(settings)
