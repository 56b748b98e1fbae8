import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from scope.config import settings
from scope.database import init_database
from scope.api.router import api_router
from scope.api.logs import install_log_handler
from scope.services.store_factory import MEDIA_URL_PREFIX

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL))
    install_log_handler()
    logger.info("Starting Scope backend...")
    if settings.DATA_BACKEND == "sql":
        await init_database()
        os.makedirs(settings.MEDIA_DIR, exist_ok=True)
    logger.info(f"Scope backend ready on port {settings.API_PORT} (data backend: {settings.DATA_BACKEND})")
    yield
    logger.info("Shutting down Scope backend...")


app = FastAPI(
    title="Scope API",
    description="The Scope of Morgellons: categorized microscopy image gallery",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")

# Local image and thumbnail files; Supabase serves its own buckets
if settings.DATA_BACKEND == "sql":
    app.mount(MEDIA_URL_PREFIX, StaticFiles(directory=settings.MEDIA_DIR, check_dir=False), name="media")
