import logging

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from scope.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.LOG_LEVEL == "DEBUG",
    connect_args=_connect_args(settings.DATABASE_URL),
)

async_session_factory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_session() -> AsyncSession:
    async with async_session_factory() as session:
        yield session


async def init_database(bind=None):
    from scope.models import image_metadata, public_gallery  # noqa: F401

    bind = bind or engine
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        if bind.dialect.name == "sqlite":
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA synchronous=NORMAL"))
        await _run_migrations(conn)


# Columns added after the first image_metadata schema shipped. Older databases
# pick them up here; create_all never alters an existing table.
MIGRATIONS = [
    ("image_metadata", "notes", "TEXT"),
    ("image_metadata", "categories", "JSON"),
    ("image_metadata", "colors", "JSON"),
    ("image_metadata", "fiber_bundles_color", "VARCHAR(20)"),
    ("image_metadata", "fibers_color", "VARCHAR(20)"),
    ("image_metadata", "uploader_initials", "VARCHAR(10)"),
    ("image_metadata", "uploader_age", "INTEGER"),
    ("image_metadata", "uploader_location", "VARCHAR(200)"),
    ("image_metadata", "uploader_contact_opt_in", "BOOLEAN"),
]


async def _run_migrations(conn):
    """Add columns that create_all won't add to existing tables."""
    for table, column, col_type in MIGRATIONS:
        try:
            await conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))
            logger.info(f"Added column {table}.{column}")
        except DBAPIError:
            pass  # Column already exists
