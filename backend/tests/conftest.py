import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from scope.database import init_database
from scope.services.data_store import PatchResult, StoreError
from scope.vocabulary import COLORS, DEFAULT_VOCABULARY, Vocabulary

BLEBS = "Blebs"

TEST_VOCABULARY = Vocabulary(
    categories=(BLEBS, "Biofilm", "Fibers"),
    colors=COLORS,
    color_categories=frozenset({BLEBS, "Fibers"}),
    slugs={"blebs": BLEBS, "biofilm": "Biofilm", "fibers": "Fibers"},
    color_columns={BLEBS: "bleb_color", "Fibers": "fibers_color"},
)


class FakeMediaStore:
    """In-memory data store with switchable failures and per-color gates."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, vocabulary: Vocabulary = TEST_VOCABULARY):
        self.rows = [dict(r) for r in rows or []]
        self.vocabulary = vocabulary
        self.public_rows: List[Dict[str, Any]] = []
        self.fail_public = False
        self.access_token: Optional[str] = None
        self.missing_fields = set()
        self.failing_fields: Dict[str, str] = {}
        self.fail_fetch = False
        self.fail_count = False
        self.gates: Dict[Optional[str], asyncio.Event] = {}
        self.fetch_calls: List[tuple] = []
        self.count_calls: List[tuple] = []
        self.patches: List[tuple] = []

    def _matching(self, category: str, color: Optional[str]) -> List[Dict[str, Any]]:
        legacy = self.vocabulary.color_fields(category).legacy

        def matches(row):
            if row.get("category") != category:
                return False
            if color:
                return color in (row.get("colors") or []) or (legacy is not None and row.get(legacy) == color)
            return True

        found = [r for r in self.rows if matches(r)]
        return sorted(found, key=lambda r: (r["created_at"], r["id"]), reverse=True)

    async def count(self, category, color=None):
        self.count_calls.append((category, color))
        await asyncio.sleep(0)
        if self.fail_count:
            raise StoreError("Supabase 500: count unavailable")
        return len(self._matching(category, color))

    async def fetch_page(self, category, color, offset, limit):
        self.fetch_calls.append((category, color, offset, limit))
        gate = self.gates.get(color)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if self.fail_fetch:
            raise StoreError("Page request failed: connection reset")
        return [dict(r) for r in self._matching(category, color)[offset:offset + limit]]

    async def fetch_record(self, record_id):
        await asyncio.sleep(0)
        for row in self.rows:
            if row["id"] == record_id:
                return dict(row)
        return None

    async def patch_attributes(self, record_id, field, value):
        self.patches.append((record_id, field, value))
        await asyncio.sleep(0)
        if field in self.missing_fields:
            return PatchResult(ok=False, error=f"Could not find the '{field}' column of 'image_metadata' in the schema cache")
        if field in self.failing_fields:
            return PatchResult(ok=False, error=self.failing_fields[field])
        for row in self.rows:
            if row["id"] == record_id:
                row[field] = value
                return PatchResult(ok=True)
        return PatchResult(ok=False, error=f"No image with id {record_id} may be updated by this account")

    async def fetch_public(self, limit):
        await asyncio.sleep(0)
        if self.fail_public:
            raise StoreError("Supabase 500: public_gallery unavailable")
        rows = sorted(self.public_rows, key=lambda r: r["created_at"], reverse=True)
        return [dict(r) for r in rows[:limit]]

    def resolve_public_url(self, path):
        return f"https://cdn.test/images/{path}" if path else ""

    def resolve_thumb_url(self, path):
        return f"https://cdn.test/public-thumbs/{path}" if path else ""

    def with_access_token(self, access_token):
        self.access_token = access_token
        return self

    def row(self, record_id):
        return next(r for r in self.rows if r["id"] == record_id)


def make_row(record_id, created_at, category=BLEBS, categories=None, bleb_color=None, colors=None, **extra):
    row = {
        "id": record_id,
        "path": f"user-1/{record_id}.jpg",
        "filename": f"{record_id}.jpg",
        "category": category,
        "categories": categories,
        "bleb_color": bleb_color,
        "colors": colors,
        "notes": None,
        "created_at": created_at,
    }
    row.update(extra)
    return row


@pytest.fixture
def vocabulary():
    return TEST_VOCABULARY


@pytest.fixture
def blebs_rows():
    """Five Blebs images, oldest first: Clear, Red, Clear, Brown, Yellow.

    Colors are spread across both schema generations on purpose.
    """
    base = datetime(2025, 8, 1, 12, 0, 0)
    return [
        make_row("img-1", base, bleb_color="Clear"),
        make_row("img-2", base + timedelta(minutes=1), categories=[BLEBS], colors=["Red"], bleb_color="Red"),
        make_row("img-3", base + timedelta(minutes=2), categories=[BLEBS], colors=["Clear"]),
        make_row("img-4", base + timedelta(minutes=3), bleb_color="Brown"),
        make_row("img-5", base + timedelta(minutes=4), categories=[BLEBS], colors=["Yellow"], bleb_color="Yellow"),
        make_row("img-6", base + timedelta(minutes=5), category="Biofilm", categories=["Biofilm"]),
    ]


@pytest.fixture
def store(blebs_rows):
    return FakeMediaStore(blebs_rows)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'scope-test.db'}")
    await init_database(bind=engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def row_factory():
    return make_row


@pytest.fixture
def store_factory():
    def build(rows=None):
        return FakeMediaStore(rows, vocabulary=DEFAULT_VOCABULARY)

    return build
