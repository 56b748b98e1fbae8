import asyncio
from datetime import datetime, timedelta

import pytest

from scope.services.gallery import FilteredPaginatedGallery, GalleryStatus

BLEBS = "Blebs"


def _ids(records):
    return [r.id for r in records]


def _colors(records):
    return [r.colors[0] for r in records]


@pytest.fixture
def gallery(store, vocabulary):
    return FilteredPaginatedGallery(store, BLEBS, page_size=2, vocabulary=vocabulary)


class TestPagination:
    @pytest.mark.asyncio
    async def test_blebs_scenario_pages_and_counts(self, gallery):
        await gallery.set_filter("")
        # set_filter fetches the first page itself
        assert _colors(gallery.items) == ["Yellow", "Brown"]
        assert gallery.count == 5
        assert gallery.more is True

        assert _colors(await gallery.load_next_page()) == ["Clear", "Red"]
        assert _colors(await gallery.load_next_page()) == ["Clear"]
        assert gallery.more is False
        assert await gallery.get_count() == 5

        await gallery.set_filter("Clear")
        assert _ids(gallery.items) == ["img-3", "img-1"]
        assert gallery.count == 2
        assert await gallery.get_count() == 2
        assert gallery.more is False

    @pytest.mark.asyncio
    async def test_exhaustion_yields_all_records_newest_first(self, gallery, store):
        pages = [await gallery.load_next_page() for _ in range(3)]
        loaded = [r for page in pages for r in page]

        assert _ids(loaded) == ["img-5", "img-4", "img-3", "img-2", "img-1"]
        assert len(set(_ids(gallery.items))) == 5
        assert gallery.more is False

        calls_before = len(store.fetch_calls)
        assert await gallery.load_next_page() == []
        assert len(store.fetch_calls) == calls_before
        assert len(gallery.items) == 5
        assert gallery.more is False

    @pytest.mark.asyncio
    async def test_full_last_page_stops_once_count_is_known(self, store, vocabulary):
        gallery = FilteredPaginatedGallery(store, "Biofilm", page_size=1, vocabulary=vocabulary)
        await gallery.set_filter(None)

        assert _ids(gallery.items) == ["img-6"]
        assert gallery.count == 1
        assert gallery.more is False

    @pytest.mark.asyncio
    async def test_full_last_page_without_count_needs_one_empty_fetch(self, store, vocabulary):
        gallery = FilteredPaginatedGallery(store, "Biofilm", page_size=1, vocabulary=vocabulary)
        assert len(await gallery.load_next_page()) == 1
        assert gallery.more is True

        assert await gallery.load_next_page() == []
        assert gallery.more is False
        assert _ids(gallery.items) == ["img-6"]
        assert gallery.status == GalleryStatus.LOADED

    @pytest.mark.asyncio
    async def test_offsets_follow_page_index(self, gallery, store):
        await gallery.load_next_page()
        await gallery.load_next_page()
        assert [call[2:] for call in store.fetch_calls] == [(0, 2), (2, 2)]

    @pytest.mark.asyncio
    async def test_records_carry_public_urls(self, gallery):
        await gallery.load_next_page()
        assert gallery.items[0].public_url == "https://cdn.test/images/user-1/img-5.jpg"


class TestFiltering:
    @pytest.mark.asyncio
    async def test_filter_change_drops_previous_records(self, gallery):
        await gallery.set_filter("Red")
        assert _ids(gallery.items) == ["img-2"]

        await gallery.set_filter("Clear")
        assert _ids(gallery.items) == ["img-3", "img-1"]
        assert all("Clear" in r.colors for r in gallery.items)

    @pytest.mark.asyncio
    async def test_filter_matches_both_color_representations(self, gallery):
        await gallery.set_filter("Brown")
        # img-4 only has the legacy bleb_color column
        assert _ids(gallery.items) == ["img-4"]
        assert gallery.items[0].colors == ["Brown"]

    @pytest.mark.asyncio
    async def test_filter_resets_cursor(self, gallery, store):
        await gallery.load_next_page()
        await gallery.load_next_page()
        await gallery.set_filter("Yellow")

        assert gallery.cursor.page_index == 1
        assert store.fetch_calls[-1] == (BLEBS, "Yellow", 0, 2)

    @pytest.mark.asyncio
    async def test_unknown_color_is_rejected_without_fetching(self, gallery, store):
        await gallery.set_filter("Purple")
        assert gallery.status == GalleryStatus.FAILED
        assert store.fetch_calls == []

    def test_unknown_category_is_rejected(self, store, vocabulary):
        with pytest.raises(ValueError):
            FilteredPaginatedGallery(store, "Hexagons", vocabulary=vocabulary)

    @pytest.mark.asyncio
    async def test_fibers_match_their_own_legacy_color_column(self, store, vocabulary, row_factory):
        store.rows.append(row_factory("fib-1", datetime(2025, 8, 3), category="Fibers", fibers_color="Red"))
        # A stray bleb_color on a Fibers image is not its color
        store.rows.append(row_factory("fib-2", datetime(2025, 8, 4), category="Fibers", bleb_color="Red"))
        gallery = FilteredPaginatedGallery(store, "Fibers", page_size=5, vocabulary=vocabulary)
        await gallery.set_filter("Red")

        assert _ids(gallery.items) == ["fib-1"]
        assert gallery.items[0].colors == ["Red"]
        assert gallery.count == 1


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_stale_page_is_discarded(self, gallery, store):
        store.gates[None] = asyncio.Event()
        pending = asyncio.create_task(gallery.load_next_page())
        await asyncio.sleep(0)
        assert gallery.loading is True

        await gallery.set_filter("Clear")
        store.gates[None].set()
        assert await pending == []

        assert _ids(gallery.items) == ["img-3", "img-1"]
        assert gallery.status == GalleryStatus.LOADED
        assert gallery.error is None

    @pytest.mark.asyncio
    async def test_stale_failure_is_silent(self, gallery, store):
        store.gates[None] = asyncio.Event()
        pending = asyncio.create_task(gallery.load_next_page())
        await asyncio.sleep(0)

        await gallery.set_filter("Red")
        store.fail_fetch = True
        store.gates[None].set()
        await pending

        assert _ids(gallery.items) == ["img-2"]
        assert gallery.status == GalleryStatus.LOADED
        assert gallery.error is None

    @pytest.mark.asyncio
    async def test_redundant_load_is_ignored_while_in_flight(self, gallery, store):
        store.gates[None] = asyncio.Event()
        first = asyncio.create_task(gallery.load_next_page())
        await asyncio.sleep(0)

        assert await gallery.load_next_page() == []
        store.gates[None].set()
        assert len(await first) == 2
        assert len(store.fetch_calls) == 1
        assert gallery.loading is False

    @pytest.mark.asyncio
    async def test_stale_count_is_discarded(self, gallery, store):
        slow_count = asyncio.Event()
        original = store.count

        async def gated_count(category, color=None):
            if color is None:
                await slow_count.wait()
            return await original(category, color)

        store.count = gated_count
        pending = asyncio.create_task(gallery.refresh_count())
        await asyncio.sleep(0)
        await gallery.set_filter("Clear")
        slow_count.set()

        assert await pending is None
        assert gallery.count == 2


class TestFailures:
    @pytest.mark.asyncio
    async def test_failed_load_is_distinct_from_empty(self, gallery, store):
        await gallery.load_next_page()
        store.fail_fetch = True
        assert await gallery.load_next_page() == []

        assert gallery.status == GalleryStatus.FAILED
        assert gallery.status_message.startswith("Load error:")
        assert gallery.more is False
        assert len(gallery.items) == 2

        calls = len(store.fetch_calls)
        await gallery.load_next_page()
        assert len(store.fetch_calls) == calls

    @pytest.mark.asyncio
    async def test_empty_category_reports_no_results(self, store, vocabulary):
        gallery = FilteredPaginatedGallery(store, "Fibers", page_size=2, vocabulary=vocabulary)
        await gallery.set_filter(None)

        assert gallery.items == []
        assert gallery.count == 0
        assert gallery.status == GalleryStatus.EMPTY
        assert gallery.status_message == "No items in this category yet."

    @pytest.mark.asyncio
    async def test_count_failure_does_not_block_pages(self, gallery, store):
        store.fail_count = True
        await gallery.set_filter(None)

        assert gallery.count is None
        assert gallery.count_error is not None
        assert len(gallery.items) == 2
        assert gallery.status == GalleryStatus.LOADED

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_does_not_wedge_loading(self, gallery, store):
        working_fetch = store.fetch_page

        async def broken_fetch(category, color, offset, limit):
            raise ValueError("page body is not JSON")

        store.fetch_page = broken_fetch
        assert await gallery.load_next_page() == []

        assert gallery.loading is False
        assert gallery.status == GalleryStatus.FAILED
        assert "not JSON" in gallery.error

        store.fetch_page = working_fetch
        await gallery.set_filter(None)
        assert gallery.status == GalleryStatus.LOADED
        assert len(gallery.items) == 2

    @pytest.mark.asyncio
    async def test_malformed_row_fails_the_page(self, gallery, store, row_factory):
        store.rows.append(row_factory(None, datetime(2025, 9, 1)))
        await gallery.set_filter(None)

        assert gallery.loading is False
        assert gallery.status == GalleryStatus.FAILED
        assert gallery.items == []

    @pytest.mark.asyncio
    async def test_unexpected_count_error_is_recorded(self, gallery, store):
        async def broken_count(category, color=None):
            raise TypeError("count header missing")

        store.count = broken_count
        await gallery.set_filter(None)

        assert gallery.count is None
        assert "count header missing" in gallery.count_error
        assert len(gallery.items) == 2

    @pytest.mark.asyncio
    async def test_manual_retry_after_filter_reload(self, gallery, store):
        store.fail_fetch = True
        await gallery.set_filter(None)
        assert gallery.status == GalleryStatus.FAILED

        store.fail_fetch = False
        await gallery.set_filter(None)
        assert gallery.status == GalleryStatus.LOADED
        assert len(gallery.items) == 2


class TestCategoryEditing:
    @pytest.mark.asyncio
    async def test_writes_both_representations(self, gallery, store):
        await gallery.load_next_page()
        result = await gallery.set_categories("img-5", [BLEBS, "Fibers"])

        assert result.ok
        assert result.status == GalleryStatus.SAVED
        assert store.row("img-5")["categories"] == [BLEBS, "Fibers"]
        assert store.row("img-5")["category"] == BLEBS
        assert result.record.categories == [BLEBS, "Fibers"]
        assert gallery.status_message == "Saved."

    @pytest.mark.asyncio
    async def test_repeated_write_is_idempotent(self, gallery, store):
        await gallery.set_categories("img-2", ["Fibers", BLEBS])
        once = await store.fetch_record("img-2")
        await gallery.set_categories("img-2", ["Fibers", BLEBS])
        twice = await store.fetch_record("img-2")

        assert once["categories"] == twice["categories"] == ["Fibers", BLEBS]
        assert once["category"] == twice["category"] == "Fibers"

    @pytest.mark.asyncio
    async def test_legacy_only_record_round_trip(self, gallery, store):
        await gallery.load_next_page()
        legacy = next(r for r in gallery.items if r.id == "img-4")
        assert legacy.categories == [BLEBS]

        await gallery.set_categories("img-4", ["Fibers", BLEBS])
        assert store.row("img-4")["category"] == "Fibers"

    @pytest.mark.asyncio
    async def test_duplicate_labels_collapse(self, gallery, store):
        await gallery.set_categories("img-1", [BLEBS, BLEBS])
        assert store.row("img-1")["categories"] == [BLEBS]

    @pytest.mark.asyncio
    async def test_empty_set_clears_legacy_field(self, gallery, store):
        result = await gallery.set_categories("img-3", [])
        assert result.ok
        assert store.row("img-3")["categories"] == []
        assert store.row("img-3")["category"] is None

    @pytest.mark.asyncio
    async def test_missing_multi_column_is_tolerated(self, gallery, store):
        store.missing_fields.add("categories")
        await gallery.load_next_page()
        result = await gallery.set_categories("img-5", ["Fibers"])

        assert result.ok
        assert store.row("img-5")["category"] == "Fibers"
        assert [p[1] for p in store.patches] == ["categories", "category"]

    @pytest.mark.asyncio
    async def test_other_failure_is_fatal_and_leaves_local_state(self, gallery, store):
        store.failing_fields["category"] = "permission denied for table image_metadata"
        await gallery.load_next_page()
        result = await gallery.set_categories("img-5", ["Fibers"])

        assert not result.ok
        assert result.status == GalleryStatus.FAILED
        assert "permission denied" in result.message
        # Both writes were attempted even though the second one failed
        assert [p[1] for p in store.patches] == ["categories", "category"]
        local = next(r for r in gallery.items if r.id == "img-5")
        assert local.categories == [BLEBS]

    @pytest.mark.asyncio
    async def test_unknown_label_is_rejected_without_writing(self, gallery, store):
        result = await gallery.set_categories("img-5", ["Hexagons"])
        assert not result.ok
        assert store.patches == []

    @pytest.mark.asyncio
    async def test_color_prompt_when_color_category_added(self, gallery, store, row_factory):
        store.rows.append(row_factory("img-7", datetime(2025, 8, 2), category="Biofilm", categories=["Biofilm"]))
        result = await gallery.set_categories("img-7", ["Biofilm", "Fibers"])

        assert result.ok
        assert result.needs_color is True
        assert store.row("img-7")["categories"] == ["Biofilm", "Fibers"]

    @pytest.mark.asyncio
    async def test_no_color_prompt_when_record_has_colors(self, gallery, store):
        result = await gallery.set_categories("img-2", [BLEBS, "Fibers"])
        assert result.ok
        assert result.needs_color is False

    @pytest.mark.asyncio
    async def test_no_color_prompt_for_plain_categories(self, gallery, store):
        result = await gallery.set_categories("img-6", ["Biofilm"])
        assert result.needs_color is False


class TestColorEditing:
    @pytest.mark.asyncio
    async def test_writes_both_color_representations(self, gallery, store):
        await gallery.load_next_page()
        result = await gallery.set_colors("img-4", ["Orange", "Brown"])

        assert result.ok
        assert store.row("img-4")["colors"] == ["Orange", "Brown"]
        assert store.row("img-4")["bleb_color"] == "Orange"
        assert result.record.colors == ["Orange", "Brown"]

    @pytest.mark.asyncio
    async def test_empty_set_clears_colors(self, gallery, store):
        result = await gallery.set_colors("img-2", [])
        assert result.ok
        assert store.row("img-2")["colors"] == []
        assert store.row("img-2")["bleb_color"] is None

    @pytest.mark.asyncio
    async def test_missing_legacy_column_is_tolerated(self, gallery, store):
        store.missing_fields.add("bleb_color")
        result = await gallery.set_colors("img-3", ["Red"])
        assert result.ok
        assert store.row("img-3")["colors"] == ["Red"]

    @pytest.mark.asyncio
    async def test_both_columns_missing_is_a_failure(self, gallery, store):
        store.missing_fields.update({"colors", "bleb_color"})
        result = await gallery.set_colors("img-3", ["Red"])
        assert not result.ok

    @pytest.mark.asyncio
    async def test_unknown_color_is_rejected(self, gallery, store):
        result = await gallery.set_colors("img-3", ["Purple"])
        assert not result.ok
        assert store.patches == []

    @pytest.mark.asyncio
    async def test_missing_record_is_reported(self, gallery):
        result = await gallery.set_colors("img-404", ["Red"])
        assert not result.ok
        assert "img-404" in result.message
        assert result.not_found is True

    @pytest.mark.asyncio
    async def test_fibers_record_writes_fibers_color(self, store, vocabulary, row_factory):
        store.rows.append(row_factory("fib-1", datetime(2025, 8, 3), category="Fibers", fibers_color="Red"))
        gallery = FilteredPaginatedGallery(store, "Fibers", page_size=5, vocabulary=vocabulary)
        await gallery.set_filter(None)
        assert gallery.items[0].colors == ["Red"]

        result = await gallery.set_colors("fib-1", ["Brown"])

        assert result.ok
        assert store.patches == [("fib-1", "colors", ["Brown"]), ("fib-1", "fibers_color", "Brown")]
        assert store.row("fib-1")["bleb_color"] is None

    @pytest.mark.asyncio
    async def test_plain_category_writes_only_the_list(self, gallery, store):
        result = await gallery.set_colors("img-6", ["Clear"])

        assert result.ok
        assert store.patches == [("img-6", "colors", ["Clear"])]
        assert result.record.colors == ["Clear"]
