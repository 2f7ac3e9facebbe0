"""
Extraction loop tests against a scripted page.

No browser is involved: FakePage serves fixture HTML and records what the
loop asked of it.
"""
from unittest.mock import AsyncMock

import pytest

from registry_orchestrator.application.scraping.cancellation import CancellationToken
from registry_orchestrator.application.scraping.extraction_loop import (
    ExtractionState,
    PaginatedExtractor,
    ProgressUpdate,
    compute_percent,
)
from registry_orchestrator.application.scraping.politeness import (
    PolitenessController,
    PolitenessPolicy,
)
from registry_orchestrator.domain.entities.scrape_filter import ScrapeFilter
from registry_orchestrator.domain.errors import (
    ExtractionError,
    NavigationTimeout,
    ScrapeCancelledError,
)
from scraping_fakes import FakePage, no_results_page, results_page, valid_cards

BASE_URL = "https://data.inpi.fr/entreprises"
FILTER = ScrapeFilter.create(category_code="6201Z", region_code="75")


def _pages(*counts: int, total: int | None = None) -> list[str]:
    """One results page per count; every page but the last has a next control."""
    pages = []
    start = 0
    for index, count in enumerate(counts):
        pages.append(
            results_page(
                valid_cards(count, start=start),
                total=total,
                has_next=index < len(counts) - 1,
            )
        )
        start += count
    return pages


def _extractor(
    page: FakePage,
    *,
    token: CancellationToken | None = None,
    max_pages: int = 200,
    on_progress=None,  # type: ignore[no-untyped-def]
    on_page_records=None,  # type: ignore[no-untyped-def]
) -> PaginatedExtractor:
    politeness = PolitenessController(PolitenessPolicy(delay_ms=0), token or CancellationToken())
    return PaginatedExtractor(
        page,
        politeness,
        base_url=BASE_URL,
        max_pages=max_pages,
        on_progress=on_progress,
        on_page_records=on_page_records,
    )


class TestComputePercent:
    def test_starts_at_ten(self) -> None:
        assert compute_percent(0, 0) == 10

    def test_capped_at_ninety(self) -> None:
        assert compute_percent(10, 10) == 90
        assert compute_percent(0, 50) == 90

    def test_midway(self) -> None:
        assert compute_percent(10, 5) == 50


class TestPagination:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("page_count", [1, 2, 3, 5])
    async def test_visits_every_page_and_reports_once_per_page(self, page_count: int) -> None:
        page = FakePage(_pages(*([2] * page_count)))
        on_progress = AsyncMock()
        extractor = _extractor(page, on_progress=on_progress)

        result = await extractor.run(FILTER)

        assert result.pages_visited == page_count
        assert page.clicks == page_count - 1
        assert on_progress.await_count == page_count
        updates: list[ProgressUpdate] = [c.args[0] for c in on_progress.await_args_list]
        assert updates[-1].percent == 100
        assert all(update.percent <= 90 for update in updates[:-1])
        assert extractor.state is ExtractionState.DONE

    @pytest.mark.asyncio
    async def test_records_in_page_order_and_stamped(self) -> None:
        page = FakePage(_pages(5, 3, total=8))
        result = await _extractor(page).run(FILTER)

        assert result.found_results == 8
        assert result.processed_results == 8
        assert [r.identifier for r in result.records] == [str(100000000 + n) for n in range(8)]
        assert {r.category_code for r in result.records} == {"6201Z"}
        assert {r.region_code for r in result.records} == {"75"}

    @pytest.mark.asyncio
    async def test_navigates_once_to_the_search_locator(self) -> None:
        page = FakePage(_pages(1, 1))
        await _extractor(page).run(FILTER)

        assert page.visited_urls == [
            f"{BASE_URL}?activite_principale=6201Z&departement=75&siege_social=true"
        ]

    @pytest.mark.asyncio
    async def test_progress_counts_are_cumulative(self) -> None:
        page = FakePage(_pages(4, 4, 2, total=10))
        on_progress = AsyncMock()
        await _extractor(page, on_progress=on_progress).run(FILTER)

        processed = [c.args[0].processed_results for c in on_progress.await_args_list]
        assert processed == [4, 8, 10]
        assert on_progress.await_args_list[0].args[0].percent == 42

    @pytest.mark.asyncio
    async def test_page_records_callback(self) -> None:
        page = FakePage(_pages(2, 1))
        on_page_records = AsyncMock()
        await _extractor(page, on_page_records=on_page_records).run(FILTER)

        batches = [len(c.args[0]) for c in on_page_records.await_args_list]
        assert batches == [2, 1]

    @pytest.mark.asyncio
    async def test_page_bound_truncates(self) -> None:
        pages = _pages(1, 1, 1, 1)
        page = FakePage(pages)
        on_progress = AsyncMock()
        result = await _extractor(page, max_pages=2, on_progress=on_progress).run(FILTER)

        assert result.truncated is True
        assert result.pages_visited == 2
        assert on_progress.await_args_list[-1].args[0].percent == 100


class TestEmptyAndBrokenPages:
    @pytest.mark.asyncio
    async def test_no_results_marker(self) -> None:
        page = FakePage([no_results_page()])
        on_progress = AsyncMock()
        extractor = _extractor(page, on_progress=on_progress)

        result = await extractor.run(FILTER)

        assert result.records == []
        assert result.pages_visited == 0
        on_progress.assert_awaited_once()
        assert on_progress.await_args.args[0].percent == 100
        assert extractor.state is ExtractionState.DONE

    @pytest.mark.asyncio
    async def test_missing_container_raises_extraction_error(self) -> None:
        page = FakePage(["<html><body><p>Maintenance</p></body></html>"], enforce_selectors=False)

        with pytest.raises(ExtractionError):
            await _extractor(page).run(FILTER)

    @pytest.mark.asyncio
    async def test_results_never_rendering_is_a_timeout(self) -> None:
        page = FakePage(["<html><body><p>Loading…</p></body></html>"])

        with pytest.raises(NavigationTimeout):
            await _extractor(page).run(FILTER)


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_before_navigation(self) -> None:
        token = CancellationToken()
        token.cancel()
        page = FakePage(_pages(1))
        extractor = _extractor(page, token=token)

        with pytest.raises(ScrapeCancelledError):
            await extractor.run(FILTER)

        assert page.visited_urls == []
        assert extractor.state is ExtractionState.CANCELLED

    @pytest.mark.asyncio
    async def test_cancelled_between_pages(self) -> None:
        token = CancellationToken()
        page = FakePage(_pages(1, 1, 1))

        async def stop_after_first_page(update: ProgressUpdate) -> None:
            token.cancel()

        extractor = _extractor(page, token=token, on_progress=stop_after_first_page)

        with pytest.raises(ScrapeCancelledError):
            await extractor.run(FILTER)

        assert page.clicks == 0
        assert extractor.state is ExtractionState.CANCELLED
