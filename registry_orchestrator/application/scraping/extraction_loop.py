"""
Pagination-driven extraction over the directory's search results.

    NAVIGATE_SEARCH -> CHECK_EMPTY -> EXTRACT_PAGE -> CHECK_NEXT_PAGE -> EXTRACT_PAGE | DONE

CANCELLED is reachable from every state: it is entered whenever a browser
call observes the job's cancellation token.
"""
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

import structlog

from registry_orchestrator.application.interfaces.browser import BrowserPage
from registry_orchestrator.application.scraping.field_extractor import PageSnapshot, parse_page
from registry_orchestrator.application.scraping.politeness import PolitenessController
from registry_orchestrator.application.scraping.query_builder import build_search_url
from registry_orchestrator.application.scraping.site_schema import (
    CURRENT_SITE_SCHEMA,
    DirectorySiteSchema,
)
from registry_orchestrator.domain.entities.company_record import CompanyRecord
from registry_orchestrator.domain.entities.scrape_filter import ScrapeFilter
from registry_orchestrator.domain.errors import ExtractionError, ScrapeCancelledError

logger = structlog.get_logger(__name__)

RUNNING_PERCENT_CAP = 90


class ExtractionState(str, Enum):
    NAVIGATE_SEARCH = "navigate_search"
    CHECK_EMPTY = "check_empty"
    EXTRACT_PAGE = "extract_page"
    CHECK_NEXT_PAGE = "check_next_page"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ProgressUpdate:
    status_text: str
    percent: int
    found_results: int
    processed_results: int


@dataclass
class ExtractionResult:
    records: list[CompanyRecord] = field(default_factory=list)
    found_results: int = 0
    pages_visited: int = 0
    truncated: bool = False

    @property
    def processed_results(self) -> int:
        return len(self.records)


ProgressCallback = Callable[[ProgressUpdate], Awaitable[None]]
PageRecordsCallback = Callable[[list[CompanyRecord]], Awaitable[None]]


def compute_percent(found: int, processed: int) -> int:
    ratio = processed / max(found, processed, 1)
    return round(min(RUNNING_PERCENT_CAP, ratio * 80 + 10))


class PaginatedExtractor:
    """
    Drives one browser page through every results page for a filter.

    Pages are visited strictly in order. A progress update is emitted once per
    extracted page; the update for the last page carries percent=100 and
    doubles as the completion update.
    """

    def __init__(
        self,
        page: BrowserPage,
        politeness: PolitenessController,
        *,
        base_url: str,
        schema: DirectorySiteSchema = CURRENT_SITE_SCHEMA,
        max_pages: int = 200,
        on_progress: ProgressCallback | None = None,
        on_page_records: PageRecordsCallback | None = None,
    ) -> None:
        self._page = page
        self._politeness = politeness
        self._base_url = base_url
        self._schema = schema
        self._max_pages = max(1, max_pages)
        self._on_progress = on_progress
        self._on_page_records = on_page_records
        self.state = ExtractionState.NAVIGATE_SEARCH

    async def run(self, scrape_filter: ScrapeFilter) -> ExtractionResult:
        result = ExtractionResult()
        snapshot = PageSnapshot()
        self.state = ExtractionState.NAVIGATE_SEARCH
        log = logger.bind(
            category_code=scrape_filter.category_code,
            region_code=scrape_filter.region_code,
        )

        try:
            while self.state is not ExtractionState.DONE:
                if self.state is ExtractionState.NAVIGATE_SEARCH:
                    url = build_search_url(self._base_url, scrape_filter)
                    log.info("search_navigation_started", url=url)
                    await self._navigate(url)
                    snapshot = await self._capture()
                    self.state = ExtractionState.CHECK_EMPTY

                elif self.state is ExtractionState.CHECK_EMPTY:
                    if snapshot.has_no_results_marker:
                        log.info("search_returned_no_results")
                        await self._report("No companies found", 100, result)
                        self.state = ExtractionState.DONE
                    else:
                        # Best effort: 0 when the count is absent
                        result.found_results = snapshot.total_results
                        log.info("search_results_counted", found=result.found_results)
                        self.state = ExtractionState.EXTRACT_PAGE

                elif self.state is ExtractionState.EXTRACT_PAGE:
                    if not snapshot.has_results_container:
                        raise ExtractionError(
                            f"Results container {self._schema.results_container!r} "
                            f"missing on page {result.pages_visited + 1}"
                        )
                    page_records = self._stamp(snapshot.records, scrape_filter)
                    result.records.extend(page_records)
                    result.pages_visited += 1
                    log.info(
                        "page_extracted",
                        page=result.pages_visited,
                        records=len(page_records),
                        skipped_cards=snapshot.skipped_cards,
                        processed=result.processed_results,
                    )
                    if self._on_page_records is not None and page_records:
                        await self._on_page_records(page_records)
                    self.state = ExtractionState.CHECK_NEXT_PAGE

                elif self.state is ExtractionState.CHECK_NEXT_PAGE:
                    if snapshot.has_next_page and result.pages_visited >= self._max_pages:
                        result.truncated = True
                        log.warning("page_limit_reached", max_pages=self._max_pages)

                    if not snapshot.has_next_page or result.truncated:
                        await self._report(
                            f"Extraction complete: {result.processed_results} companies",
                            100,
                            result,
                        )
                        self.state = ExtractionState.DONE
                    else:
                        await self._report(
                            f"Extracting... page {result.pages_visited}",
                            compute_percent(result.found_results, result.processed_results),
                            result,
                        )
                        await self._next_page()
                        snapshot = await self._capture()
                        self.state = ExtractionState.EXTRACT_PAGE

        except ScrapeCancelledError:
            log.info("extraction_cancelled", state=self.state.value, pages=result.pages_visited)
            self.state = ExtractionState.CANCELLED
            raise

        log.info(
            "extraction_finished",
            pages=result.pages_visited,
            found=result.found_results,
            processed=result.processed_results,
            truncated=result.truncated,
        )
        return result

    # ---- Browser steps -------------------------------------------------------

    async def _navigate(self, url: str) -> None:
        policy = self._politeness.policy
        await self._politeness.call(
            "navigate",
            lambda: self._page.goto(url, timeout_ms=policy.navigation_timeout_ms),
            counts_as_fetch=True,
        )
        # Either the results or the explicit empty marker must render.
        ready_selector = f"{self._schema.results_container}, {self._schema.no_results_marker}"
        await self._politeness.call(
            "wait_for_results",
            lambda: self._page.wait_for_selector(
                ready_selector, timeout_ms=policy.selector_timeout_ms
            ),
            timeout_ms=policy.selector_timeout_ms,
        )

    async def _next_page(self) -> None:
        policy = self._politeness.policy
        await self._politeness.call(
            "next_page",
            lambda: self._page.click(
                self._schema.next_control, timeout_ms=policy.navigation_timeout_ms
            ),
            counts_as_fetch=True,
        )
        await self._politeness.call(
            "wait_for_results",
            lambda: self._page.wait_for_selector(
                self._schema.results_container, timeout_ms=policy.selector_timeout_ms
            ),
            timeout_ms=policy.selector_timeout_ms,
        )
        await self._politeness.pause_between_pages()

    async def _capture(self) -> PageSnapshot:
        html = await self._politeness.call("capture_content", self._page.content)
        return parse_page(html, self._schema)

    # ---- Helpers -------------------------------------------------------------

    async def _report(self, status_text: str, percent: int, result: ExtractionResult) -> None:
        if self._on_progress is None:
            return
        await self._on_progress(
            ProgressUpdate(
                status_text=status_text,
                percent=percent,
                found_results=result.found_results,
                processed_results=result.processed_results,
            )
        )

    @staticmethod
    def _stamp(records: list[CompanyRecord], scrape_filter: ScrapeFilter) -> list[CompanyRecord]:
        for record in records:
            record.category_code = scrape_filter.category_code
            record.region_code = scrape_filter.region_code
        return records
