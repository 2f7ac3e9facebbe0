"""
Scripted stand-ins for the browser and HTML builders for results pages.

FakePage serves a fixed list of result pages: goto() shows the first one,
every click() on the next control advances to the following one.
"""
import asyncio
from html import escape

from bs4 import BeautifulSoup

from registry_orchestrator.application.interfaces.browser import BrowserFactory, BrowserPage
from registry_orchestrator.domain.errors import NavigationTimeout


def company_card(
    name: str | None,
    siren: str | None,
    *,
    start_date: str = "",
    representatives: tuple[str, ...] = (),
    legal_form: str = "",
    address: str = "",
    location: str = "",
    establishments: str = "",
) -> str:
    parts = ['<div class="company-result">']
    if name is not None:
        parts.append(f'<h3 class="company-name">{escape(name)}</h3>')
    if siren is not None:
        parts.append(f'<span class="siren">SIREN {escape(siren)}</span>')
    if start_date:
        parts.append(f'<span class="start-date">Début d\'activité : {escape(start_date)}</span>')
    for representative in representatives:
        parts.append(f'<span class="dirigeant">{escape(representative)}</span>')
    if legal_form:
        parts.append(f'<span class="legal-form">{escape(legal_form)}</span>')
    if address:
        parts.append(f'<span class="address">{escape(address)}</span>')
    if location:
        parts.append(f'<span class="location">{escape(location)}</span>')
    if establishments:
        parts.append(f'<span class="establishments">{escape(establishments)}</span>')
    parts.append("</div>")
    return "".join(parts)


def valid_cards(count: int, *, start: int = 0) -> list[str]:
    return [
        company_card(f"Company {n}", f"{100000000 + n}", location="75001 Paris")
        for n in range(start, start + count)
    ]


def results_page(cards: list[str], *, total: int | None = None, has_next: bool = False) -> str:
    count = f'<div class="results-count">{total} résultats</div>' if total is not None else ""
    if has_next:
        pagination = '<nav class="pagination"><a class="next" href="#">Suivant</a></nav>'
    else:
        pagination = '<nav class="pagination"><a class="next disabled">Suivant</a></nav>'
    return (
        "<html><body>"
        f"{count}"
        f'<div class="search-results">{"".join(cards)}</div>'
        f"{pagination}"
        "</body></html>"
    )


def no_results_page() -> str:
    return '<html><body><div class="no-results">Aucun résultat</div></body></html>'


class FakePage(BrowserPage):
    def __init__(
        self,
        pages: list[str],
        *,
        block_on_click: int | None = None,
        enforce_selectors: bool = True,
    ) -> None:
        self.pages = pages
        self.index = -1
        self.visited_urls: list[str] = []
        self.clicks = 0
        self.close_calls = 0
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0
        # Click number (1-based) that hangs until the page is closed
        self.block_on_click = block_on_click
        self.enforce_selectors = enforce_selectors
        self.click_started = asyncio.Event()
        self._released = asyncio.Event()

    def _ensure_open(self) -> None:
        if self.closed:
            raise RuntimeError("Target page, context or browser has been closed")

    async def _enter(self) -> None:
        self._ensure_open()
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)

    async def goto(self, url: str, *, timeout_ms: int) -> None:
        await self._enter()
        try:
            self.visited_urls.append(url)
            self.index = 0
        finally:
            self.in_flight -= 1

    async def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        await self._enter()
        try:
            if self.enforce_selectors:
                soup = BeautifulSoup(self.pages[self.index], "html.parser")
                if soup.select_one(selector) is None:
                    raise NavigationTimeout(f"Selector {selector!r} did not appear")
        finally:
            self.in_flight -= 1

    async def click(self, selector: str, *, timeout_ms: int) -> None:
        await self._enter()
        try:
            self.clicks += 1
            if self.block_on_click == self.clicks:
                self.click_started.set()
                await self._released.wait()
                self._ensure_open()
            self.index += 1
        finally:
            self.in_flight -= 1

    async def content(self) -> str:
        self._ensure_open()
        return self.pages[self.index]

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True
        self._released.set()

    def resume(self) -> None:
        """Let a blocked click go through as if the site had answered."""
        self._released.set()


class FakeBrowserFactory(BrowserFactory):
    """Hands out the given pages in order, then fresh copies of the first one's script."""

    def __init__(self, page: FakePage, *more_pages: FakePage) -> None:
        self.page = page
        self.opened: list[FakePage] = []
        self._queued = [page, *more_pages]

    async def open(self) -> BrowserPage:
        page = self._queued.pop(0) if self._queued else FakePage(self.page.pages)
        self.opened.append(page)
        return page
