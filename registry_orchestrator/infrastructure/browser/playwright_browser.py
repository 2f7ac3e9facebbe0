"""
Playwright (Chromium) implementation of the browser page abstraction.

Each job opens its own Playwright driver, browser, context and page; close()
tears all four down in reverse order.
"""
from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
import structlog

from registry_orchestrator.application.interfaces.browser import BrowserFactory, BrowserPage
from registry_orchestrator.application.scraping.politeness import PolitenessPolicy
from registry_orchestrator.domain.errors import NavigationTimeout

logger = structlog.get_logger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]
BLOCKED_RESOURCE_TYPES = frozenset({"stylesheet", "image", "font"})
VIEWPORT = {"width": 1920, "height": 1080}


async def _block_heavy_resources(route: Route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class PlaywrightPage(BrowserPage):
    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._closed = False

    async def goto(self, url: str, *, timeout_ms: int) -> None:
        try:
            await self._page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeout(f"Navigation to {url} timed out after {timeout_ms} ms") from exc

    async def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeout(
                f"Selector {selector!r} did not appear within {timeout_ms} ms"
            ) from exc

    async def click(self, selector: str, *, timeout_ms: int) -> None:
        try:
            await self._page.click(selector, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeout(f"Click on {selector!r} timed out after {timeout_ms} ms") from exc

    async def content(self) -> str:
        return await self._page.content()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for name, closer in (
            ("context", self._context.close),
            ("browser", self._browser.close),
            ("playwright", self._playwright.stop),
        ):
            try:
                await closer()
            except Exception as exc:
                logger.warning("browser_close_step_failed", step=name, error=str(exc))


class PlaywrightBrowserFactory(BrowserFactory):
    """Launches headless Chromium configured with the job's politeness policy."""

    def __init__(
        self,
        policy: PolitenessPolicy,
        *,
        headless: bool = True,
        block_heavy_resources: bool = True,
    ) -> None:
        self._policy = policy
        self._headless = headless
        self._block_heavy_resources = block_heavy_resources

    async def open(self) -> BrowserPage:
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=self._headless, args=LAUNCH_ARGS)
            context = await browser.new_context(
                user_agent=self._policy.user_agent,
                viewport=VIEWPORT,
            )
            context.set_default_navigation_timeout(self._policy.navigation_timeout_ms)
            if self._block_heavy_resources:
                await context.route("**/*", _block_heavy_resources)
            page = await context.new_page()
        except Exception:
            logger.exception("browser_launch_failed")
            await playwright.stop()
            raise

        logger.info("browser_opened", headless=self._headless)
        return PlaywrightPage(playwright, browser, context, page)
