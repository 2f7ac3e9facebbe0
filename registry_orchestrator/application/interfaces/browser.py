"""
Browser page abstraction driven by the extraction loop.

Every method is a suspension point. Adapters translate their own timeout
errors into NavigationTimeout.
"""
from abc import ABC, abstractmethod


class BrowserPage(ABC):
    """One exclusively-owned, rendered page of a headless browser."""

    @abstractmethod
    async def goto(self, url: str, *, timeout_ms: int) -> None:
        ...

    @abstractmethod
    async def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        ...

    @abstractmethod
    async def click(self, selector: str, *, timeout_ms: int) -> None:
        ...

    @abstractmethod
    async def content(self) -> str:
        """Return the current DOM serialised as HTML."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release every browser resource. Safe to call more than once."""
        ...


class BrowserFactory(ABC):
    """Opens a fresh browser session for one job."""

    @abstractmethod
    async def open(self) -> BrowserPage:
        ...
