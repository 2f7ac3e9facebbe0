import asyncio

from registry_orchestrator.domain.errors import ScrapeCancelledError

CANCELLATION_MESSAGE = "Stopped by the operator"


class CancellationToken:
    """Cooperative cancellation flag observed at every suspension point."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScrapeCancelledError(CANCELLATION_MESSAGE)

    async def sleep(self, seconds: float) -> None:
        """Sleep for `seconds`, waking early and raising if cancelled meanwhile."""
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()
