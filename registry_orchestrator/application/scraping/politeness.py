"""
Per-job politeness controls for the directory.

One controller belongs to one job: it serialises that job's page fetches,
bounds every browser call by the navigation budget and spaces consecutive
page fetches by the configured delay.
"""
import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from registry_orchestrator.application.scraping.cancellation import CancellationToken
from registry_orchestrator.domain.errors import NavigationTimeout, ScrapeCancelledError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_USER_AGENT = (
    "RegistryOrchestrator/0.1 (+business directory research; contact: ops@example.org)"
)


@dataclass(frozen=True)
class PolitenessPolicy:
    delay_ms: int = 2000
    navigation_timeout_ms: int = 30000
    selector_timeout_ms: int = 10000
    user_agent: str = DEFAULT_USER_AGENT


class PolitenessController:
    """Runs browser calls one at a time, under a timeout, honouring cancellation."""

    def __init__(self, policy: PolitenessPolicy, token: CancellationToken) -> None:
        self._policy = policy
        self._token = token
        self._lock = asyncio.Lock()
        self._fetches = 0

    @property
    def policy(self) -> PolitenessPolicy:
        return self._policy

    @property
    def fetch_count(self) -> int:
        return self._fetches

    async def call(
        self,
        action: str,
        operation: Callable[[], Awaitable[T]],
        *,
        timeout_ms: int | None = None,
        counts_as_fetch: bool = False,
    ) -> T:
        """
        Run one browser operation.

        Raises ScrapeCancelledError if the job was stopped before or during
        the call, NavigationTimeout if it exceeded its budget.
        """
        budget_ms = timeout_ms if timeout_ms is not None else self._policy.navigation_timeout_ms
        async with self._lock:
            self._token.raise_if_cancelled()
            try:
                result = await asyncio.wait_for(operation(), timeout=budget_ms / 1000)
            except asyncio.TimeoutError as exc:
                self._token.raise_if_cancelled()
                logger.warning("browser_call_timed_out", action=action, timeout_ms=budget_ms)
                raise NavigationTimeout(
                    f"{action} did not complete within {budget_ms} ms"
                ) from exc
            except (NavigationTimeout, ScrapeCancelledError):
                self._token.raise_if_cancelled()
                raise
            except Exception as exc:
                # Stopping the job closes the browser under the in-flight call.
                if self._token.cancelled:
                    raise ScrapeCancelledError() from exc
                raise
            if counts_as_fetch:
                self._fetches += 1
            self._token.raise_if_cancelled()
            return result

    async def pause_between_pages(self) -> None:
        """Apply the inter-page delay. Never applies before the first fetch."""
        if self._fetches == 0:
            return
        await self._token.sleep(self._policy.delay_ms / 1000)
