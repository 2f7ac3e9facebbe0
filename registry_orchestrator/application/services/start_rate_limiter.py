import asyncio
import time
from collections import deque
from collections.abc import Callable

import structlog

from registry_orchestrator.domain.errors import RateLimitExceededError

logger = structlog.get_logger(__name__)


class StartRateLimiter:
    """
    Sliding-window cap on job starts per owner.

    Process-local: each replica keeps its own window. A limit of 0 disables it.
    """

    def __init__(
        self,
        *,
        limit: int = 10,
        window_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._starts: dict[str, deque[float]] = {}
        self._lock = asyncio.Lock()

    async def acquire(self, owner_id: str) -> None:
        """Record one start for owner_id, or raise RateLimitExceededError."""
        if self._limit <= 0:
            return
        async with self._lock:
            now = self._clock()
            starts = self._starts.setdefault(owner_id, deque())
            while starts and now - starts[0] >= self._window_seconds:
                starts.popleft()
            if len(starts) >= self._limit:
                retry_after = self._window_seconds - (now - starts[0])
                logger.warning(
                    "scrape_start_rate_limited",
                    owner_id=owner_id,
                    limit=self._limit,
                    retry_after_seconds=round(retry_after, 1),
                )
                raise RateLimitExceededError(self._limit, self._window_seconds, retry_after)
            starts.append(now)
