import asyncio
from dataclasses import dataclass, field
from uuid import UUID

import structlog

from registry_orchestrator.application.interfaces.browser import BrowserPage
from registry_orchestrator.application.scraping.cancellation import CancellationToken

logger = structlog.get_logger(__name__)


@dataclass
class ActiveSession:
    """Browser handle and cancellation flag owned by one running job."""

    job_id: UUID
    token: CancellationToken = field(default_factory=CancellationToken)
    page: BrowserPage | None = None
    task: "asyncio.Task[None] | None" = None

    async def release(self) -> None:
        """Close the browser. Safe to call from both stop() and the task itself."""
        page, self.page = self.page, None
        if page is None:
            return
        try:
            await page.close()
        except Exception:
            logger.exception("browser_release_failed", job_id=str(self.job_id))


class ActiveSessionRegistry:
    """
    Job id -> ActiveSession map shared by every running job.

    Structural changes go through a lock; each entry is otherwise touched only
    by its own job's task and by stop requests for that job.
    """

    def __init__(self) -> None:
        self._sessions: dict[UUID, ActiveSession] = {}
        self._lock = asyncio.Lock()

    async def register(self, session: ActiveSession) -> None:
        async with self._lock:
            if session.job_id in self._sessions:
                raise ValueError(f"Job {session.job_id} already has an active session.")
            self._sessions[session.job_id] = session

    async def get(self, job_id: UUID) -> ActiveSession | None:
        async with self._lock:
            return self._sessions.get(job_id)

    async def remove(self, job_id: UUID) -> ActiveSession | None:
        async with self._lock:
            return self._sessions.pop(job_id, None)

    async def all(self) -> list[ActiveSession]:
        async with self._lock:
            return list(self._sessions.values())

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
