from abc import ABC, abstractmethod
from uuid import UUID

from registry_orchestrator.domain.entities.scrape_job import ScrapeJob


class ScrapeJobRepository(ABC):
    """Port for persisting and querying ScrapeJob rows."""

    @abstractmethod
    async def upsert_job(self, job: ScrapeJob) -> None:
        ...

    @abstractmethod
    async def get_by_id(self, job_id: UUID) -> ScrapeJob | None:
        ...

    @abstractmethod
    async def list_for_owner(
        self,
        owner_id: str,
        *,
        limit: int = 10,
        offset: int = 0,
    ) -> list[ScrapeJob]:
        """Return the owner's jobs, newest first."""
        ...
