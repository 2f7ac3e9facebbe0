"""
Process-local persistence backend.

Interchangeable with the SQL repositories; selected with
PERSISTENCE_BACKEND=memory. Stored objects are copied on the way in and out
so callers never share mutable state with the store.
"""
import asyncio
import copy
from collections import Counter
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from uuid import UUID

from registry_orchestrator.application.interfaces.company_repository import CompanyRepository
from registry_orchestrator.application.interfaces.job_repository import ScrapeJobRepository
from registry_orchestrator.domain.entities.company_record import CompanyRecord
from registry_orchestrator.domain.entities.company_stats import RECENT_WINDOW_DAYS, CompanyStats
from registry_orchestrator.domain.entities.scrape_job import ScrapeJob


def _detached(job: ScrapeJob) -> ScrapeJob:
    clone = copy.deepcopy(job)
    clone.collect_events()
    return clone


class InMemoryScrapeJobRepository(ScrapeJobRepository):
    def __init__(self) -> None:
        self._jobs: dict[UUID, ScrapeJob] = {}
        self._lock = asyncio.Lock()

    async def upsert_job(self, job: ScrapeJob) -> None:
        async with self._lock:
            self._jobs[job.id] = _detached(job)

    async def get_by_id(self, job_id: UUID) -> ScrapeJob | None:
        async with self._lock:
            job = self._jobs.get(job_id)
            return _detached(job) if job is not None else None

    async def list_for_owner(
        self,
        owner_id: str,
        *,
        limit: int = 10,
        offset: int = 0,
    ) -> list[ScrapeJob]:
        async with self._lock:
            jobs = [job for job in self._jobs.values() if job.owner_id == owner_id]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return [_detached(job) for job in jobs[offset : offset + limit]]


class InMemoryCompanyRepository(CompanyRepository):
    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        # Insertion order doubles as scrape order; re-upserting moves a record to the end.
        self._records: dict[tuple[str, str], CompanyRecord] = {}
        self._scraped_at: dict[tuple[str, str], datetime] = {}
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = asyncio.Lock()

    async def upsert_records(self, owner_id: str, records: list[CompanyRecord]) -> int:
        written: set[str] = set()
        async with self._lock:
            for record in records:
                key = (owner_id, record.identifier)
                self._records.pop(key, None)
                self._records[key] = copy.deepcopy(record)
                self._scraped_at[key] = self._clock()
                written.add(record.identifier)
        return len(written)

    async def list_for_owner(
        self,
        owner_id: str,
        *,
        region_code: str | None = None,
        category_code: str | None = None,
        legal_form: str | None = None,
        search: str | None = None,
        sort_by: str = "scraped_at",
        sort_order: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[CompanyRecord], int]:
        async with self._lock:
            matches = [
                record
                for (owner, _), record in self._records.items()
                if owner == owner_id
                and (region_code is None or record.region_code == region_code)
                and (category_code is None or record.category_code == category_code)
                and (legal_form is None or record.legal_form == legal_form)
                and (not search or _matches_search(record, search))
            ]

        descending = sort_order == "desc"
        if sort_by == "scraped_at":
            if descending:
                matches.reverse()
        else:
            # Stable sorts: identifier breaks ties, missing start dates go last.
            matches.sort(key=lambda record: record.identifier)
            present = [r for r in matches if getattr(r, sort_by) is not None]
            missing = [r for r in matches if getattr(r, sort_by) is None]
            present.sort(key=lambda record: getattr(record, sort_by), reverse=descending)
            matches = present + missing

        page = matches[offset : offset + limit]
        return [copy.deepcopy(record) for record in page], len(matches)

    async def get_for_owner(self, owner_id: str, identifier: str) -> CompanyRecord | None:
        async with self._lock:
            record = self._records.get((owner_id, identifier))
            return copy.deepcopy(record) if record is not None else None

    async def stats_for_owner(self, owner_id: str, *, top: int = 10) -> CompanyStats:
        since = self._clock() - timedelta(days=RECENT_WINDOW_DAYS)
        async with self._lock:
            owned = [
                (record, self._scraped_at[key])
                for key, record in self._records.items()
                if key[0] == owner_id
            ]
        return CompanyStats(
            total=len(owned),
            scraped_last_month=sum(1 for _, scraped_at in owned if scraped_at >= since),
            by_region=_top_counts((record.region_code for record, _ in owned), top),
            by_category=_top_counts((record.category_code for record, _ in owned), top),
        )


def _matches_search(record: CompanyRecord, search: str) -> bool:
    needle = search.lower()
    return (
        needle in record.name.lower()
        or needle in record.identifier
        or any(needle in name.lower() for name in record.representatives)
    )


def _top_counts(codes: Iterable[str], top: int) -> list[tuple[str, int]]:
    counts = Counter(code for code in codes if code)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:top]
