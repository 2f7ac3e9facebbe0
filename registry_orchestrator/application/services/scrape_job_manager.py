"""
Scrape job lifecycle: start, status, stop.

start() returns as soon as the job row is persisted and its background task
scheduled. Everything that goes wrong inside the task is recorded on the job
as status=failed; nothing is re-raised to the caller of start().
"""
import asyncio
from uuid import UUID

import structlog

from registry_orchestrator.application.interfaces.browser import BrowserFactory
from registry_orchestrator.application.interfaces.company_repository import (
    COMPANY_SORT_FIELDS,
    SORT_ORDERS,
    CompanyRepository,
)
from registry_orchestrator.application.interfaces.event_publisher import EventPublisher
from registry_orchestrator.application.interfaces.job_repository import ScrapeJobRepository
from registry_orchestrator.application.scraping.cancellation import CANCELLATION_MESSAGE
from registry_orchestrator.application.scraping.extraction_loop import (
    PaginatedExtractor,
    ProgressUpdate,
)
from registry_orchestrator.application.scraping.politeness import (
    PolitenessController,
    PolitenessPolicy,
)
from registry_orchestrator.application.scraping.site_schema import (
    CURRENT_SITE_SCHEMA,
    DirectorySiteSchema,
)
from registry_orchestrator.application.services.active_sessions import (
    ActiveSession,
    ActiveSessionRegistry,
)
from registry_orchestrator.application.services.start_rate_limiter import StartRateLimiter
from registry_orchestrator.domain.entities.company_record import CompanyRecord
from registry_orchestrator.domain.entities.company_stats import CompanyStats
from registry_orchestrator.domain.entities.scrape_filter import ScrapeFilter
from registry_orchestrator.domain.entities.scrape_job import ScrapeJob
from registry_orchestrator.domain.errors import (
    CompanyNotFoundError,
    JobTimeLimitExceededError,
    NotFoundError,
    ScrapeCancelledError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


class ScrapeJobManager:
    """
    Owns the registry of in-flight jobs.

    One manager is created per process and shared by every request; each job
    gets its own browser session and its own background task.
    """

    def __init__(
        self,
        job_repo: ScrapeJobRepository,
        company_repo: CompanyRepository,
        browser_factory: BrowserFactory,
        event_publisher: EventPublisher,
        *,
        base_url: str,
        policy: PolitenessPolicy | None = None,
        schema: DirectorySiteSchema = CURRENT_SITE_SCHEMA,
        registry: ActiveSessionRegistry | None = None,
        max_pages: int = 200,
        max_job_seconds: float = 1800,
        persist_per_page: bool = False,
        stop_grace_seconds: float = 10,
        rate_limiter: StartRateLimiter | None = None,
    ) -> None:
        self._jobs = job_repo
        self._companies = company_repo
        self._browser_factory = browser_factory
        self._event_publisher = event_publisher
        self._base_url = base_url
        self._policy = policy or PolitenessPolicy()
        self._schema = schema
        self._registry = registry or ActiveSessionRegistry()
        self._max_pages = max_pages
        self._max_job_seconds = max_job_seconds
        self._persist_per_page = persist_per_page
        self._stop_grace_seconds = stop_grace_seconds
        self._rate_limiter = rate_limiter

    @property
    def registry(self) -> ActiveSessionRegistry:
        return self._registry

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def start(
        self,
        *,
        owner_id: str,
        category_code: str | None,
        region_code: str | None,
        primary_site_only: bool | None = True,
    ) -> ScrapeJob:
        """Validate the filter, persist a running job and schedule its extraction."""
        scrape_filter = ScrapeFilter.create(
            category_code=category_code,
            region_code=region_code,
            primary_site_only=primary_site_only,
        )
        if self._rate_limiter is not None:
            await self._rate_limiter.acquire(owner_id)

        job = ScrapeJob(filter=scrape_filter, owner_id=owner_id)
        job.mark_running()
        await self._jobs.upsert_job(job)

        session = ActiveSession(job_id=job.id)
        await self._registry.register(session)
        session.task = asyncio.create_task(self._run(job, session), name=f"scrape-job-{job.id}")

        await self._event_publisher.publish_many(job.collect_events())
        logger.info(
            "scrape_job_started",
            job_id=str(job.id),
            owner_id=owner_id,
            category_code=scrape_filter.category_code,
            region_code=scrape_filter.region_code,
            primary_site_only=scrape_filter.primary_site_only,
        )
        return job

    async def status(self, job_id: UUID, *, owner_id: str) -> ScrapeJob:
        job = await self._jobs.get_by_id(job_id)
        if job is None or job.owner_id != owner_id:
            raise NotFoundError(job_id)
        return job

    async def list_jobs(self, *, owner_id: str, limit: int = 10, offset: int = 0) -> list[ScrapeJob]:
        return await self._jobs.list_for_owner(owner_id, limit=limit, offset=offset)

    async def list_companies(
        self,
        *,
        owner_id: str,
        region_code: str | None = None,
        category_code: str | None = None,
        legal_form: str | None = None,
        search: str | None = None,
        sort_by: str = "scraped_at",
        sort_order: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[CompanyRecord], int]:
        if sort_by not in COMPANY_SORT_FIELDS:
            raise ValidationError(
                f"Cannot sort companies by {sort_by!r}; use one of {', '.join(COMPANY_SORT_FIELDS)}."
            )
        sort_order = sort_order.lower()
        if sort_order not in SORT_ORDERS:
            raise ValidationError(f"Sort order must be 'asc' or 'desc', got {sort_order!r}.")
        return await self._companies.list_for_owner(
            owner_id,
            region_code=region_code,
            category_code=category_code,
            legal_form=legal_form,
            search=search.strip() if search else None,
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit,
            offset=offset,
        )

    async def get_company(self, identifier: str, *, owner_id: str) -> CompanyRecord:
        record = await self._companies.get_for_owner(owner_id, identifier)
        if record is None:
            raise CompanyNotFoundError(identifier)
        return record

    async def company_stats(self, *, owner_id: str) -> CompanyStats:
        return await self._companies.stats_for_owner(owner_id)

    async def stop(self, job_id: UUID, *, owner_id: str) -> ScrapeJob:
        """
        Cooperatively cancel a running job. No-op for terminal jobs.

        Signals the job's token, closes its browser and waits (bounded) for the
        task to record the cancellation before returning the job.
        """
        job = await self.status(job_id, owner_id=owner_id)
        if job.status.is_terminal:
            return job

        session = await self._registry.get(job_id)
        if session is None:
            # The task leaves the registry only after persisting its terminal
            # state, so a job that finished meanwhile reads as terminal here.
            job = await self.status(job_id, owner_id=owner_id)
            if job.status.is_terminal:
                return job
            # Persisted as running but no task lives in this process.
            logger.warning("stop_without_active_session", job_id=str(job_id))
            job.fail(CANCELLATION_MESSAGE)
            await self._jobs.upsert_job(job)
            await self._event_publisher.publish_many(job.collect_events())
            return job

        logger.info("scrape_job_stop_requested", job_id=str(job_id))
        session.token.cancel()
        await session.release()
        await self._await_task(session)
        await self._registry.remove(job_id)
        return await self.status(job_id, owner_id=owner_id)

    async def shutdown(self) -> None:
        """Stop every active job so no browser outlives the process."""
        sessions = await self._registry.all()
        for session in sessions:
            session.token.cancel()
            await session.release()
        for session in sessions:
            await self._await_task(session)
            await self._registry.remove(session.job_id)
        if sessions:
            logger.info("active_jobs_stopped_on_shutdown", count=len(sessions))

    # -------------------------------------------------------------------------
    # Background task
    # -------------------------------------------------------------------------

    async def _run(self, job: ScrapeJob, session: ActiveSession) -> None:
        log = logger.bind(job_id=str(job.id))
        try:
            session.page = await self._browser_factory.open()
            session.token.raise_if_cancelled()

            extractor = PaginatedExtractor(
                session.page,
                PolitenessController(self._policy, session.token),
                base_url=self._base_url,
                schema=self._schema,
                max_pages=self._max_pages,
                on_progress=lambda update: self._record_progress(job, update),
                on_page_records=(
                    (lambda records: self._persist_records(job, records))
                    if self._persist_per_page
                    else None
                ),
            )
            deadline = asyncio.timeout(self._max_job_seconds)
            try:
                async with deadline:
                    result = await extractor.run(job.filter)
            except TimeoutError as exc:
                if not deadline.expired():
                    raise
                raise JobTimeLimitExceededError(self._max_job_seconds) from exc

            if not self._persist_per_page:
                await self._persist_records(job, result.records)

            job.complete(
                found_results=result.found_results,
                processed_results=result.processed_results,
            )
            log.info(
                "scrape_job_completed",
                found=result.found_results,
                processed=result.processed_results,
                pages=result.pages_visited,
                truncated=result.truncated,
            )

        except ScrapeCancelledError as exc:
            log.info("scrape_job_cancelled")
            self._fail(job, str(exc))
        except JobTimeLimitExceededError as exc:
            log.warning("scrape_job_time_limit_exceeded", max_job_seconds=self._max_job_seconds)
            self._fail(job, str(exc))
        except asyncio.CancelledError:
            log.info("scrape_job_task_cancelled")
            self._fail(job, CANCELLATION_MESSAGE)
            raise
        except Exception as exc:
            log.exception("scrape_job_failed")
            self._fail(job, str(exc) or type(exc).__name__)
        finally:
            await self._finalize(job, session)

    async def _record_progress(self, job: ScrapeJob, update: ProgressUpdate) -> None:
        job.report_progress(
            percent=update.percent,
            found_results=update.found_results,
            processed_results=update.processed_results,
            status_text=update.status_text,
        )
        await self._jobs.upsert_job(job)

    async def _persist_records(self, job: ScrapeJob, records: list[CompanyRecord]) -> None:
        if not records:
            return
        written = await self._companies.upsert_records(job.owner_id, records)
        logger.info("company_records_persisted", job_id=str(job.id), count=written)

    async def _finalize(self, job: ScrapeJob, session: ActiveSession) -> None:
        await session.release()
        try:
            await self._jobs.upsert_job(job)
        except Exception:
            logger.exception("terminal_job_state_not_persisted", job_id=str(job.id))
        else:
            await self._event_publisher.publish_many(job.collect_events())
        finally:
            # Leaving the registry last keeps a concurrent stop() on the
            # session path until the terminal state is readable.
            await self._registry.remove(job.id)

    async def _await_task(self, session: ActiveSession) -> None:
        task = session.task
        if task is None or task.done() or task is asyncio.current_task():
            return
        _, pending = await asyncio.wait({task}, timeout=self._stop_grace_seconds)
        if pending:
            logger.warning("scrape_job_task_forced_cancel", job_id=str(session.job_id))
            task.cancel()
            await asyncio.wait({task})

    @staticmethod
    def _fail(job: ScrapeJob, message: str) -> None:
        if not job.status.is_terminal:
            job.fail(message)
