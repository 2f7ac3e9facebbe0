from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from registry_orchestrator.application.interfaces.job_repository import ScrapeJobRepository
from registry_orchestrator.domain.entities.scrape_filter import ScrapeFilter
from registry_orchestrator.domain.entities.scrape_job import ScrapeJob
from registry_orchestrator.domain.enums.job_status import JobStatus
from registry_orchestrator.infrastructure.database.models import ScrapeJobModel


def _to_domain(model: ScrapeJobModel) -> ScrapeJob:
    return ScrapeJob(
        id=model.id,
        owner_id=model.owner_id,
        filter=ScrapeFilter(
            category_code=model.category_code,
            region_code=model.region_code,
            primary_site_only=model.primary_site_only,
        ),
        status=JobStatus(model.status),
        progress=model.progress,
        status_text=model.status_text,
        found_results=model.found_results,
        processed_results=model.processed_results,
        error_message=model.error_message,
        created_at=model.created_at,
        started_at=model.started_at,
        completed_at=model.completed_at,
    )


def _apply(model: ScrapeJobModel, job: ScrapeJob) -> None:
    model.status = job.status
    model.progress = job.progress
    model.status_text = job.status_text
    model.found_results = job.found_results
    model.processed_results = job.processed_results
    model.error_message = job.error_message
    model.started_at = job.started_at
    model.completed_at = job.completed_at


class SqlAlchemyScrapeJobRepository(ScrapeJobRepository):
    """
    SQLAlchemy-backed job store.

    Opens a short-lived session per call: job rows are written from background
    tasks that outlive any request-scoped session.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def upsert_job(self, job: ScrapeJob) -> None:
        async with self._session_maker() as session:
            model = await session.get(ScrapeJobModel, job.id)
            if model is None:
                model = ScrapeJobModel(
                    id=job.id,
                    owner_id=job.owner_id,
                    category_code=job.filter.category_code,
                    region_code=job.filter.region_code,
                    primary_site_only=job.filter.primary_site_only,
                    created_at=job.created_at,
                )
                session.add(model)
            _apply(model, job)
            await session.commit()

    async def get_by_id(self, job_id: UUID) -> ScrapeJob | None:
        async with self._session_maker() as session:
            model = await session.get(ScrapeJobModel, job_id)
            return _to_domain(model) if model is not None else None

    async def list_for_owner(
        self,
        owner_id: str,
        *,
        limit: int = 10,
        offset: int = 0,
    ) -> list[ScrapeJob]:
        query = (
            select(ScrapeJobModel)
            .where(ScrapeJobModel.owner_id == owner_id)
            .order_by(ScrapeJobModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self._session_maker() as session:
            result = await session.execute(query)
            return [_to_domain(m) for m in result.scalars().all()]
