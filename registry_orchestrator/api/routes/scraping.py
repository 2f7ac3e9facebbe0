import math
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from registry_orchestrator.api.dependencies import get_job_manager, get_owner_id
from registry_orchestrator.api.schemas.scraping import (
    ScrapeJobListResponse,
    ScrapeJobResponse,
    StartScrapeRequest,
    StartScrapeResponse,
    StopScrapeResponse,
)
from registry_orchestrator.application.services.scrape_job_manager import ScrapeJobManager
from registry_orchestrator.domain.entities.scrape_job import ScrapeJob
from registry_orchestrator.domain.errors import (
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
)

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/scraping", tags=["scraping"])


def _job_to_response(job: ScrapeJob) -> ScrapeJobResponse:
    return ScrapeJobResponse(
        id=job.id,
        owner_id=job.owner_id,
        category_code=job.filter.category_code,
        region_code=job.filter.region_code,
        primary_site_only=job.filter.primary_site_only,
        status=job.status,
        progress=job.progress,
        status_text=job.status_text,
        found_results=job.found_results,
        processed_results=job.processed_results,
        error_message=job.error_message,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )


@router.post(
    "/start",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=StartScrapeResponse,
)
async def start_scraping(
    body: StartScrapeRequest,
    manager: ScrapeJobManager = Depends(get_job_manager),
    owner_id: str = Depends(get_owner_id),
) -> StartScrapeResponse:
    """Start a background scrape job and return its id immediately."""
    try:
        job = await manager.start(
            owner_id=owner_id,
            category_code=body.category_code,
            region_code=body.region_code,
            primary_site_only=body.primary_site_only,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except RateLimitExceededError as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(exc),
            headers={"Retry-After": str(math.ceil(exc.retry_after_seconds))},
        )
    return StartScrapeResponse(job_id=job.id, status=job.status)


@router.get("/status/{job_id}", response_model=ScrapeJobResponse)
async def get_scraping_status(
    job_id: UUID,
    manager: ScrapeJobManager = Depends(get_job_manager),
    owner_id: str = Depends(get_owner_id),
) -> ScrapeJobResponse:
    try:
        job = await manager.status(job_id, owner_id=owner_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return _job_to_response(job)


@router.get("/jobs", response_model=ScrapeJobListResponse)
async def list_scraping_jobs(
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    manager: ScrapeJobManager = Depends(get_job_manager),
    owner_id: str = Depends(get_owner_id),
) -> ScrapeJobListResponse:
    """The caller's jobs, newest first."""
    jobs = await manager.list_jobs(owner_id=owner_id, limit=limit, offset=offset)
    return ScrapeJobListResponse(
        jobs=[_job_to_response(job) for job in jobs],
        limit=limit,
        offset=offset,
    )


@router.post("/stop/{job_id}", response_model=StopScrapeResponse)
async def stop_scraping(
    job_id: UUID,
    manager: ScrapeJobManager = Depends(get_job_manager),
    owner_id: str = Depends(get_owner_id),
) -> StopScrapeResponse:
    """Stop a running job. Stopping a finished job changes nothing."""
    try:
        job = await manager.stop(job_id, owner_id=owner_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    logger.info("scrape_job_stop_handled", job_id=str(job_id), status=job.status.value)
    return StopScrapeResponse(job_id=job.id, status=job.status)
