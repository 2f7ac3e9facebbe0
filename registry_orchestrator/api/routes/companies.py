from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from registry_orchestrator.api.dependencies import get_job_manager, get_owner_id
from registry_orchestrator.api.schemas.scraping import (
    CodeCount,
    CompanyResponse,
    CompanyStatsResponse,
    PaginatedCompaniesResponse,
)
from registry_orchestrator.application.services.scrape_job_manager import ScrapeJobManager
from registry_orchestrator.domain.errors import CompanyNotFoundError, ValidationError

router = APIRouter(prefix="/companies", tags=["companies"])


def _code(value: str | None) -> str | None:
    return value.strip().upper() if value else None


@router.get("", response_model=PaginatedCompaniesResponse)
async def list_companies(
    search: str | None = Query(default=None, max_length=200),
    region_code: str | None = Query(default=None),
    category_code: str | None = Query(default=None),
    legal_form: str | None = Query(default=None),
    sort_by: str = Query(default="scraped_at"),
    sort_order: str = Query(default="desc"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    manager: ScrapeJobManager = Depends(get_job_manager),
    owner_id: str = Depends(get_owner_id),
) -> PaginatedCompaniesResponse:
    """Companies persisted by the caller's jobs, with optional filtering, search and ordering."""
    try:
        records, total = await manager.list_companies(
            owner_id=owner_id,
            region_code=_code(region_code),
            category_code=_code(category_code),
            legal_form=legal_form.strip() if legal_form else None,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit,
            offset=offset,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return PaginatedCompaniesResponse(
        companies=[CompanyResponse.model_validate(record) for record in records],
        total=total,
        limit=limit,
        offset=offset,
    )


# Declared before /{identifier} so "stats" is not read as an identifier
@router.get("/stats", response_model=CompanyStatsResponse)
async def company_stats(
    manager: ScrapeJobManager = Depends(get_job_manager),
    owner_id: str = Depends(get_owner_id),
) -> CompanyStatsResponse:
    stats = await manager.company_stats(owner_id=owner_id)
    return CompanyStatsResponse(
        total=stats.total,
        scraped_last_month=stats.scraped_last_month,
        by_region=[CodeCount(code=code, count=count) for code, count in stats.by_region],
        by_category=[CodeCount(code=code, count=count) for code, count in stats.by_category],
    )


@router.get("/{identifier}", response_model=CompanyResponse)
async def get_company(
    identifier: str = Path(pattern=r"^\d{9}$"),
    manager: ScrapeJobManager = Depends(get_job_manager),
    owner_id: str = Depends(get_owner_id),
) -> CompanyResponse:
    try:
        record = await manager.get_company(identifier, owner_id=owner_id)
    except CompanyNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return CompanyResponse.model_validate(record)
