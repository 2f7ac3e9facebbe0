from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from registry_orchestrator.domain.enums.job_status import JobStatus


class StartScrapeRequest(BaseModel):
    """
    Filter for a new scrape job.

    Both codes are optional at the schema level so that a missing code is
    reported by the domain validation with a single, consistent message.
    """

    model_config = ConfigDict(populate_by_name=True)

    category_code: str | None = Field(default=None, alias="categoryCode")
    region_code: str | None = Field(default=None, alias="regionCode")
    primary_site_only: bool = Field(default=True, alias="primarySiteOnly")


class StartScrapeResponse(BaseModel):
    job_id: UUID
    status: JobStatus
    message: str = "Scraping started"


class StopScrapeResponse(BaseModel):
    job_id: UUID
    status: JobStatus


class ScrapeJobResponse(BaseModel):
    id: UUID
    owner_id: str
    category_code: str
    region_code: str
    primary_site_only: bool
    status: JobStatus
    progress: int
    status_text: str
    found_results: int
    processed_results: int
    error_message: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None


class ScrapeJobListResponse(BaseModel):
    jobs: list[ScrapeJobResponse]
    limit: int
    offset: int


class CompanyResponse(BaseModel):
    identifier: str
    name: str
    start_date: date | None = None
    representatives: list[str]
    legal_form: str
    establishments: int
    address: str
    postal_code: str
    city: str
    status: str
    category_code: str
    region_code: str

    model_config = {"from_attributes": True}


class PaginatedCompaniesResponse(BaseModel):
    companies: list[CompanyResponse]
    total: int
    limit: int
    offset: int


class CodeCount(BaseModel):
    code: str
    count: int


class CompanyStatsResponse(BaseModel):
    total: int
    scraped_last_month: int
    by_region: list[CodeCount]
    by_category: list[CodeCount]
