from abc import ABC, abstractmethod

from registry_orchestrator.domain.entities.company_record import CompanyRecord
from registry_orchestrator.domain.entities.company_stats import CompanyStats

# Columns a listing may be ordered by; anything else is rejected upstream.
COMPANY_SORT_FIELDS = ("name", "identifier", "start_date", "scraped_at")
SORT_ORDERS = ("asc", "desc")


class CompanyRepository(ABC):
    """Port for persisting extracted company records."""

    @abstractmethod
    async def upsert_records(self, owner_id: str, records: list[CompanyRecord]) -> int:
        """
        Insert or update records keyed on (owner_id, identifier).

        Last write wins on conflict. Returns the number of records written.
        """
        ...

    @abstractmethod
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
        """
        Return (records, total_count).

        search is a case-insensitive substring matched against the name, the
        identifier and the representative names.
        """
        ...

    @abstractmethod
    async def get_for_owner(self, owner_id: str, identifier: str) -> CompanyRecord | None: ...

    @abstractmethod
    async def stats_for_owner(self, owner_id: str, *, top: int = 10) -> CompanyStats: ...
