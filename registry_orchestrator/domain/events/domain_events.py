from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class ScrapeJobStartedEvent(DomainEvent):
    """Published when a scrape job is accepted and its task scheduled."""

    job_id: UUID = field(default_factory=uuid4)
    owner_id: str = ""
    category_code: str = ""
    region_code: str = ""
    primary_site_only: bool = True


@dataclass(frozen=True)
class ScrapeJobCompletedEvent(DomainEvent):
    """Published when a scrape job reaches the completed state."""

    job_id: UUID = field(default_factory=uuid4)
    owner_id: str = ""
    found_results: int = 0
    processed_results: int = 0


@dataclass(frozen=True)
class ScrapeJobFailedEvent(DomainEvent):
    """Published when a scrape job fails or is stopped."""

    job_id: UUID = field(default_factory=uuid4)
    owner_id: str = ""
    error_message: str = ""
