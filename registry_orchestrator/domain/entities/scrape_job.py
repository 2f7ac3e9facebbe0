from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4

from registry_orchestrator.domain.entities.scrape_filter import ScrapeFilter
from registry_orchestrator.domain.enums.job_status import JobStatus
from registry_orchestrator.domain.events.domain_events import (
    DomainEvent,
    ScrapeJobCompletedEvent,
    ScrapeJobFailedEvent,
    ScrapeJobStartedEvent,
)
from registry_orchestrator.domain.state_machine.job_state_machine import JobStateMachine

_state_machine = JobStateMachine()

# A running job never reports 100; only complete() does.
MAX_RUNNING_PROGRESS = 99


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScrapeJob:
    """
    One invocation of the extraction pipeline for a given filter.

    Mutated only by the background task that owns it and by a stop request.
    Buffers a domain event per status transition; the manager collects and
    publishes them after persisting the job.
    """

    filter: ScrapeFilter
    owner_id: str

    # Identity
    id: UUID = field(default_factory=uuid4)

    # State
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    status_text: str = ""
    found_results: int = 0
    processed_results: int = 0
    error_message: str | None = None

    # Timestamps
    created_at: datetime = field(default_factory=_utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    _events: list[DomainEvent] = field(default_factory=list, repr=False, compare=False)

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def mark_running(self) -> None:
        _state_machine.validate_transition(self.status, JobStatus.RUNNING)
        self.status = JobStatus.RUNNING
        self.started_at = _utcnow()
        self._events.append(
            ScrapeJobStartedEvent(
                job_id=self.id,
                owner_id=self.owner_id,
                category_code=self.filter.category_code,
                region_code=self.filter.region_code,
                primary_site_only=self.filter.primary_site_only,
            )
        )

    def report_progress(
        self,
        *,
        percent: int,
        found_results: int,
        processed_results: int,
        status_text: str = "",
    ) -> None:
        """Apply a progress update. Ignored once the job is terminal."""
        if self.status.is_terminal:
            return
        bounded = max(0, min(int(percent), MAX_RUNNING_PROGRESS))
        self.progress = max(self.progress, bounded)
        self.found_results = max(0, found_results)
        self.processed_results = max(self.processed_results, processed_results)
        if status_text:
            self.status_text = status_text

    def complete(self, *, found_results: int, processed_results: int) -> None:
        _state_machine.validate_transition(self.status, JobStatus.COMPLETED)
        self.status = JobStatus.COMPLETED
        self.progress = 100
        self.found_results = max(0, found_results)
        self.processed_results = processed_results
        self.error_message = None
        self.completed_at = _utcnow()
        self._events.append(
            ScrapeJobCompletedEvent(
                job_id=self.id,
                owner_id=self.owner_id,
                found_results=self.found_results,
                processed_results=self.processed_results,
            )
        )

    def fail(self, message: str) -> None:
        _state_machine.validate_transition(self.status, JobStatus.FAILED)
        self.status = JobStatus.FAILED
        self.error_message = message or "Unknown error"
        self.completed_at = _utcnow()
        self._events.append(
            ScrapeJobFailedEvent(
                job_id=self.id,
                owner_id=self.owner_id,
                error_message=self.error_message,
            )
        )

    # -------------------------------------------------------------------------
    # Event collection
    # -------------------------------------------------------------------------

    def collect_events(self) -> list[DomainEvent]:
        """Return pending events and clear the internal buffer."""
        events = list(self._events)
        self._events.clear()
        return events
