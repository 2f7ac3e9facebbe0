"""Unit tests for the ScrapeJob entity and ScrapeFilter validation."""
import pytest

from registry_orchestrator.domain.entities.scrape_filter import ScrapeFilter
from registry_orchestrator.domain.entities.scrape_job import ScrapeJob
from registry_orchestrator.domain.enums.job_status import JobStatus
from registry_orchestrator.domain.errors import ValidationError
from registry_orchestrator.domain.events.domain_events import (
    ScrapeJobCompletedEvent,
    ScrapeJobFailedEvent,
    ScrapeJobStartedEvent,
)
from registry_orchestrator.domain.state_machine.job_state_machine import (
    InvalidStateTransitionError,
)


def _make_job() -> ScrapeJob:
    scrape_filter = ScrapeFilter.create(category_code="6201Z", region_code="75")
    return ScrapeJob(filter=scrape_filter, owner_id="owner-1")


def _running_job() -> ScrapeJob:
    job = _make_job()
    job.mark_running()
    job.collect_events()
    return job


class TestScrapeFilter:
    def test_normalises_codes(self) -> None:
        scrape_filter = ScrapeFilter.create(category_code=" 6201z ", region_code="2a")
        assert scrape_filter.category_code == "6201Z"
        assert scrape_filter.region_code == "2A"
        assert scrape_filter.primary_site_only is True

    def test_none_primary_site_only_defaults_to_true(self) -> None:
        scrape_filter = ScrapeFilter.create(
            category_code="6201Z", region_code="75", primary_site_only=None
        )
        assert scrape_filter.primary_site_only is True

    @pytest.mark.parametrize(
        "category_code, region_code",
        [
            (None, "75"),
            ("6201Z", None),
            ("", ""),
            ("   ", "75"),
        ],
    )
    def test_missing_codes_rejected(self, category_code, region_code) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(ValidationError):
            ScrapeFilter.create(category_code=category_code, region_code=region_code)

    @pytest.mark.parametrize("category_code", ["620Z", "62011", "6201ZZ", "A201Z"])
    def test_malformed_category_rejected(self, category_code: str) -> None:
        with pytest.raises(ValidationError):
            ScrapeFilter.create(category_code=category_code, region_code="75")

    @pytest.mark.parametrize("region_code", ["7", "7500", "2C", "AB"])
    def test_malformed_region_rejected(self, region_code: str) -> None:
        with pytest.raises(ValidationError):
            ScrapeFilter.create(category_code="6201Z", region_code=region_code)

    @pytest.mark.parametrize("region_code", ["75", "974", "2A", "2B"])
    def test_accepted_regions(self, region_code: str) -> None:
        assert ScrapeFilter.create(category_code="6201Z", region_code=region_code).region_code == region_code


class TestMarkRunning:
    def test_new_job_is_pending(self) -> None:
        job = _make_job()
        assert job.status == JobStatus.PENDING
        assert job.progress == 0

    def test_mark_running_sets_started_at_and_emits_event(self) -> None:
        job = _make_job()
        job.mark_running()
        assert job.status == JobStatus.RUNNING
        assert job.started_at is not None
        events = job.collect_events()
        assert len(events) == 1
        assert isinstance(events[0], ScrapeJobStartedEvent)
        assert events[0].category_code == "6201Z"

    def test_events_cleared_after_collect(self) -> None:
        job = _make_job()
        job.mark_running()
        job.collect_events()
        assert job.collect_events() == []


class TestReportProgress:
    def test_running_progress_never_reaches_100(self) -> None:
        job = _running_job()
        job.report_progress(percent=100, found_results=8, processed_results=8)
        assert job.progress == 99
        assert job.status == JobStatus.RUNNING

    def test_progress_never_decreases(self) -> None:
        job = _running_job()
        job.report_progress(percent=50, found_results=10, processed_results=5)
        job.report_progress(percent=20, found_results=10, processed_results=6)
        assert job.progress == 50
        assert job.processed_results == 6

    def test_negative_percent_is_clamped(self) -> None:
        job = _running_job()
        job.report_progress(percent=-5, found_results=0, processed_results=0)
        assert job.progress == 0

    def test_status_text_kept_when_update_has_none(self) -> None:
        job = _running_job()
        job.report_progress(percent=10, found_results=1, processed_results=1, status_text="page 1")
        job.report_progress(percent=20, found_results=1, processed_results=1)
        assert job.status_text == "page 1"

    def test_ignored_once_terminal(self) -> None:
        job = _running_job()
        job.fail("boom")
        job.report_progress(percent=80, found_results=5, processed_results=5)
        assert job.progress == 0
        assert job.processed_results == 0


class TestComplete:
    def test_complete_sets_progress_100(self) -> None:
        job = _running_job()
        job.complete(found_results=8, processed_results=8)
        assert job.status == JobStatus.COMPLETED
        assert job.progress == 100
        assert job.completed_at is not None
        assert job.error_message is None

    def test_complete_emits_event(self) -> None:
        job = _running_job()
        job.complete(found_results=3, processed_results=2)
        events = job.collect_events()
        assert isinstance(events[0], ScrapeJobCompletedEvent)
        assert events[0].processed_results == 2

    def test_cannot_complete_pending_job(self) -> None:
        with pytest.raises(InvalidStateTransitionError):
            _make_job().complete(found_results=0, processed_results=0)


class TestFail:
    def test_fail_records_message(self) -> None:
        job = _running_job()
        job.fail("Navigation timed out")
        assert job.status == JobStatus.FAILED
        assert job.error_message == "Navigation timed out"
        assert job.completed_at is not None
        assert job.progress < 100

    def test_fail_emits_event(self) -> None:
        job = _running_job()
        job.fail("boom")
        events = job.collect_events()
        assert isinstance(events[0], ScrapeJobFailedEvent)
        assert events[0].error_message == "boom"

    def test_cannot_fail_twice(self) -> None:
        job = _running_job()
        job.fail("first")
        with pytest.raises(InvalidStateTransitionError):
            job.fail("second")

    def test_completed_job_cannot_fail(self) -> None:
        job = _running_job()
        job.complete(found_results=0, processed_results=0)
        with pytest.raises(InvalidStateTransitionError):
            job.fail("late")
