"""
Error taxonomy for scrape jobs.

ValidationError and NotFoundError surface synchronously to the caller.
The rest are raised inside the background task and end up recorded on the
job as its failure message.
"""


class ValidationError(Exception):
    """Raised when a scrape filter is missing or malformed."""


class NotFoundError(Exception):
    """Raised when a job id is unknown to the caller's scope."""

    def __init__(self, job_id: object) -> None:
        self.job_id = job_id
        super().__init__(f"Scrape job {job_id} not found.")


class NavigationTimeout(Exception):
    """Raised when a page did not respond within the navigation budget."""


class ExtractionError(Exception):
    """Raised when a page rendered but its expected structure is absent."""


class ScrapeCancelledError(Exception):
    """Raised when an operator stopped the job."""

    def __init__(self, message: str = "Stopped by the operator") -> None:
        super().__init__(message)


class JobTimeLimitExceededError(Exception):
    """Raised when a job's extraction outlives its wall-clock budget."""

    def __init__(self, limit_seconds: float) -> None:
        self.limit_seconds = limit_seconds
        super().__init__(f"Job exceeded the {limit_seconds:g} s time limit")


class CompanyNotFoundError(Exception):
    """Raised when an identifier is unknown among the caller's companies."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"Company {identifier} not found.")


class RateLimitExceededError(Exception):
    """Raised when an owner has started too many jobs within the window."""

    def __init__(self, limit: int, window_seconds: float, retry_after_seconds: float) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Scraping limit of {limit} jobs per {window_seconds:g} s reached; "
            f"retry in {retry_after_seconds:.0f} s."
        )
