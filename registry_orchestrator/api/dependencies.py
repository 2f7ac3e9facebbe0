"""
FastAPI dependency injection wiring.

The job manager is built once per process by build_job_manager() and kept
on app.state; route handlers receive it through get_job_manager().
"""
from fastapi import Request

from registry_orchestrator.application.interfaces.company_repository import CompanyRepository
from registry_orchestrator.application.interfaces.event_publisher import EventPublisher
from registry_orchestrator.application.interfaces.job_repository import ScrapeJobRepository
from registry_orchestrator.application.services.scrape_job_manager import ScrapeJobManager
from registry_orchestrator.application.services.start_rate_limiter import StartRateLimiter
from registry_orchestrator.config import Settings, settings
from registry_orchestrator.infrastructure.browser.playwright_browser import (
    PlaywrightBrowserFactory,
)
from registry_orchestrator.infrastructure.messaging.noop_publisher import NoOpEventPublisher
from registry_orchestrator.infrastructure.messaging.rabbitmq_publisher import RabbitMQPublisher


# ---- Builders ---------------------------------------------------------------

def build_repositories(config: Settings) -> tuple[ScrapeJobRepository, CompanyRepository]:
    if config.persistence_backend == "memory":
        from registry_orchestrator.infrastructure.memory.in_memory_repositories import (
            InMemoryCompanyRepository,
            InMemoryScrapeJobRepository,
        )

        return InMemoryScrapeJobRepository(), InMemoryCompanyRepository()

    if config.persistence_backend != "sql":
        raise ValueError(f"Unknown persistence backend {config.persistence_backend!r}.")

    from registry_orchestrator.infrastructure.database.connection import AsyncSessionLocal
    from registry_orchestrator.infrastructure.database.repositories.company_repository import (
        SqlAlchemyCompanyRepository,
    )
    from registry_orchestrator.infrastructure.database.repositories.scrape_job_repository import (
        SqlAlchemyScrapeJobRepository,
    )

    return (
        SqlAlchemyScrapeJobRepository(AsyncSessionLocal),
        SqlAlchemyCompanyRepository(AsyncSessionLocal),
    )


def build_event_publisher(config: Settings) -> EventPublisher:
    if config.rabbitmq_url:
        return RabbitMQPublisher(config.rabbitmq_url)
    return NoOpEventPublisher()


def build_job_manager(config: Settings = settings) -> ScrapeJobManager:
    job_repo, company_repo = build_repositories(config)
    policy = config.politeness_policy()
    return ScrapeJobManager(
        job_repo,
        company_repo,
        PlaywrightBrowserFactory(
            policy,
            headless=config.headless,
            block_heavy_resources=config.block_heavy_resources,
        ),
        build_event_publisher(config),
        base_url=config.directory_base_url,
        policy=policy,
        max_pages=config.max_pages,
        max_job_seconds=config.max_job_seconds,
        persist_per_page=config.persist_per_page,
        stop_grace_seconds=config.stop_grace_seconds,
        rate_limiter=StartRateLimiter(
            limit=config.start_rate_limit,
            window_seconds=config.start_rate_window_seconds,
        ),
    )


# ---- Request-scoped dependencies -------------------------------------------

def get_job_manager(request: Request) -> ScrapeJobManager:
    return request.app.state.job_manager


def get_owner_id() -> str:
    """Caller identity. Fixed until authentication is wired in."""
    return settings.default_owner_id
