"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from registry_orchestrator.api.dependencies import build_job_manager
from registry_orchestrator.api.routes import companies, health, scraping
from registry_orchestrator.config import settings
from registry_orchestrator.logging_config import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging(settings.log_level)
    logger.info("registry_orchestrator_starting", persistence=settings.persistence_backend)

    if settings.persistence_backend == "sql" and settings.create_schema_on_startup:
        from registry_orchestrator.infrastructure.database.connection import create_schema

        await create_schema()

    app.state.job_manager = build_job_manager(settings)
    yield

    logger.info("registry_orchestrator_stopping")
    await app.state.job_manager.shutdown()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Registry Orchestrator",
        description="Background scrape jobs over a public business directory.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(scraping.router)
    app.include_router(companies.router)

    return app


app = create_app()
