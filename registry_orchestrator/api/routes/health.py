from fastapi import APIRouter
from sqlalchemy import text

from registry_orchestrator.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:  # type: ignore[type-arg]
    """Liveness + database check."""
    if settings.persistence_backend != "sql":
        return {"status": "healthy", "database": settings.persistence_backend}

    from registry_orchestrator.infrastructure.database.connection import AsyncSessionLocal

    db_status = "connected"
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        db_status = f"error: {exc}"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "database": db_status,
    }
