"""
SQLAlchemy ORM models.

Mapping between these rows and the domain entities lives in the repositories.
"""
import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from registry_orchestrator.domain.enums.job_status import JobStatus
from registry_orchestrator.infrastructure.database.connection import Base

_job_status_enum = SAEnum(
    JobStatus,
    name="scrape_job_status",
    values_callable=lambda obj: [e.value for e in obj],
)


class ScrapeJobModel(Base):
    __tablename__ = "scrape_jobs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Filter
    category_code: Mapped[str] = mapped_column(String(10), nullable=False)
    region_code: Mapped[str] = mapped_column(String(3), nullable=False)
    primary_site_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # State
    status: Mapped[JobStatus] = mapped_column(_job_status_enum, nullable=False, index=True)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status_text: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    found_results: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_results: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_scrape_jobs_owner_created", "owner_id", "created_at"),
    )


class CompanyModel(Base):
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    identifier: Mapped[str] = mapped_column(String(9), nullable=False)

    name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    representatives: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # type: ignore[type-arg]
    legal_form: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    establishments: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    postal_code: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    category_code: Mapped[str] = mapped_column(String(10), nullable=False, default="", index=True)
    region_code: Mapped[str] = mapped_column(String(3), nullable=False, default="", index=True)

    scraped_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("owner_id", "identifier", name="uq_companies_owner_identifier"),
    )
