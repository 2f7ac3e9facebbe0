import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import Text, cast, func, or_, select
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from registry_orchestrator.application.interfaces.company_repository import CompanyRepository
from registry_orchestrator.domain.entities.company_record import CompanyRecord
from registry_orchestrator.domain.entities.company_stats import RECENT_WINDOW_DAYS, CompanyStats
from registry_orchestrator.infrastructure.database.models import CompanyModel

_UPSERT_CONSTRAINT = "uq_companies_owner_identifier"

_UPDATABLE_FIELDS = (
    "name",
    "start_date",
    "representatives",
    "legal_form",
    "establishments",
    "address",
    "postal_code",
    "city",
    "status",
    "category_code",
    "region_code",
)


def _to_domain(model: CompanyModel) -> CompanyRecord:
    return CompanyRecord(
        name=model.name,
        identifier=model.identifier,
        start_date=model.start_date,
        representatives=list(model.representatives or []),
        legal_form=model.legal_form,
        establishments=model.establishments,
        postal_code=model.postal_code,
        city=model.city,
        address=model.address,
        status=model.status,
        category_code=model.category_code,
        region_code=model.region_code,
    )


def _field_values(record: CompanyRecord) -> dict:  # type: ignore[type-arg]
    values = {name: getattr(record, name) for name in _UPDATABLE_FIELDS}
    values["representatives"] = list(record.representatives)
    return values


def build_upsert_statement(owner_id: str, records: list[CompanyRecord]) -> Insert:
    """
    One INSERT .. ON CONFLICT DO UPDATE for the whole batch.

    Postgres refuses to touch the same row twice in one statement, so the
    batch is deduplicated first; the later duplicate wins.
    """
    latest: dict[str, CompanyRecord] = {}
    for record in records:
        latest[record.identifier] = record

    stmt = insert(CompanyModel).values(
        [
            {
                "id": uuid.uuid4(),
                "owner_id": owner_id,
                "identifier": identifier,
                **_field_values(record),
            }
            for identifier, record in latest.items()
        ]
    )
    return stmt.on_conflict_do_update(
        constraint=_UPSERT_CONSTRAINT,
        set_={
            **{name: getattr(stmt.excluded, name) for name in _UPDATABLE_FIELDS},
            "scraped_at": func.now(),
        },
    )


class SqlAlchemyCompanyRepository(CompanyRepository):
    """SQLAlchemy implementation of record persistence keyed on (owner, identifier)."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def upsert_records(self, owner_id: str, records: list[CompanyRecord]) -> int:
        if not records:
            return 0

        written = len({record.identifier for record in records})
        async with self._session_maker() as session:
            await session.execute(build_upsert_statement(owner_id, records))
            await session.commit()
        return written

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
        conditions = [CompanyModel.owner_id == owner_id]
        if region_code is not None:
            conditions.append(CompanyModel.region_code == region_code)
        if category_code is not None:
            conditions.append(CompanyModel.category_code == category_code)
        if legal_form is not None:
            conditions.append(CompanyModel.legal_form == legal_form)
        if search:
            needle = search.lower()
            conditions.append(
                or_(
                    func.lower(CompanyModel.name).contains(needle, autoescape=True),
                    CompanyModel.identifier.contains(needle, autoescape=True),
                    func.lower(cast(CompanyModel.representatives, Text)).contains(
                        needle, autoescape=True
                    ),
                )
            )

        column = getattr(CompanyModel, sort_by)
        ordering = column.asc() if sort_order == "asc" else column.desc()
        query = (
            select(CompanyModel)
            .where(*conditions)
            .order_by(ordering.nulls_last(), CompanyModel.identifier)
            .limit(limit)
            .offset(offset)
        )
        count_query = select(func.count()).select_from(CompanyModel).where(*conditions)

        async with self._session_maker() as session:
            result = await session.execute(query)
            models = result.scalars().all()
            count_result = await session.execute(count_query)
            total = count_result.scalar_one()

        return [_to_domain(m) for m in models], total

    async def get_for_owner(self, owner_id: str, identifier: str) -> CompanyRecord | None:
        async with self._session_maker() as session:
            result = await session.execute(
                select(CompanyModel).where(
                    CompanyModel.owner_id == owner_id,
                    CompanyModel.identifier == identifier,
                )
            )
            model = result.scalar_one_or_none()
            return _to_domain(model) if model else None

    async def stats_for_owner(self, owner_id: str, *, top: int = 10) -> CompanyStats:
        owned = CompanyModel.owner_id == owner_id
        since = datetime.now(timezone.utc) - timedelta(days=RECENT_WINDOW_DAYS)

        async with self._session_maker() as session:
            total = (
                await session.execute(select(func.count()).select_from(CompanyModel).where(owned))
            ).scalar_one()
            recent = (
                await session.execute(
                    select(func.count())
                    .select_from(CompanyModel)
                    .where(owned, CompanyModel.scraped_at >= since)
                )
            ).scalar_one()
            by_region = await self._count_by(session, CompanyModel.region_code, owned, top)
            by_category = await self._count_by(session, CompanyModel.category_code, owned, top)

        return CompanyStats(
            total=total,
            scraped_last_month=recent,
            by_region=by_region,
            by_category=by_category,
        )

    @staticmethod
    async def _count_by(session: AsyncSession, column, owned, top: int) -> list[tuple[str, int]]:  # type: ignore[no-untyped-def]
        count = func.count().label("count")
        result = await session.execute(
            select(column, count)
            .where(owned, column != "")
            .group_by(column)
            .order_by(count.desc(), column)
            .limit(top)
        )
        return [(code, n) for code, n in result.all()]
