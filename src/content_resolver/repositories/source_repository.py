"""SQL repository for ExternalSource rows."""

from datetime import datetime

from sqlalchemy import select, update

from content_resolver.database import Database
from content_resolver.entities import ExternalSourceEntity
from content_resolver.models import ExternalSource, new_id
from content_resolver.utils.clock import utcnow


def _to_entity(row: ExternalSource) -> ExternalSourceEntity:
    return ExternalSourceEntity(
        id=row.id,
        name=row.name,
        api_endpoint=row.api_endpoint,
        is_active=row.is_active,
        last_sync_at=row.last_sync_at,
        rate_limit=row.rate_limit,
    )


class ExternalSourceRepository:
    """Find-or-create access to upstream provider identities."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def find_by_name(self, name: str) -> ExternalSourceEntity | None:
        """Find a source by its unique name."""
        async with self._db.session() as session:
            row = (await session.execute(select(ExternalSource).where(ExternalSource.name == name))).scalar_one_or_none()
            return _to_entity(row) if row else None

    async def find_by_id(self, source_id: str) -> ExternalSourceEntity | None:
        """Find a source by id."""
        async with self._db.session() as session:
            row = await session.get(ExternalSource, source_id)
            return _to_entity(row) if row else None

    async def find_or_create(self, name: str, api_endpoint: str | None = None) -> ExternalSourceEntity:
        """Idempotent upsert by natural key.

        Racing callers both issue INSERT ... ON CONFLICT DO NOTHING and then
        read back the single surviving row.

        Args:
            name: Unique source name
            api_endpoint: Recorded only when the row is created

        Returns:
            The stored source
        """
        stmt = (
            self._db.insert(ExternalSource)
            .values(
                id=new_id(),
                name=name,
                api_endpoint=api_endpoint,
                rate_limit=100,
                is_active=True,
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["name"])
        )
        async with self._db.session() as session:
            await session.execute(stmt)
            row = (await session.execute(select(ExternalSource).where(ExternalSource.name == name))).scalar_one()
            return _to_entity(row)

    async def touch_last_sync(self, name: str, at: datetime | None = None) -> None:
        """Record a successful sync with the source."""
        stmt = update(ExternalSource).where(ExternalSource.name == name).values(last_sync_at=at or utcnow())
        async with self._db.session() as session:
            await session.execute(stmt)

    async def find_all_active(self) -> list[ExternalSourceEntity]:
        """List active sources, by name."""
        stmt = select(ExternalSource).where(ExternalSource.is_active.is_(True)).order_by(ExternalSource.name)
        async with self._db.session() as session:
            return [_to_entity(row) for row in (await session.execute(stmt)).scalars()]
