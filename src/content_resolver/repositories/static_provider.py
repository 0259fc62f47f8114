"""Static dataset provider.

A small fixed catalogue covering every level of the hierarchy. It is the
degraded-mode fallback when the real provider is unavailable, and a
network-free provider for demos.
"""

from content_resolver.entities import EntityType, RawRecord
from content_resolver.utils.normalization import normalize_for

_ORGANIZATIONS = [
    ("uni-1", "University of Delhi", "Central University"),
    ("uni-2", "Mumbai University", "State University"),
    ("uni-3", "Anna University", "State University"),
    ("uni-4", "IIT Bombay", "Institute of National Importance"),
    ("uni-5", "Bangalore University", "State University"),
    ("uni-6", "Jawaharlal Nehru University", "Central University"),
    ("uni-7", "IIT Delhi", "Institute of National Importance"),
    ("uni-8", "BITS Pilani", "Private University"),
]

_PROGRAMS = [
    ("course-1", "B.Tech Computer Science", "4 years", 8),
    ("course-2", "B.Tech Mechanical Engineering", "4 years", 8),
    ("course-3", "MBA", "2 years", 4),
    ("course-4", "B.Sc Physics", "3 years", 6),
    ("course-5", "M.Tech Data Science", "2 years", 4),
    ("course-6", "B.Com Honours", "3 years", 6),
]

_ITEMS = [
    ("sub-1", "Data Structures", "CS201", 4),
    ("sub-2", "Algorithms", "CS202", 4),
    ("sub-3", "Database Management", "CS203", 3),
    ("sub-4", "Operating Systems", "CS204", 4),
    ("sub-5", "Computer Networks", "CS205", 3),
    ("sub-6", "Software Engineering", "CS206", 3),
    ("sub-7", "Machine Learning", "CS301", 4),
    ("sub-8", "Artificial Intelligence", "CS302", 4),
]


class StaticProvider:
    """In-memory implementation of the EntityProvider protocol.

    Programs belong to "uni-1", terms to "course-1" and items to "sem-1"
    so the dataset also exercises hierarchy reconciliation.
    """

    def __init__(self, name: str = "static") -> None:
        self._name = name
        self._records = self._build()

    @property
    def name(self) -> str:
        return self._name

    @property
    def endpoint(self) -> str | None:
        return None

    def _build(self) -> dict[EntityType, list[RawRecord]]:
        def record(kind: EntityType, external_id: str, name: str, parent: str | None = None, **attrs) -> RawRecord:
            category = attrs.pop("category", None)
            return RawRecord(
                external_id=external_id,
                name=name,
                normalized_name=normalize_for(kind, name),
                provider=self._name,
                country="India" if kind is EntityType.ORGANIZATION else None,
                category=category,
                parent_external_id=parent,
                attributes=attrs,
            )

        return {
            EntityType.ORGANIZATION: [
                record(EntityType.ORGANIZATION, ext, name, category=category) for ext, name, category in _ORGANIZATIONS
            ],
            EntityType.PROGRAM: [
                record(EntityType.PROGRAM, ext, name, "uni-1", duration=duration, total_terms=terms)
                for ext, name, duration, terms in _PROGRAMS
            ],
            EntityType.TERM: [
                record(EntityType.TERM, f"sem-{n}", f"Semester {n}", "course-1", number=n) for n in range(1, 9)
            ],
            EntityType.ITEM: [
                record(EntityType.ITEM, ext, name, "sem-1", code=code, credits=credits, marks=100)
                for ext, name, code, credits in _ITEMS
            ],
        }

    async def fetch(self, query: str, entity_type: EntityType = EntityType.ORGANIZATION) -> list[RawRecord]:
        """Records whose normalized name contains the normalized query (all on empty query)."""
        records = self._records.get(entity_type, [])
        needle = normalize_for(entity_type, query)
        if not needle:
            return list(records)
        return [r for r in records if needle in r.normalized_name]

    async def search(self, query: str, entity_type: EntityType = EntityType.ORGANIZATION) -> list[RawRecord]:
        return await self.fetch(query, entity_type)

    async def is_available(self) -> bool:
        return True
