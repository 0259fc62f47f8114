"""Entity kinds in the reference hierarchy."""

from enum import Enum


class EntityType(str, Enum):
    """Levels of the hierarchy: organization -> program -> term -> item."""

    ORGANIZATION = "ORGANIZATION"
    PROGRAM = "PROGRAM"
    TERM = "TERM"
    ITEM = "ITEM"

    @property
    def parent(self) -> "EntityType | None":
        """The kind one level up, or None for organizations."""
        order = list(EntityType)
        index = order.index(self)
        return order[index - 1] if index > 0 else None
