# =============================================================================
# core/models/entity.py - Scoped Entity Types and Query Filters
# =============================================================================
# Every scoped entity table stores a client reference column whose value is
# either a client id or a legacy company name. This module registers those
# tables and describes the filters a caller can add to a scoped read.
#
# Usage:
#   from core.models.entity import get_entity_type, QueryFilters
#   calendar = get_entity_type("calendar_entries")
#   filters = QueryFilters.between("date", "2024-01-01", "2024-01-31")
# =============================================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.exceptions import UnknownEntityTypeError


class MatchMode(str, Enum):
    """
    How a lookup compares the client reference column to its values.

    - exact: literal equality (ids and raw fallback values)
    - name: equality after trimming and case-folding (company names)
    """
    EXACT = "exact"
    NAME = "name"


@dataclass(frozen=True)
class EntityType:
    """
    A table whose rows belong to an end-client.

    Attributes:
        name: Public name used in routes and logs
        table: Backing table name
        client_field: Column holding the client id or legacy company name
        ordering_key: Natural ordering column (ascending)
        primary_key: Unique row identifier column
        soft_delete_column: Tombstone timestamp column; rows where it is set
            are never returned
    """
    name: str
    table: str
    client_field: str
    ordering_key: str
    primary_key: str = "id"
    soft_delete_column: str | None = None


ENTITY_TYPES: dict[str, EntityType] = {
    entity.name: entity
    for entity in (
        EntityType(
            name="calendar_entries",
            table="calendar_entries",
            client_field="client",
            ordering_key="date",
        ),
        EntityType(
            name="artworks",
            table="artworks",
            client_field="campaign_client",
            ordering_key="created_at",
            soft_delete_column="deleted_at",
        ),
        EntityType(
            name="social_campaigns",
            table="social_media_campaigns",
            client_field="client_id",
            ordering_key="created_at",
            soft_delete_column="deleted_at",
        ),
        EntityType(
            name="monthly_analytics",
            table="monthly_analytics",
            client_field="client_id",
            ordering_key="uploaded_at",
        ),
    )
}


def get_entity_type(name: str | EntityType) -> EntityType:
    """
    Look up a registered entity type by name.

    Raises:
        UnknownEntityTypeError: If the name isn't registered
    """
    if isinstance(name, EntityType):
        return name
    try:
        return ENTITY_TYPES[name]
    except KeyError:
        raise UnknownEntityTypeError(name, sorted(ENTITY_TYPES)) from None


@dataclass(frozen=True)
class QueryFilters:
    """
    Caller-supplied filters applied identically to every federated lookup.

    `ranges` maps a column to inclusive (lower, upper) bounds where either
    bound may be None. `equals` maps a column to a required value.

    Example:
        filters = QueryFilters.between("date", "2024-01-01", "2024-01-31")
        filters = filters.where(approval_status="pending")
    """
    ranges: dict[str, tuple[Any, Any]] = field(default_factory=dict)
    equals: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def between(cls, column: str, start: Any = None, end: Any = None) -> "QueryFilters":
        if start is None and end is None:
            return cls()
        return cls(ranges={column: (start, end)})

    def where(self, **equals: Any) -> "QueryFilters":
        """Return a copy with extra equality filters (None values ignored)."""
        merged = dict(self.equals)
        merged.update({k: v for k, v in equals.items() if v is not None})
        return QueryFilters(ranges=dict(self.ranges), equals=merged)

    @property
    def is_empty(self) -> bool:
        return not self.ranges and not self.equals

    def describe(self) -> dict[str, Any]:
        """Loggable form."""
        return {
            "ranges": {k: list(v) for k, v in self.ranges.items()},
            "equals": dict(self.equals),
        }
