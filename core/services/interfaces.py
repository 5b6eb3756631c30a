# =============================================================================
# core/services/interfaces.py - External Collaborator Contracts
# =============================================================================
# The scope pipeline talks to storage only through these narrow interfaces.
# lib.supabase_client.SupabaseClient satisfies all three; tests pass
# in-memory fakes.
# =============================================================================

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

from core.models.client import ClientRecord, UserGrant
from core.models.entity import EntityType, MatchMode, QueryFilters


class ClientRegistry(Protocol):
    """Read access to the `clients` table."""

    def get_by_ids(self, ids: Iterable[str]) -> list[ClientRecord]:
        """Rows for the given ids, soft-deleted ones included."""
        ...

    def get_all_active(self) -> list[ClientRecord]:
        """Every row that isn't soft-deleted."""
        ...

    def get_all_deleted(self) -> list[ClientRecord]:
        """Every soft-deleted row."""
        ...


class EntityStore(Protocol):
    """Read access to scoped entity tables."""

    def query_by_client_field(
        self,
        entity_type: EntityType,
        values: Iterable[str],
        filters: QueryFilters,
        match: MatchMode = MatchMode.EXACT,
    ) -> list[dict[str, Any]]:
        """Rows whose client field matches one of `values` (homogeneous)."""
        ...

    def query_all(
        self,
        entity_type: EntityType,
        filters: QueryFilters,
    ) -> list[dict[str, Any]]:
        """Rows of the table with no client filter."""
        ...


class GrantAccessor(Protocol):
    """Read-only access to a user's raw grant."""

    def get_grant(self, user_id: str) -> UserGrant | None:
        """The user's grant, or None when no user row exists."""
        ...
