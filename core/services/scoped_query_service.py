# =============================================================================
# core/services/scoped_query_service.py - Scope Pipeline Facade
# =============================================================================
# The one entry point route handlers use for client-scoped reads:
#
#   grant -> normalize -> directory -> role policy -> federated reads -> merge
#
# A ScopedQueryService lives for one request. It owns that request's
# RequestCache, so the registry is read at most once per request and never
# shared between requests.
#
# Usage:
#   service = ScopedQueryService.for_request()
#   scope, result = service.fetch_for_user(user.id, "calendar_entries",
#                                          QueryFilters.between("date", start, end))
# =============================================================================

from __future__ import annotations

import logging
import re
from typing import Any
from uuid import UUID

from core.models.entity import EntityType, QueryFilters, get_entity_type
from core.models.scope import (
    EmptyScope,
    FederatedResult,
    ResolutionFailure,
    ResolvedScope,
    Scope,
    Unrestricted,
)
from core.services.access_scope_service import AccessScopeService
from core.services.client_directory import RequestCache
from core.services.federation_service import EntityQueryFederator
from core.services.interfaces import ClientRegistry, EntityStore, GrantAccessor
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_name

logger = logging.getLogger(__name__)


class ScopedQueryService:
    """
    Request-scoped facade over scope resolution and federated reads.

    Exposes the two public contracts, resolve_scope() and fetch_scoped(),
    plus the helpers route handlers need around them.
    """

    def __init__(
        self,
        grants: GrantAccessor,
        registry: ClientRegistry,
        store: EntityStore,
        id_pattern: re.Pattern[str] | str | None = None,
        max_workers: int | None = None,
        timeout: float | None = None,
    ):
        self.cache = RequestCache(registry)
        self.scopes = AccessScopeService(grants, registry, cache=self.cache, id_pattern=id_pattern)
        self.federator = EntityQueryFederator(store, max_workers=max_workers, timeout=timeout)

    @classmethod
    def for_request(cls) -> "ScopedQueryService":
        """Service backed by Supabase for every collaborator."""
        return cls(SupabaseClient, SupabaseClient, SupabaseClient)

    # -------------------------------------------------------------------------
    # Public Contracts
    # -------------------------------------------------------------------------

    def resolve_scope(self, user_id: str | UUID) -> Scope:
        """Unrestricted | EmptyScope | ResolvedScope | ResolutionFailure for a user."""
        return self.scopes.resolve_scope(user_id)

    def fetch_scoped(
        self,
        entity_type: str | EntityType,
        scope: Scope,
        filters: QueryFilters | None = None,
    ) -> FederatedResult:
        """Rows of `entity_type` visible under `scope`; see EntityQueryFederator.fetch."""
        return self.federator.fetch(entity_type, scope, filters)

    def fetch_for_user(
        self,
        user_id: str | UUID,
        entity_type: str | EntityType,
        filters: QueryFilters | None = None,
    ) -> tuple[Scope, FederatedResult]:
        """
        Resolve a user's scope and read `entity_type` under it.

        Raises:
            ClientScopeException: If the scope can't be resolved or the
                read fails outright
        """
        entity = get_entity_type(entity_type)
        scope = self.resolve_scope(user_id)
        if isinstance(scope, ResolutionFailure):
            scope.raise_error()
        result = self.fetch_scoped(entity, scope, filters)
        logger.info(
            f"{entity.name} read for user {user_id}: scope={scope.kind}, "
            f"rows={result.count}, partial={result.partial}"
        )
        return scope, result

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def can_access(scope: Scope, client_ref: str | None) -> bool:
        """
        Whether a single entity's client reference falls inside `scope`.

        Used before acting on one specific row (e.g. reviewing an artwork).
        Ids and raw fallback values match literally, names after trimming
        and case-folding. Empty scopes and failures grant nothing.
        """
        if isinstance(scope, Unrestricted):
            return True
        if not isinstance(scope, ResolvedScope) or client_ref is None:
            return False

        ref = str(client_ref).strip()
        if not ref:
            return False
        if ref in scope.by_id or ref.casefold() in {value.casefold() for value in scope.by_id}:
            return True
        if normalize_name(ref) in {normalize_name(name) for name in scope.by_name}:
            return True
        return ref in scope.by_raw_fallback

    def label_client_refs(
        self,
        rows: list[dict[str, Any]],
        entity_type: str | EntityType,
        scope: Scope | None = None,
    ) -> list[dict[str, Any]]:
        """
        Replace id-shaped client references with company names for display.

        Names come from the scope's resolution where possible, otherwise
        from one bulk registry read through the request cache. Values that
        aren't known ids are left untouched.

        Returns:
            New row dicts; the input rows aren't modified
        """
        entity = get_entity_type(entity_type)
        field = entity.client_field
        directory = self.scopes.directory

        names: dict[str, str] = {}
        if isinstance(scope, ResolvedScope) and scope.resolution is not None:
            names.update(scope.resolution.names_by_id)

        unknown = {
            str(row[field]) for row in rows
            if row.get(field) and str(row[field]) not in names and directory.is_id_shaped(str(row[field]))
        }
        if unknown:
            for client_id, record in self.cache.clients_by_id(unknown).items():
                names[client_id] = record.company_name

        labeled = []
        for row in rows:
            ref = row.get(field)
            name = names.get(str(ref)) if ref is not None else None
            labeled.append({**row, field: name} if name else dict(row))
        return labeled

    @staticmethod
    def explain(scope: Scope) -> dict[str, Any]:
        """
        Diagnostic summary of a scope.

        Shows why a grant matched what it matched: which values resolved,
        which were expanded through duplicate records, and which fell back
        to a raw lookup.
        """
        summary: dict[str, Any] = {"kind": scope.kind}

        if isinstance(scope, (Unrestricted, EmptyScope, ResolvedScope)):
            summary["role"] = scope.role
        if isinstance(scope, EmptyScope):
            summary["reason"] = scope.reason
        if isinstance(scope, ResolutionFailure):
            summary["error"] = scope.error.to_dict()
            summary["retryable"] = scope.retryable
        if isinstance(scope, ResolvedScope):
            summary["by_id"] = sorted(scope.by_id)
            summary["by_name"] = sorted(scope.by_name)
            summary["by_raw_fallback"] = sorted(scope.by_raw_fallback)
            summary["provenance"] = {raw: subset.value for raw, subset in sorted(scope.provenance.items())}
            resolution = scope.resolution
            if resolution is not None:
                summary["expanded_ids"] = sorted(resolution.expanded_ids)
                summary["deleted_ids"] = sorted(resolution.deleted_ids)
                summary["unresolved"] = sorted(resolution.unresolved)
                summary["tombstoned"] = sorted(resolution.tombstoned)

        return summary
