# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides the read operations the scope pipeline depends on:
# - User grants (users table)
# - Client registry rows (clients table)
# - Scoped entity rows (calendar_entries, artworks, ...)
#
# SupabaseClient itself satisfies the ClientRegistry, EntityStore and
# GrantAccessor interfaces in core/services/interfaces.py, so the class can
# be passed to the pipeline directly.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   grant = SupabaseClient.get_grant(user_id)
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any
from uuid import UUID

from supabase import create_client, Client

from app.config import settings
from core.models.client import ClientRecord, UserGrant
from core.models.entity import EntityType, MatchMode, QueryFilters
from lib.utils import ApplicationError, normalize_name, normalize_uuid

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code for "no rows" on .single()
NO_ROWS_CODE = "PGRST116"

# Rows per request; matches PostgREST's default max-rows
PAGE_SIZE = 1000


class SupabaseClientError(ApplicationError):
    """
    Error during Supabase operations.

    Raised for any failed query; services above wrap it into the error
    the API reports.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, suggestion=suggestion, details=details)

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    The connection is the only shared state. Query results are never
    cached here; request-scoped caching lives in core/services.

    Example:
        grant = SupabaseClient.get_grant("550e8400-...")
        clients = SupabaseClient.get_by_ids(["550e8400-..."])
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        Scoping is enforced by the pipeline instead, which is why every
        read below is filtered by a resolved scope before it reaches a user.

        Returns:
            Client: Supabase client instance

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    # -------------------------------------------------------------------------
    # User Grants
    # -------------------------------------------------------------------------

    @classmethod
    def get_grant(cls, user_id: str | UUID) -> UserGrant | None:
        """
        Fetch a user's role and raw client grant.

        Args:
            user_id: The user UUID

        Returns:
            UserGrant, or None if the user has no profile row

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        user_id_str = normalize_uuid(user_id)

        try:
            response = (
                client.table("users")
                .select("role, assigned_clients, client_id")
                .eq("id", user_id_str)
                .single()
                .execute()
            )
        except Exception as e:
            if NO_ROWS_CODE in str(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch user grant: {e}",
                code="FETCH_GRANT_FAILED",
                suggestion="Check that the users table is accessible",
                details={"user_id": user_id_str}
            )

        if not response.data:
            return None
        return UserGrant.from_db_row(user_id_str, response.data)

    # -------------------------------------------------------------------------
    # Pagination
    # -------------------------------------------------------------------------

    @classmethod
    def _fetch_pages(cls, build_query: Callable[[], Any]) -> list[dict[str, Any]]:
        """
        Execute a query one `.range()` page at a time until a short page.

        PostgREST silently caps an unpaginated select at its max-rows
        setting, so every multi-row read goes through here.

        Args:
            build_query: Returns a fresh, fully ordered query for each page

        Returns:
            All rows across pages
        """
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            response = build_query().range(offset, offset + PAGE_SIZE - 1).execute()
            page = response.data or []
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                return rows
            offset += PAGE_SIZE

    # -------------------------------------------------------------------------
    # Client Registry
    # -------------------------------------------------------------------------

    @classmethod
    def get_by_ids(cls, ids: Iterable[str]) -> list[ClientRecord]:
        """
        Fetch client rows by id with an IN predicate.

        Soft-deleted rows are included; callers decide whether they count.

        Raises:
            SupabaseClientError: If query fails
        """
        id_list = sorted(set(ids))
        if not id_list:
            return []

        client = cls.get_client()

        try:
            rows = cls._fetch_pages(
                lambda: client.table("clients")
                .select("id, company_name, deleted_at")
                .in_("id", id_list)
                .order("id")
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch clients by id: {e}",
                code="FETCH_CLIENTS_FAILED",
                suggestion="Check that the clients table is accessible",
                details={"id_count": len(id_list)}
            )

        logger.debug(f"Fetched {len(rows)} of {len(id_list)} requested clients")
        return [ClientRecord.from_db_row(row) for row in rows]

    @classmethod
    def get_all_active(cls) -> list[ClientRecord]:
        """
        Fetch every client row that isn't soft-deleted.

        Name matching needs the whole registry, so this pages through it.

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()

        try:
            rows = cls._fetch_pages(
                lambda: client.table("clients")
                .select("id, company_name, deleted_at")
                .is_("deleted_at", "null")
                .order("id")
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to scan active clients: {e}",
                code="SCAN_CLIENTS_FAILED",
                suggestion="Check that the clients table is accessible",
            )

        logger.debug(f"Scanned {len(rows)} active clients")
        return [ClientRecord.from_db_row(row) for row in rows]

    @classmethod
    def get_all_deleted(cls) -> list[ClientRecord]:
        """
        Fetch every soft-deleted client row.

        Only read when a grant names a company with no active row.

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()

        try:
            rows = cls._fetch_pages(
                lambda: client.table("clients")
                .select("id, company_name, deleted_at")
                .not_.is_("deleted_at", "null")
                .order("id")
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to scan deleted clients: {e}",
                code="SCAN_CLIENTS_FAILED",
                suggestion="Check that the clients table is accessible",
            )

        logger.debug(f"Scanned {len(rows)} deleted clients")
        return [ClientRecord.from_db_row(row) for row in rows]

    # -------------------------------------------------------------------------
    # Scoped Entities
    # -------------------------------------------------------------------------

    @classmethod
    def _entity_query(cls, entity_type: EntityType, filters: QueryFilters) -> Any:
        """
        Base select for an entity table: live rows only, filters applied,
        ordered by the ordering key with the primary key as tie-break.
        """
        query = cls.get_client().table(entity_type.table).select("*")
        if entity_type.soft_delete_column:
            query = query.is_(entity_type.soft_delete_column, "null")
        for column, (lower, upper) in filters.ranges.items():
            if lower is not None:
                query = query.gte(column, lower)
            if upper is not None:
                query = query.lte(column, upper)
        for column, value in filters.equals.items():
            query = query.eq(column, value)
        return query

    @classmethod
    def query_by_client_field(
        cls,
        entity_type: EntityType,
        values: Iterable[str],
        filters: QueryFilters,
        match: MatchMode = MatchMode.EXACT,
    ) -> list[dict[str, Any]]:
        """
        Fetch entity rows whose client field matches one of `values`.

        Exact matching uses an IN predicate. Name matching compares trimmed,
        case-folded values; PostgREST has no such predicate over a list, so
        every row inside the filter window is paged through and matched here.

        Args:
            entity_type: Table to read
            values: Homogeneous client references (all ids or all names)
            filters: Range/equality filters
            match: exact or name comparison

        Returns:
            Rows ordered by the entity's ordering key

        Raises:
            SupabaseClientError: If query fails
        """
        value_list = sorted(set(values))
        if not value_list:
            return []

        def build_query() -> Any:
            query = cls._entity_query(entity_type, filters)
            if match is MatchMode.EXACT:
                query = query.in_(entity_type.client_field, value_list)
            return query.order(entity_type.ordering_key).order(entity_type.primary_key)

        try:
            rows = cls._fetch_pages(build_query)
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to query {entity_type.table}: {e}",
                code="QUERY_ENTITIES_FAILED",
                suggestion="Check the filter columns exist on this table",
                details={
                    "table": entity_type.table,
                    "match": match.value,
                    "value_count": len(value_list),
                }
            )

        if match is MatchMode.NAME:
            wanted = {normalize_name(v) for v in value_list}
            rows = [
                row for row in rows
                if normalize_name(row.get(entity_type.client_field)) in wanted
            ]

        logger.debug(f"Fetched {len(rows)} {entity_type.name} rows ({match.value} match)")
        return rows

    @classmethod
    def query_all(
        cls,
        entity_type: EntityType,
        filters: QueryFilters,
    ) -> list[dict[str, Any]]:
        """
        Fetch entity rows with no client filter (unrestricted scope).

        Raises:
            SupabaseClientError: If query fails
        """
        try:
            return cls._fetch_pages(
                lambda: cls._entity_query(entity_type, filters)
                .order(entity_type.ordering_key)
                .order(entity_type.primary_key)
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to query {entity_type.table}: {e}",
                code="QUERY_ENTITIES_FAILED",
                suggestion="Check the filter columns exist on this table",
                details={"table": entity_type.table}
            )

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    @classmethod
    def ping(cls) -> None:
        """
        Run a trivial query against the registry.

        Raises:
            SupabaseClientError: If the database can't be reached
        """
        client = cls.get_client()
        try:
            client.table("clients").select("id").limit(1).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Database ping failed: {e}",
                code="PING_FAILED",
            )
