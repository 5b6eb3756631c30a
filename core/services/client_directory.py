# =============================================================================
# core/services/client_directory.py - Client Identifier Resolution
# =============================================================================
# Resolves a normalized grant against the client registry.
#
# Grant values and entity client references are either client ids or legacy
# company names, and the registry holds duplicate rows under one company
# name. The directory reconciles all three:
#
#   1. classify each value as id-shaped or name-shaped
#   2. bulk-fetch id-shaped values
#   3. index active rows by normalized company name
#   4. match name-shaped values exactly against that index
#   5. expand every matched name class to all of its ids
#   6. set aside names that only match soft-deleted rows
#
# Registry reads go through a RequestCache, created per request and never
# shared, so a request scans the registry at most once.
# =============================================================================

from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Iterable

from app.config import settings
from app.exceptions import DirectoryLookupFailedError
from core.models.client import ClientRecord
from core.models.scope import DirectoryResolution
from core.services.interfaces import ClientRegistry
from lib.utils import normalize_name

logger = logging.getLogger(__name__)


class RequestCache:
    """
    Registry reads memoized for the lifetime of one request.

    Any registry failure is raised as DirectoryLookupFailedError; nothing is
    memoized for a failed read.
    """

    def __init__(self, registry: ClientRegistry):
        self.registry = registry
        self._by_id: dict[str, ClientRecord | None] = {}
        self._active: list[ClientRecord] | None = None
        self._name_index: dict[str, list[ClientRecord]] | None = None
        self._deleted_names: frozenset[str] | None = None

    def clients_by_id(self, ids: Iterable[str]) -> dict[str, ClientRecord]:
        """Registry rows for `ids` keyed by requested id; misses are omitted."""
        wanted = set(ids)
        missing = wanted - self._by_id.keys()
        if missing:
            try:
                rows = self.registry.get_by_ids(missing)
            except Exception as e:
                logger.error(f"Registry lookup by id failed: {e}")
                raise DirectoryLookupFailedError("get_by_ids", str(e)) from e

            by_key = {row.id.casefold(): row for row in rows}
            for client_id in missing:
                self._by_id[client_id] = by_key.get(client_id.casefold())

        return {
            client_id: self._by_id[client_id]
            for client_id in wanted
            if self._by_id.get(client_id) is not None
        }

    def active_clients(self) -> list[ClientRecord]:
        if self._active is None:
            try:
                self._active = [row for row in self.registry.get_all_active() if not row.deleted]
            except Exception as e:
                logger.error(f"Registry scan failed: {e}")
                raise DirectoryLookupFailedError("get_all_active", str(e)) from e
            for row in self._active:
                self._by_id.setdefault(row.id, row)
        return self._active

    def name_index(self) -> dict[str, list[ClientRecord]]:
        """
        normalized company name -> active rows sharing it, ordered by id.

        Rows with a blank company name are left out; they would otherwise
        all collapse into one class.
        """
        if self._name_index is None:
            index: dict[str, list[ClientRecord]] = defaultdict(list)
            for row in self.active_clients():
                key = normalize_name(row.company_name)
                if key:
                    index[key].append(row)
            self._name_index = {key: sorted(rows, key=lambda r: r.id) for key, rows in index.items()}
        return self._name_index

    def deleted_names(self) -> frozenset[str]:
        """Normalized company names of soft-deleted rows."""
        if self._deleted_names is None:
            try:
                rows = self.registry.get_all_deleted()
            except Exception as e:
                logger.error(f"Registry tombstone scan failed: {e}")
                raise DirectoryLookupFailedError("get_all_deleted", str(e)) from e
            names = (normalize_name(row.company_name) for row in rows if row.deleted)
            self._deleted_names = frozenset(name for name in names if name)
        return self._deleted_names


class ClientDirectory:
    """
    Resolves grant identifiers to client ids and company names.

    Example:
        directory = ClientDirectory(RequestCache(SupabaseClient))
        resolution = directory.resolve({"Acme Co", "550e8400-..."})
        resolution.resolved_ids    # every id sharing Acme Co's name, plus the uuid
        resolution.unresolved      # values that matched nothing
    """

    def __init__(
        self,
        cache: RequestCache,
        id_pattern: re.Pattern[str] | str | None = None,
    ):
        self.cache = cache
        if id_pattern is None:
            id_pattern = settings.client_id_regex
        elif isinstance(id_pattern, str):
            id_pattern = re.compile(id_pattern, re.IGNORECASE)
        self.id_pattern = id_pattern

    def is_id_shaped(self, value: str) -> bool:
        return bool(self.id_pattern.fullmatch(value))

    def resolve(self, identifiers: Iterable[str]) -> DirectoryResolution:
        """
        Resolve normalized identifiers against the registry.

        Args:
            identifiers: Output of normalize_identifiers()

        Returns:
            DirectoryResolution with every input accounted for, through
            `matched_by`, `unresolved` or `tombstoned`

        Raises:
            DirectoryLookupFailedError: If the registry can't be read
        """
        identifiers = frozenset(identifiers)
        if not identifiers:
            return DirectoryResolution()

        id_shaped = {value for value in identifiers if self.is_id_shaped(value)}
        name_shaped = identifiers - id_shaped

        resolved_ids: set[str] = set()
        names_by_id: dict[str, str] = {}
        deleted_ids: set[str] = set()
        matched_by: dict[str, frozenset[str]] = {}
        name_classes: dict[str, str] = {}

        # Id path
        hits = self.cache.clients_by_id(id_shaped) if id_shaped else {}
        for raw, record in hits.items():
            resolved_ids.add(record.id)
            names_by_id[record.id] = record.company_name
            matched_by[raw] = frozenset({record.id})
            if record.deleted:
                # Readable for history, but a tombstone never grants its name class
                deleted_ids.add(record.id)
                continue
            key = normalize_name(record.company_name)
            if key:
                name_classes.setdefault(key, record.company_name.strip())

        index = self.cache.name_index()

        # Name path
        for raw in name_shaped:
            key = normalize_name(raw)
            matches = index.get(key, [])
            if not matches:
                continue
            name_classes.setdefault(key, matches[0].company_name.strip())
            matched_by[raw] = frozenset(record.id for record in matches)

        # Expansion over every matched name class
        direct_ids = set().union(*matched_by.values()) if matched_by else set()
        canonical: dict[str, str] = {}
        ids_by_name: dict[str, frozenset[str]] = {}
        for key in name_classes:
            members = index.get(key, [])
            class_ids = {record.id for record in members}
            class_ids.update(
                cid for cid in direct_ids - deleted_ids
                if normalize_name(names_by_id.get(cid)) == key
            )
            for record in members:
                resolved_ids.add(record.id)
                names_by_id.setdefault(record.id, record.company_name)
            name = members[0].company_name.strip() if members else name_classes[key]
            canonical[key] = name
            ids_by_name[name] = frozenset(class_ids)

        expanded_ids = resolved_ids - direct_ids

        # Names whose only registry rows are tombstones grant nothing
        unmatched_names = {raw for raw in name_shaped if raw not in matched_by}
        tombstoned: set[str] = set()
        if unmatched_names:
            deleted_names = self.cache.deleted_names()
            tombstoned = {raw for raw in unmatched_names if normalize_name(raw) in deleted_names}

        unresolved = identifiers - matched_by.keys() - tombstoned

        if expanded_ids:
            logger.warning(
                f"Expanded grant by {len(expanded_ids)} duplicate client record(s): "
                f"{sorted(expanded_ids)}"
            )
        if tombstoned:
            logger.warning(f"Grant values naming only deleted clients (ignored): {sorted(tombstoned)}")
        if unresolved:
            logger.warning(f"Unresolved grant values (raw fallback): {sorted(unresolved)}")
        logger.debug(
            f"Resolved {len(identifiers)} identifiers -> "
            f"{len(resolved_ids)} ids, {len(canonical)} names, {len(unresolved)} unresolved"
        )

        return DirectoryResolution(
            resolved_ids=frozenset(resolved_ids),
            resolved_names=frozenset(canonical.values()),
            unresolved=frozenset(unresolved),
            tombstoned=frozenset(tombstoned),
            names_by_id=names_by_id,
            ids_by_name=ids_by_name,
            deleted_ids=frozenset(deleted_ids),
            expanded_ids=frozenset(expanded_ids),
            matched_by=matched_by,
        )
