# =============================================================================
# core/models/scope.py - Scope Resolution Results
# =============================================================================
# Result types of the scope pipeline:
# - DirectoryResolution: what the client directory made of a grant
# - Scope: tagged union returned by scope resolution
#     Unrestricted | EmptyScope | ResolvedScope | ResolutionFailure
# - FederatedResult: rows returned by a scoped read, with partial-failure info
#
# A scope is computed once per request and never persisted or cached across
# requests; grants and registry rows can change in between.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Mapping, Union

from app.exceptions import ClientScopeException
from core.models.entity import MatchMode


class ScopeSubset(str, Enum):
    """
    The three disjoint representations a client reference can take.

    Each subset is queried separately because id matching is literal and
    name matching is case-insensitive.
    """
    BY_ID = "by_id"
    BY_NAME = "by_name"
    BY_RAW_FALLBACK = "by_raw_fallback"

    @property
    def match_mode(self) -> MatchMode:
        return MatchMode.NAME if self is ScopeSubset.BY_NAME else MatchMode.EXACT


# =============================================================================
# Directory Output
# =============================================================================

@dataclass(frozen=True)
class DirectoryResolution:
    """
    A grant resolved against the client registry.

    Attributes:
        resolved_ids: Every client id the grant reaches, expansion included
        resolved_names: One canonical company name per matched name class
        unresolved: Grant values that matched neither an id nor a name
        tombstoned: Name-shaped grant values matching only soft-deleted rows
        names_by_id: id -> company name for every resolved id
        ids_by_name: canonical name -> ids in that name class
        deleted_ids: Resolved ids whose registry row is soft-deleted
        expanded_ids: Ids added only because they share a company name
        matched_by: raw grant value -> ids it matched directly
    """
    resolved_ids: frozenset[str] = frozenset()
    resolved_names: frozenset[str] = frozenset()
    unresolved: frozenset[str] = frozenset()
    tombstoned: frozenset[str] = frozenset()
    names_by_id: Mapping[str, str] = field(default_factory=dict)
    ids_by_name: Mapping[str, frozenset[str]] = field(default_factory=dict)
    deleted_ids: frozenset[str] = frozenset()
    expanded_ids: frozenset[str] = frozenset()
    matched_by: Mapping[str, frozenset[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.resolved_ids or self.resolved_names or self.unresolved)

    def name_for(self, client_id: str) -> str | None:
        return self.names_by_id.get(client_id)

    def active_ids(self) -> frozenset[str]:
        """Resolved ids minus soft-deleted rows, for callers hiding history."""
        return self.resolved_ids - self.deleted_ids


# =============================================================================
# Scope Tagged Union
# =============================================================================

@dataclass(frozen=True)
class Unrestricted:
    """No client filter applies (administrator)."""
    kind: ClassVar[str] = "unrestricted"
    role: str | None = None


@dataclass(frozen=True)
class EmptyScope:
    """
    A restricted user with nothing to filter by.

    This is a valid terminal state meaning "return no rows". It is never
    interchangeable with Unrestricted.
    """
    kind: ClassVar[str] = "empty"
    reason: str = "no client grant"
    role: str | None = None


@dataclass(frozen=True)
class ResolvedScope:
    """
    Client reference values a restricted user may query.

    The three sets are disjoint so no representation is queried twice.
    `provenance` records which set covers each raw grant value.
    """
    kind: ClassVar[str] = "resolved"
    by_id: frozenset[str] = frozenset()
    by_name: frozenset[str] = frozenset()
    by_raw_fallback: frozenset[str] = frozenset()
    provenance: Mapping[str, ScopeSubset] = field(default_factory=dict)
    resolution: DirectoryResolution | None = None
    role: str | None = None

    def __post_init__(self) -> None:
        overlap = (
            (self.by_id & self.by_name)
            | (self.by_id & self.by_raw_fallback)
            | (self.by_name & self.by_raw_fallback)
        )
        if overlap:
            raise ValueError(f"Scope subsets overlap: {sorted(overlap)}")

    @property
    def is_empty(self) -> bool:
        return not (self.by_id or self.by_name or self.by_raw_fallback)

    def subsets(self) -> dict[ScopeSubset, frozenset[str]]:
        """Non-empty subsets keyed by representation."""
        candidates = {
            ScopeSubset.BY_ID: self.by_id,
            ScopeSubset.BY_NAME: self.by_name,
            ScopeSubset.BY_RAW_FALLBACK: self.by_raw_fallback,
        }
        return {subset: values for subset, values in candidates.items() if values}

    def all_values(self) -> frozenset[str]:
        return self.by_id | self.by_name | self.by_raw_fallback


@dataclass(frozen=True)
class ResolutionFailure:
    """
    Scope could not be computed. Fail closed: grant nothing.

    `error` carries the HTTP mapping (e.g. DIRECTORY_LOOKUP_FAILED -> 503).
    """
    kind: ClassVar[str] = "failure"
    error: ClientScopeException

    @property
    def retryable(self) -> bool:
        return self.error.retryable

    def raise_error(self) -> None:
        raise self.error


Scope = Union[Unrestricted, EmptyScope, ResolvedScope, ResolutionFailure]


# =============================================================================
# Federation Output
# =============================================================================

@dataclass
class FederatedResult:
    """
    Rows returned by a scoped read.

    `partial` is True when at least one subset lookup failed; the rows from
    the subsets that succeeded are still present. Callers decide whether a
    partial result is acceptable.
    """
    rows: list[dict[str, Any]] = field(default_factory=list)
    partial: bool = False
    attempted_subsets: list[ScopeSubset] = field(default_factory=list)
    failed_subsets: list[ScopeSubset] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.rows)

    @property
    def all_failed(self) -> bool:
        """Every attempted lookup failed, so `rows` carries no data at all."""
        return bool(self.attempted_subsets) and len(self.failed_subsets) == len(self.attempted_subsets)
