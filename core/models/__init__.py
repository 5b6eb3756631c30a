# =============================================================================
# core/models/ - Data Models
# =============================================================================
# This package contains the data types of the scope pipeline:
# - client.py: ClientRecord, UserGrant, UserRole
# - entity.py: EntityType registry, QueryFilters, MatchMode
# - scope.py: DirectoryResolution, the Scope tagged union, FederatedResult
# =============================================================================

# -----------------------------------------------------------------------------
# Client Models - registry rows and user grants
# -----------------------------------------------------------------------------
from .client import (
    ClientRecord,
    UserGrant,
    UserRole,
)

# -----------------------------------------------------------------------------
# Entity Models - scoped tables and filters
# -----------------------------------------------------------------------------
from .entity import (
    ENTITY_TYPES,
    EntityType,
    MatchMode,
    QueryFilters,
    get_entity_type,
)

# -----------------------------------------------------------------------------
# Scope Models - resolution and federation results
# -----------------------------------------------------------------------------
from .scope import (
    DirectoryResolution,
    EmptyScope,
    FederatedResult,
    ResolutionFailure,
    ResolvedScope,
    Scope,
    ScopeSubset,
    Unrestricted,
)

__all__ = [
    # Client
    "ClientRecord",
    "UserGrant",
    "UserRole",
    # Entity
    "ENTITY_TYPES",
    "EntityType",
    "MatchMode",
    "QueryFilters",
    "get_entity_type",
    # Scope
    "DirectoryResolution",
    "EmptyScope",
    "FederatedResult",
    "ResolutionFailure",
    "ResolvedScope",
    "Scope",
    "ScopeSubset",
    "Unrestricted",
]
