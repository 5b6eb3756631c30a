# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .client_directory import ClientDirectory, RequestCache
from .access_scope_service import AccessScopeService, build_scope
from .federation_service import EntityQueryFederator
from .result_merger import merge_for, merge_results
from .scoped_query_service import ScopedQueryService

__all__ = [
    "ClientDirectory",
    "RequestCache",
    "AccessScopeService",
    "build_scope",
    "EntityQueryFederator",
    "merge_for",
    "merge_results",
    "ScopedQueryService",
]
