# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
# =============================================================================

from typing import Annotated

from fastapi import Depends

from core.services.scoped_query_service import ScopedQueryService


def get_scoped_query_service() -> ScopedQueryService:
    """
    Build the scope pipeline for one request.

    A fresh instance per request keeps the registry cache request-scoped.
    """
    return ScopedQueryService.for_request()


# Type alias for dependency injection
ScopedQueryDep = Annotated[ScopedQueryService, Depends(get_scoped_query_service)]
