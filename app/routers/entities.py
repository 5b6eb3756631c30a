# =============================================================================
# app/routers/entities.py - Client-Scoped Entity Reads
# =============================================================================
# Read endpoints for calendar entries, artworks, campaigns and analytics,
# filtered to the clients the caller may see.
# All endpoints require authentication.
# =============================================================================

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field

from app.auth import AuthUser, get_current_user
from app.dependencies import ScopedQueryDep
from app.exceptions import EntityLookupFailedError
from core.models.entity import ENTITY_TYPES, QueryFilters, get_entity_type

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class EntityListResponse(BaseModel):
    """Scoped rows of one entity type."""
    entity_type: str
    scope_kind: str
    rows: list[dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    partial: bool = Field(
        default=False,
        description="True when some lookups failed and rows may be incomplete"
    )
    failed_subsets: list[str] = Field(default_factory=list)


class EntityTypesResponse(BaseModel):
    """Registered entity types."""
    entity_types: list[str]


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=EntityTypesResponse)
async def list_entity_types(user: AuthUser = Depends(get_current_user)):
    """List the entity types that support scoped reads."""
    return EntityTypesResponse(entity_types=sorted(ENTITY_TYPES))


@router.get("/{entity_type}", response_model=EntityListResponse)
def list_entities(
    service: ScopedQueryDep,
    entity_type: Annotated[str, Path(description="Entity type, e.g. calendar_entries")],
    user: AuthUser = Depends(get_current_user),
    start: Annotated[str | None, Query(description="Inclusive lower bound on the ordering key")] = None,
    end: Annotated[str | None, Query(description="Inclusive upper bound on the ordering key")] = None,
):
    """
    List the rows of an entity type visible to the caller.

    Rows are ordered by the entity's natural ordering key (e.g. `date` for
    calendar entries) and client ids are replaced by company names.

    A `partial` response means some lookups failed; the rows returned are
    correct but may be incomplete.
    """
    entity = get_entity_type(entity_type)
    filters = QueryFilters.between(entity.ordering_key, start, end)

    scope, result = service.fetch_for_user(user.id, entity, filters)

    if result.all_failed:
        raise EntityLookupFailedError(entity.name, "; ".join(result.errors.values()))
    if result.partial:
        logger.warning(
            f"Partial {entity.name} read for user {user.id}: "
            f"failed subsets {[s.value for s in result.failed_subsets]}"
        )

    rows = service.label_client_refs(result.rows, entity, scope=scope)

    return EntityListResponse(
        entity_type=entity.name,
        scope_kind=scope.kind,
        rows=rows,
        count=len(rows),
        partial=result.partial,
        failed_subsets=[subset.value for subset in result.failed_subsets],
    )
