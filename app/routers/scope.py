# =============================================================================
# app/routers/scope.py - Client Scope Endpoints
# =============================================================================
# Lets a signed-in user see which clients their grant resolves to, and check
# a single client reference before acting on one record.
# All endpoints require authentication.
# =============================================================================

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.auth import AuthUser, get_current_user
from app.dependencies import ScopedQueryDep
from core.models.scope import ResolutionFailure

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class ScopeResponse(BaseModel):
    """The caller's resolved scope with diagnostics."""
    user_id: str
    kind: str
    summary: dict[str, Any] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "example": {
                "user_id": "550e8400-e29b-41d4-a716-446655440000",
                "kind": "resolved",
                "summary": {
                    "kind": "resolved",
                    "role": "CLIENT",
                    "by_id": ["660e8400-e29b-41d4-a716-446655440001"],
                    "by_name": ["Acme Co"],
                    "by_raw_fallback": [],
                    "expanded_ids": [],
                    "tombstoned": [],
                },
            }
        }
    }


class AccessCheckResponse(BaseModel):
    """Whether one client reference is inside the caller's scope."""
    client_ref: str
    allowed: bool
    scope_kind: str


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=ScopeResponse)
def get_scope(
    service: ScopedQueryDep,
    user: AuthUser = Depends(get_current_user),
):
    """
    Get the caller's client scope.

    Returns how the grant resolved: ids, company names, raw fallback values,
    and ids added because of duplicate client records.
    """
    scope = service.resolve_scope(user.id)
    if isinstance(scope, ResolutionFailure):
        scope.raise_error()

    return ScopeResponse(
        user_id=str(user.id),
        kind=scope.kind,
        summary=service.explain(scope),
    )


@router.get("/check", response_model=AccessCheckResponse)
def check_access(
    service: ScopedQueryDep,
    client_ref: Annotated[str, Query(min_length=1, description="Client id or company name")],
    user: AuthUser = Depends(get_current_user),
):
    """
    Check whether a record's client reference is visible to the caller.
    """
    scope = service.resolve_scope(user.id)
    if isinstance(scope, ResolutionFailure):
        scope.raise_error()

    return AccessCheckResponse(
        client_ref=client_ref,
        allowed=service.can_access(scope, client_ref),
        scope_kind=scope.kind,
    )
