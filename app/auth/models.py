# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuthUser(BaseModel):
    """
    Authenticated user extracted from a Supabase JWT.

    Only identity comes from the token. Role and client grant are read
    from the users table on every request, since either can change while
    a token is still valid.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: Optional[str] = None
