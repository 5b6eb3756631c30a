# =============================================================================
# core/models/client.py - Client Registry and User Grant Schemas
# =============================================================================
# These models describe the two inputs of scope resolution:
# - ClientRecord: one row of the client registry (the `clients` table)
# - UserGrant: a user's role plus their raw, unnormalized client grant
# - UserRole: the four portal roles
#
# Duplicate company names across ClientRecords are a known legacy
# condition. Nothing here deduplicates them; the directory does.
# =============================================================================

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """
    Portal roles.

    - IT_ADMIN: administrator, sees every client
    - AGENCY_ADMIN: agency staff, sees assigned clients
    - DESIGNER: agency designer, sees assigned clients
    - CLIENT: end-client login, sees its own client(s) only
    """
    IT_ADMIN = "IT_ADMIN"
    AGENCY_ADMIN = "AGENCY_ADMIN"
    DESIGNER = "DESIGNER"
    CLIENT = "CLIENT"

    @classmethod
    def parse(cls, value: Any) -> "UserRole | None":
        """Parse a stored role string; unknown values return None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None

    @property
    def is_unrestricted(self) -> bool:
        """Whether this role bypasses client scoping entirely."""
        return self is UserRole.IT_ADMIN


class ClientRecord(BaseModel):
    """
    One client registry row.

    `id` is unique and stable. `company_name` is not unique.
    Soft-deleted rows carry `deleted=True`; they are never hard-deleted.

    Example:
        {
            "id": "550e8400-e29b-41d4-a716-446655440000",
            "company_name": "Acme Co",
            "deleted": false
        }
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable client identifier")
    company_name: str = Field(default="", description="Company display name (not unique)")
    deleted: bool = Field(default=False, description="Soft-delete tombstone")

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "ClientRecord":
        """
        Create a ClientRecord from a `clients` row.

        Rows carry either a `deleted` flag or a `deleted_at` timestamp.
        """
        deleted = bool(row.get("deleted")) or row.get("deleted_at") is not None
        return cls(
            id=str(row["id"]),
            company_name=row.get("company_name") or "",
            deleted=deleted,
        )


class UserGrant(BaseModel):
    """
    A user's role and raw client grant exactly as stored.

    `assigned_clients` may be a list, a comma-joined string, a single
    identifier or null. `client_id` is the legacy single-client column
    that predates `assigned_clients`.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: str | None = None
    assigned_clients: Any = None
    client_id: str | None = None

    @property
    def parsed_role(self) -> UserRole | None:
        return UserRole.parse(self.role)

    @classmethod
    def from_db_row(cls, user_id: str, row: dict[str, Any]) -> "UserGrant":
        """Create a UserGrant from a `users` row."""
        client_id = row.get("client_id")
        return cls(
            user_id=str(user_id),
            role=row.get("role"),
            assigned_clients=row.get("assigned_clients"),
            client_id=str(client_id) if client_id is not None else None,
        )
