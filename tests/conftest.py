# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Provides a small client registry with duplicate company names
# - Provides in-memory collaborators (see tests/fakes.py)
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest

from core.models.client import ClientRecord, UserGrant
from tests.fakes import FakeEntityStore, FakeGrants, FakeRegistry

# =============================================================================
# Registry Constants
# =============================================================================

ACME_1 = "11111111-1111-1111-1111-111111111111"
ACME_2 = "22222222-2222-2222-2222-222222222222"
GLOBEX = "33333333-3333-3333-3333-333333333333"
ACME_DELETED = "44444444-4444-4444-4444-444444444444"
INITECH_DELETED = "55555555-5555-5555-5555-555555555555"
UNKNOWN_UUID = "99999999-9999-9999-9999-999999999999"

USER_ID = "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def client_records():
    """Registry with a duplicate company name under two ids and two tombstones."""
    return [
        ClientRecord(id=ACME_1, company_name="Acme Co"),
        ClientRecord(id=ACME_2, company_name="acme co "),
        ClientRecord(id=GLOBEX, company_name="Globex"),
        ClientRecord(id=ACME_DELETED, company_name="Acme Co", deleted=True),
        ClientRecord(id=INITECH_DELETED, company_name="Initech", deleted=True),
    ]


@pytest.fixture
def registry(client_records):
    """In-memory client registry."""
    return FakeRegistry(client_records)


@pytest.fixture
def calendar_rows():
    """Calendar entries referencing clients by id, by name, and by stray values."""
    return [
        {"id": "e1", "date": "2024-03-05", "client": ACME_1, "post_type": "post"},
        {"id": "e2", "date": "2024-03-01", "client": ACME_2, "post_type": "story"},
        {"id": "e3", "date": "2024-03-03", "client": "ACME CO", "post_type": "reel"},
        {"id": "e4", "date": "2024-03-02", "client": GLOBEX, "post_type": "post"},
        {"id": "e5", "date": "2024-03-04", "client": "Globex", "post_type": "post"},
        {"id": "e6", "date": "2024-03-06", "client": "stray-client", "post_type": "post"},
        {"id": "e7", "date": "2024-03-07", "client": ACME_DELETED, "post_type": "post"},
    ]


@pytest.fixture
def entity_store(calendar_rows):
    """In-memory entity store with calendar entries."""
    return FakeEntityStore({"calendar_entries": calendar_rows})


@pytest.fixture
def make_grant():
    """Factory for UserGrants."""
    def _make(role="CLIENT", assigned_clients=None, client_id=None, user_id=USER_ID):
        return UserGrant(
            user_id=user_id,
            role=role,
            assigned_clients=assigned_clients,
            client_id=client_id,
        )
    return _make


@pytest.fixture
def grants_for(make_grant):
    """Factory for a FakeGrants holding a single user's grant."""
    def _grants(**kwargs):
        grant = make_grant(**kwargs)
        return FakeGrants({grant.user_id: grant})
    return _grants
