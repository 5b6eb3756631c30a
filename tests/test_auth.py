# =============================================================================
# tests/test_auth.py - Authentication Tests
# =============================================================================
# Tests for app/auth/dependencies.py with real token verification:
# - valid, expired, tampered and malformed tokens
# - tokens signed with an empty key never authenticate
# - signing key selection (HS256 secret vs JWKS)
# =============================================================================

import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from jose import JWTError, jwt

from app.auth import dependencies as auth_dependencies
from app.config import settings
from app.dependencies import get_scoped_query_service
from app.main import app
from core.services.scoped_query_service import ScopedQueryService
from tests.conftest import USER_ID
from tests.fakes import FakeGrants

ENTITIES_URL = "/api/v1/entities/calendar_entries"


def make_token(key=None, sub=USER_ID, expires_in=3600, **claims):
    """HS256 token with Supabase's audience."""
    payload = {
        "sub": sub,
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
        "email": "user@example.com",
        **claims,
    }
    if key is None:
        key = settings.SUPABASE_JWT_SECRET
    return jwt.encode(payload, key, algorithm="HS256")


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(registry, entity_store, make_grant):
    """TestClient with real auth; the caller is an IT_ADMIN."""
    grants = FakeGrants({USER_ID: make_grant(role="IT_ADMIN")})
    app.dependency_overrides[get_scoped_query_service] = lambda: ScopedQueryService(
        grants, registry, entity_store, timeout=5
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# Token Verification Tests
# =============================================================================

class TestTokenVerification:
    """Tests for get_current_user through a protected route."""

    def test_valid_token(self, client):
        response = client.get(ENTITIES_URL, headers=bearer(make_token()))

        assert response.status_code == 200
        assert response.json()["scope_kind"] == "unrestricted"

    def test_missing_header_is_rejected(self, client):
        response = client.get(ENTITIES_URL)
        assert response.status_code in (401, 403)

    def test_expired_token(self, client):
        response = client.get(ENTITIES_URL, headers=bearer(make_token(expires_in=-60)))

        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"

    def test_wrong_secret(self, client):
        token = make_token(key="some-other-secret-of-enough-length")
        assert client.get(ENTITIES_URL, headers=bearer(token)).status_code == 401

    def test_wrong_audience(self, client):
        token = make_token(aud="anon")
        assert client.get(ENTITIES_URL, headers=bearer(token)).status_code == 401

    def test_garbage_token(self, client):
        assert client.get(ENTITIES_URL, headers=bearer("not-a-jwt")).status_code == 401

    def test_missing_sub(self, client):
        token = jwt.encode(
            {"aud": "authenticated", "exp": int(time.time()) + 60},
            settings.SUPABASE_JWT_SECRET,
            algorithm="HS256",
        )
        response = client.get(ENTITIES_URL, headers=bearer(token))

        assert response.status_code == 401
        assert "missing user ID" in response.json()["detail"]

    def test_non_uuid_sub(self, client):
        response = client.get(ENTITIES_URL, headers=bearer(make_token(sub="admin")))

        assert response.status_code == 401
        assert "malformed user ID" in response.json()["detail"]


class TestEmptyKeyTokens:
    """A token signed with an empty key must never authenticate."""

    def test_empty_key_token_rejected(self, client):
        response = client.get(ENTITIES_URL, headers=bearer(make_token(key="")))

        assert response.status_code == 401
        assert "rows" not in response.json()

    def test_empty_key_token_rejected_when_secret_blank(self, client, monkeypatch):
        """Even with no secret configured, HS256 verification refuses to run."""
        monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", "")

        response = client.get(ENTITIES_URL, headers=bearer(make_token(key="")))

        assert response.status_code == 401

    def test_blank_secret_is_invalid_config(self, monkeypatch):
        from pydantic import ValidationError

        from app.config import Settings

        monkeypatch.setenv("SUPABASE_JWT_SECRET", "short")
        with pytest.raises(ValidationError):
            Settings()


# =============================================================================
# Signing Key Selection Tests
# =============================================================================

class TestSigningKey:
    """Tests for _get_signing_key()."""

    def test_hs256_uses_secret(self):
        key, algorithm = auth_dependencies._get_signing_key(make_token())

        assert key == settings.SUPABASE_JWT_SECRET
        assert algorithm == "HS256"

    def test_blank_secret_raises(self, monkeypatch):
        monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", "   ")

        with pytest.raises(JWTError):
            auth_dependencies._get_signing_key(make_token(key="x" * 16))

    def test_jwks_key_by_kid(self):
        jwk = {"kid": "key-1", "kty": "EC", "crv": "P-256"}
        with patch.object(auth_dependencies.jwt, "get_unverified_header",
                          return_value={"alg": "ES256", "kid": "key-1"}), \
             patch.object(auth_dependencies, "_fetch_jwks", return_value={"keys": [jwk]}):
            key, algorithm = auth_dependencies._get_signing_key("token")

        assert key == jwk
        assert algorithm == "ES256"

    def test_unknown_kid_falls_back_to_secret(self):
        with patch.object(auth_dependencies.jwt, "get_unverified_header",
                          return_value={"alg": "ES256", "kid": "rotated"}), \
             patch.object(auth_dependencies, "_fetch_jwks", return_value={"keys": []}):
            key, algorithm = auth_dependencies._get_signing_key("token")

        assert key == settings.SUPABASE_JWT_SECRET
        assert algorithm == "HS256"
