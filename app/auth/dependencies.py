# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Verifies the Supabase access token sent as "Authorization: Bearer <jwt>".
#
# Supports both:
# - ES256 (Supabase JWT signing keys) via the project's JWKS endpoint
# - HS256 (legacy Supabase JWT secret)
#
# Only the signing keys are cached between requests. Nothing about the
# user's role or clients is taken from the token.
# =============================================================================

import logging
import time
from typing import Any
from uuid import UUID

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from app.auth.models import AuthUser
from app.config import settings

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor
security = HTTPBearer()

JWKS_CACHE_TTL = 3600  # 1 hour
_jwks_cache: dict[str, Any] = {}
_jwks_cache_time: float = 0


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _fetch_jwks() -> dict[str, Any]:
    """Fetch the project's public signing keys, cached for JWKS_CACHE_TTL."""
    global _jwks_cache, _jwks_cache_time

    now = time.time()
    if _jwks_cache and (now - _jwks_cache_time) < JWKS_CACHE_TTL:
        return _jwks_cache

    jwks_url = f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/.well-known/jwks.json"
    try:
        response = httpx.get(jwks_url, timeout=10)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch JWKS from {jwks_url}: {e}")
        # Stale keys beat no keys
        return _jwks_cache or {"keys": []}

    _jwks_cache = response.json()
    _jwks_cache_time = now
    logger.debug(f"Fetched JWKS from {jwks_url}")
    return _jwks_cache


def _hs256_key() -> tuple[str, str]:
    """
    The legacy HS256 secret.

    Raises:
        JWTError: If no secret is configured; a blank key would verify
            tokens signed with the empty string
    """
    secret = settings.SUPABASE_JWT_SECRET
    if not secret or not secret.strip():
        logger.error("HS256 token received but SUPABASE_JWT_SECRET is not set")
        raise JWTError("HS256 verification is not configured")
    return secret, "HS256"


def _get_signing_key(token: str) -> tuple[Any, str]:
    """
    Pick the verification key for a token.

    Returns:
        Tuple of (key, algorithm)

    Raises:
        JWTError: If the token needs the HS256 secret and none is configured
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        return _hs256_key()

    alg = header.get("alg", "HS256")
    kid = header.get("kid")

    if alg == "HS256" or not kid:
        return _hs256_key()

    for key in _fetch_jwks().get("keys", []):
        if key.get("kid") == kid:
            return key, alg

    logger.warning(f"No JWKS key for alg={alg}, kid={kid}; falling back to HS256")
    return _hs256_key()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AuthUser:
    """
    Extract and validate the user from a Supabase JWT.

    Returns:
        AuthUser: The authenticated user

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    token = credentials.credentials

    try:
        key, algorithm = _get_signing_key(token)
        payload = jwt.decode(token, key, algorithms=[algorithm], audience="authenticated")
    except ExpiredSignatureError:
        logger.warning("JWT token has expired")
        raise _unauthorized("Token has expired")
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise _unauthorized(f"Invalid token: {e}")

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("JWT token missing 'sub' claim")
        raise _unauthorized("Invalid token: missing user ID")

    try:
        user_uuid = UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid UUID in token: {user_id}")
        raise _unauthorized("Invalid token: malformed user ID")

    logger.debug(f"Authenticated user: {user_id}")
    return AuthUser(id=user_uuid, email=payload.get("email"))
