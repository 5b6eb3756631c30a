# =============================================================================
# lib/identifiers.py - Client Grant Normalizer
# =============================================================================
# A user's grant of visible clients is stored inconsistently:
# - a list of identifiers:      ["550e8400-...", "Acme Co"]
# - a comma-joined string:      "550e8400-..., Acme Co"
# - a single legacy identifier: "550e8400-..."
# - nothing at all:             None
#
# This module erases that inconsistency before anything else sees the grant.
# It never raises: loosely validated upstream data degrades to an empty or
# partial set instead.
#
# Usage:
#   from lib.identifiers import normalize_identifiers
#   normalize_identifiers(" c1, c2,,c1 ")  # frozenset({"c1", "c2"})
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from core.models.client import UserGrant, UserRole

logger = logging.getLogger(__name__)


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(",")]


def normalize_identifiers(value: Any) -> frozenset[str]:
    """
    Normalize a raw grant value into a set of trimmed, non-empty strings.

    Args:
        value: A sequence of strings, a comma-separated string, a single
            string, or None

    Returns:
        Frozen set of identifiers. Empty for None or unusable input.

    Example:
        normalize_identifiers(["a", " b ", ""])  # {"a", "b"}
        normalize_identifiers("a,b , ,a")        # {"a", "b"}
        normalize_identifiers(None)              # set()
    """
    if value is None:
        return frozenset()

    if isinstance(value, str):
        parts = _split(value)
    elif isinstance(value, Iterable) and not isinstance(value, (bytes, dict)):
        parts = []
        skipped = 0
        for element in value:
            # List elements are whole identifiers; company names may hold commas
            if isinstance(element, str):
                parts.append(element.strip())
            else:
                skipped += 1
        if skipped:
            logger.debug(f"Ignored {skipped} non-string grant element(s)")
    else:
        logger.debug(f"Ignored grant value of type {type(value).__name__}")
        return frozenset()

    return frozenset(part for part in parts if part)


def collect_grant_identifiers(grant: UserGrant) -> frozenset[str]:
    """
    Normalized identifiers of a user's grant.

    End-client logins also carry the legacy single `client_id` column,
    which is folded in. Agency roles never stored one.
    """
    identifiers = normalize_identifiers(grant.assigned_clients)
    if grant.parsed_role is UserRole.CLIENT and grant.client_id:
        identifiers = identifiers | normalize_identifiers(grant.client_id)
    return identifiers
