# =============================================================================
# core/services/access_scope_service.py - Role-Scoped Access Computation
# =============================================================================
# Turns a user into the set(s) of client reference values their queries may
# match, applying the role policy:
#
#   IT_ADMIN                 -> Unrestricted
#   AGENCY_ADMIN / DESIGNER  -> ResolvedScope from assigned_clients
#   CLIENT                   -> ResolvedScope from assigned_clients + client_id
#   unknown role             -> EmptyScope
#
# A restricted user with nothing to filter by gets EmptyScope, never
# Unrestricted. Lookup failures become ResolutionFailure (fail closed).
# =============================================================================

from __future__ import annotations

import logging
import re
from uuid import UUID

from app.exceptions import (
    ClientScopeException,
    GrantLookupFailedError,
    UserNotFoundError,
)
from core.models.client import UserGrant
from core.models.scope import (
    DirectoryResolution,
    EmptyScope,
    ResolutionFailure,
    ResolvedScope,
    Scope,
    ScopeSubset,
    Unrestricted,
)
from core.services.client_directory import ClientDirectory, RequestCache
from core.services.interfaces import ClientRegistry, GrantAccessor
from lib.identifiers import collect_grant_identifiers
from lib.utils import normalize_name, normalize_uuid

logger = logging.getLogger(__name__)


def build_scope(
    resolution: DirectoryResolution,
    role: str | None = None,
) -> ResolvedScope | EmptyScope:
    """
    Split a directory resolution into three disjoint query subsets.

    by_id gets every resolved id, by_name every canonical name not already
    an id, and by_raw_fallback every unresolved value not covered by the
    other two. Values naming only deleted clients go in none of them.
    Every other raw grant value is recorded in `provenance`.

    Returns:
        ResolvedScope, or EmptyScope when all three subsets are empty
    """
    by_id = frozenset(resolution.resolved_ids)
    by_name = frozenset(resolution.resolved_names) - by_id
    by_raw_fallback = frozenset(resolution.unresolved) - by_id - by_name

    if not (by_id or by_name or by_raw_fallback):
        if resolution.tombstoned:
            return EmptyScope(reason="grant names only deleted clients", role=role)
        return EmptyScope(reason="grant resolved to no client references", role=role)

    name_keys = {normalize_name(name) for name in by_name}
    provenance: dict[str, ScopeSubset] = {}
    for raw in resolution.matched_by:
        # Name-path matches are covered by their class name; id hits by their id
        if normalize_name(raw) in name_keys:
            provenance[raw] = ScopeSubset.BY_NAME
        else:
            provenance[raw] = ScopeSubset.BY_ID
    for raw in resolution.unresolved:
        if raw in by_id:
            provenance[raw] = ScopeSubset.BY_ID
        elif raw in by_name:
            provenance[raw] = ScopeSubset.BY_NAME
        else:
            provenance[raw] = ScopeSubset.BY_RAW_FALLBACK

    return ResolvedScope(
        by_id=by_id,
        by_name=by_name,
        by_raw_fallback=by_raw_fallback,
        provenance=provenance,
        resolution=resolution,
        role=role,
    )


class AccessScopeService:
    """
    Computes a user's Scope for the current request.

    One instance serves one request: it owns that request's RequestCache.

    Example:
        service = AccessScopeService(SupabaseClient, SupabaseClient)
        scope = service.resolve_scope(user.id)
        if isinstance(scope, ResolutionFailure):
            scope.raise_error()
    """

    def __init__(
        self,
        grants: GrantAccessor,
        registry: ClientRegistry,
        cache: RequestCache | None = None,
        id_pattern: re.Pattern[str] | str | None = None,
    ):
        self.grants = grants
        self.cache = cache or RequestCache(registry)
        self.directory = ClientDirectory(self.cache, id_pattern=id_pattern)

    def resolve_scope(self, user_id: str | UUID) -> Scope:
        """
        Resolve the scope of a user by id.

        Returns:
            Unrestricted, EmptyScope, ResolvedScope, or ResolutionFailure
            (missing user, unreadable grant, unreachable registry)
        """
        user_id_str = normalize_uuid(user_id)

        try:
            grant = self.grants.get_grant(user_id_str)
        except Exception as e:
            logger.error(f"Failed to read grant for user {user_id_str}: {e}")
            return ResolutionFailure(GrantLookupFailedError(user_id_str, str(e)))

        if grant is None:
            logger.warning(f"No user row for {user_id_str}")
            return ResolutionFailure(UserNotFoundError(user_id_str))

        return self.compute_scope(grant)

    def compute_scope(self, grant: UserGrant) -> Scope:
        """
        Apply the role policy to a grant already in hand.

        Never raises for malformed grant data; only registry I/O failures
        turn into ResolutionFailure.
        """
        role = grant.parsed_role

        if role is None:
            logger.warning(f"User {grant.user_id} has unrecognized role {grant.role!r}; granting nothing")
            return EmptyScope(reason=f"unrecognized role {grant.role!r}", role=grant.role)

        if role.is_unrestricted:
            return Unrestricted(role=role.value)

        identifiers = collect_grant_identifiers(grant)
        if not identifiers:
            logger.warning(f"{role.value} user {grant.user_id} has no assigned clients")
            return EmptyScope(reason="no assigned clients", role=role.value)

        try:
            resolution = self.directory.resolve(identifiers)
        except ClientScopeException as e:
            return ResolutionFailure(e)

        scope = build_scope(resolution, role=role.value)
        if isinstance(scope, ResolvedScope):
            logger.debug(
                f"{role.value} user {grant.user_id} scope: {len(scope.by_id)} ids, "
                f"{len(scope.by_name)} names, {len(scope.by_raw_fallback)} raw"
            )
        return scope
