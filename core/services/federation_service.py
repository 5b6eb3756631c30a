# =============================================================================
# core/services/federation_service.py - Scoped Entity Lookups
# =============================================================================
# Executes a scoped read against an entity table.
#
# Id matching is literal and name matching is case-insensitive, so one
# predicate can't mix the two. A ResolvedScope is therefore read with one
# lookup per non-empty subset (by_id, by_name, by_raw_fallback). The lookups
# are independent and run concurrently; results are joined and merged.
#
# Failure semantics:
# - one subset fails      -> rows from the others, partial=True
# - deadline exceeded     -> FederationTimeoutError, no rows
# - ResolutionFailure in  -> its error is raised (fail closed)
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

from app.config import settings
from app.exceptions import EntityLookupFailedError, FederationTimeoutError
from core.models.entity import EntityType, QueryFilters, get_entity_type
from core.models.scope import (
    EmptyScope,
    FederatedResult,
    ResolutionFailure,
    ResolvedScope,
    Scope,
    ScopeSubset,
    Unrestricted,
)
from core.services.interfaces import EntityStore
from core.services.result_merger import merge_for

logger = logging.getLogger(__name__)


class EntityQueryFederator:
    """
    Fans a scoped read out into per-representation lookups and merges them.

    Example:
        federator = EntityQueryFederator(SupabaseClient)
        result = federator.fetch("calendar_entries", scope,
                                 QueryFilters.between("date", start, end))
        if result.partial:
            logger.warning(f"Missing subsets: {result.failed_subsets}")
    """

    def __init__(
        self,
        store: EntityStore,
        max_workers: int | None = None,
        timeout: float | None = None,
    ):
        self.store = store
        self.max_workers = max_workers or settings.FEDERATION_MAX_WORKERS
        self.timeout = timeout if timeout is not None else settings.FEDERATION_TIMEOUT_SECONDS

    def fetch(
        self,
        entity_type: str | EntityType,
        scope: Scope,
        filters: QueryFilters | None = None,
    ) -> FederatedResult:
        """
        Read the rows of `entity_type` visible under `scope`.

        Args:
            entity_type: Registered entity type or its name
            scope: Output of AccessScopeService.resolve_scope()
            filters: Range/equality filters applied to every lookup

        Returns:
            FederatedResult with merged rows and partial-failure info

        Raises:
            UnknownEntityTypeError: If the entity type isn't registered
            FederationTimeoutError: If the lookups miss the deadline
            EntityLookupFailedError: If an unrestricted read fails
            ClientScopeException: The wrapped error of a ResolutionFailure
        """
        entity = get_entity_type(entity_type)
        filters = filters or QueryFilters()

        if isinstance(scope, ResolutionFailure):
            logger.warning(f"Refusing {entity.name} read for unresolved scope: {scope.error.code}")
            scope.raise_error()

        if isinstance(scope, EmptyScope):
            logger.debug(f"Empty scope ({scope.reason}); skipping {entity.name} read")
            return FederatedResult()

        if isinstance(scope, Unrestricted):
            return self._fetch_unrestricted(entity, filters)

        if isinstance(scope, ResolvedScope):
            return self._fetch_resolved(entity, scope, filters)

        raise TypeError(f"Unsupported scope type: {type(scope).__name__}")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _fetch_unrestricted(self, entity: EntityType, filters: QueryFilters) -> FederatedResult:
        outcomes = self._run(entity, {"unrestricted": lambda: self.store.query_all(entity, filters)})
        rows, error = outcomes["unrestricted"]
        if error is not None:
            raise EntityLookupFailedError(entity.name, str(error)) from error
        return FederatedResult(rows=merge_for(entity, [rows]))

    def _fetch_resolved(
        self,
        entity: EntityType,
        scope: ResolvedScope,
        filters: QueryFilters,
    ) -> FederatedResult:
        subsets = scope.subsets()
        if not subsets:
            return FederatedResult()

        def lookup(subset: ScopeSubset, values: frozenset[str]) -> Callable[[], list[dict[str, Any]]]:
            return lambda: self.store.query_by_client_field(
                entity, values, filters, match=subset.match_mode
            )

        jobs = {subset.value: lookup(subset, values) for subset, values in subsets.items()}
        outcomes = self._run(entity, jobs)

        result = FederatedResult(attempted_subsets=list(subsets))
        row_lists = []
        for subset in subsets:
            rows, error = outcomes[subset.value]
            if error is not None:
                result.partial = True
                result.failed_subsets.append(subset)
                result.errors[subset.value] = str(error)
                logger.error(f"{entity.name} lookup {subset.value} failed: {error}")
                continue
            logger.debug(f"{entity.name} lookup {subset.value}: {len(rows)} rows")
            row_lists.append(rows)

        result.rows = merge_for(entity, row_lists)
        return result

    def _run(
        self,
        entity: EntityType,
        jobs: dict[str, Callable[[], list[dict[str, Any]]]],
    ) -> dict[str, tuple[list[dict[str, Any]], BaseException | None]]:
        """
        Run lookups concurrently under the request deadline.

        Returns each job's (rows, error). A missed deadline cancels every
        outstanding lookup and raises.
        """
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(jobs)),
            thread_name_prefix="federation",
        )
        try:
            futures: dict[str, Future] = {label: executor.submit(job) for label, job in jobs.items()}
            _, not_done = wait(futures.values(), timeout=self.timeout)
            if not_done:
                pending = sorted(label for label, future in futures.items() if future in not_done)
                for future in not_done:
                    future.cancel()
                logger.error(f"{entity.name} lookups timed out after {self.timeout}s: {pending}")
                raise FederationTimeoutError(entity.name, self.timeout, pending)

            outcomes: dict[str, tuple[list[dict[str, Any]], BaseException | None]] = {}
            for label, future in futures.items():
                error = future.exception()
                outcomes[label] = ([], error) if error is not None else (future.result() or [], None)
            return outcomes
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
