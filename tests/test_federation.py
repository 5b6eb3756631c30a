# =============================================================================
# tests/test_federation.py - Federated Read and Merge Tests
# =============================================================================
# Tests for core/services/federation_service.py and result_merger.py:
# - one lookup per non-empty subset, with the right match mode
# - partial failure and timeout semantics
# - Unrestricted / EmptyScope / ResolutionFailure handling
# - dedupe and stable ordering of merged rows
# =============================================================================

import pytest

from app.exceptions import (
    EntityLookupFailedError,
    FederationTimeoutError,
    UnknownEntityTypeError,
    UserNotFoundError,
)
from core.models.entity import MatchMode, QueryFilters, get_entity_type
from core.models.scope import (
    EmptyScope,
    ResolutionFailure,
    ResolvedScope,
    ScopeSubset,
    Unrestricted,
)
from core.services.federation_service import EntityQueryFederator
from core.services.result_merger import merge_for, merge_results
from tests.conftest import ACME_1, ACME_2, GLOBEX
from tests.fakes import FakeEntityStore


ACME_SCOPE = ResolvedScope(
    by_id=frozenset({ACME_1, ACME_2}),
    by_name=frozenset({"Acme Co"}),
    by_raw_fallback=frozenset({"stray-client"}),
)


def ids(result):
    return [row["id"] for row in result.rows]


# =============================================================================
# Subset Lookup Tests
# =============================================================================

class TestResolvedScope:
    """Tests for reads under a ResolvedScope."""

    def test_one_lookup_per_subset(self, entity_store):
        federator = EntityQueryFederator(entity_store, timeout=5)

        federator.fetch("calendar_entries", ACME_SCOPE)

        assert len(entity_store.calls) == 3
        assert {(match, values) for _, match, values in entity_store.calls} == {
            (MatchMode.EXACT, frozenset({ACME_1, ACME_2})),
            (MatchMode.NAME, frozenset({"Acme Co"})),
            (MatchMode.EXACT, frozenset({"stray-client"})),
        }

    def test_empty_subsets_are_skipped(self, entity_store):
        scope = ResolvedScope(by_id=frozenset({GLOBEX}))
        federator = EntityQueryFederator(entity_store, timeout=5)

        result = federator.fetch("calendar_entries", scope)

        assert len(entity_store.calls) == 1
        assert result.attempted_subsets == [ScopeSubset.BY_ID]
        assert ids(result) == ["e4"]

    def test_rows_are_merged_and_sorted(self, entity_store):
        federator = EntityQueryFederator(entity_store, timeout=5)

        result = federator.fetch("calendar_entries", ACME_SCOPE)

        # e2 (03-01), e3 (03-03, by name), e1 (03-05), e6 (03-06, raw)
        assert ids(result) == ["e2", "e3", "e1", "e6"]
        assert not result.partial

    def test_filters_apply_to_every_lookup(self, entity_store):
        federator = EntityQueryFederator(entity_store, timeout=5)
        filters = QueryFilters.between("date", "2024-03-02", "2024-03-05")

        result = federator.fetch("calendar_entries", ACME_SCOPE, filters)

        assert ids(result) == ["e3", "e1"]

    def test_no_rows_outside_scope(self, entity_store):
        scope = ResolvedScope(by_name=frozenset({"Globex"}))
        result = EntityQueryFederator(entity_store, timeout=5).fetch("calendar_entries", scope)

        assert ids(result) == ["e5"]

    def test_duplicate_rows_across_subsets_appear_once(self):
        row = {"id": "r1", "date": "2024-01-01", "client": "dup"}
        store = FakeEntityStore({"calendar_entries": [row]})
        scope = ResolvedScope(by_id=frozenset({"dup"}), by_raw_fallback=frozenset({"other"}))
        # Both lookups return r1 when a store matches loosely
        store.query_by_client_field = lambda *args, **kwargs: [dict(row)]

        result = EntityQueryFederator(store, timeout=5).fetch("calendar_entries", scope)

        assert ids(result) == ["r1"]


# =============================================================================
# Failure Tests
# =============================================================================

class TestFailures:
    """Tests for partial failure, total failure and timeouts."""

    def test_partial_failure_keeps_other_rows(self, calendar_rows):
        store = FakeEntityStore({"calendar_entries": calendar_rows}, fail_modes={MatchMode.NAME})

        result = EntityQueryFederator(store, timeout=5).fetch("calendar_entries", ACME_SCOPE)

        assert result.partial
        assert result.failed_subsets == [ScopeSubset.BY_NAME]
        assert "by_name" in result.errors
        assert not result.all_failed
        assert ids(result) == ["e2", "e1", "e6"]

    def test_every_subset_failing_is_reported(self, calendar_rows):
        store = FakeEntityStore({"calendar_entries": calendar_rows}, fail_all=True)

        result = EntityQueryFederator(store, timeout=5).fetch("calendar_entries", ACME_SCOPE)

        assert result.all_failed
        assert result.rows == []

    def test_timeout_raises(self, calendar_rows):
        store = FakeEntityStore({"calendar_entries": calendar_rows}, delay=0.5)
        federator = EntityQueryFederator(store, timeout=0.05)

        with pytest.raises(FederationTimeoutError) as exc_info:
            federator.fetch("calendar_entries", ACME_SCOPE)

        assert exc_info.value.status_code == 504
        assert exc_info.value.code == "FEDERATION_TIMEOUT"

    def test_unknown_entity_type(self, entity_store):
        with pytest.raises(UnknownEntityTypeError):
            EntityQueryFederator(entity_store).fetch("invoices", ACME_SCOPE)


# =============================================================================
# Other Scope Kinds
# =============================================================================

class TestOtherScopes:
    """Tests for Unrestricted, EmptyScope and ResolutionFailure."""

    def test_unrestricted_reads_everything(self, entity_store):
        result = EntityQueryFederator(entity_store, timeout=5).fetch("calendar_entries", Unrestricted())

        assert ids(result) == ["e2", "e4", "e3", "e5", "e1", "e6", "e7"]
        assert entity_store.calls == [("calendar_entries", None, frozenset())]

    def test_unrestricted_failure_raises(self, calendar_rows):
        store = FakeEntityStore({"calendar_entries": calendar_rows}, fail_all=True)

        with pytest.raises(EntityLookupFailedError):
            EntityQueryFederator(store, timeout=5).fetch("calendar_entries", Unrestricted())

    def test_empty_scope_does_no_io(self, entity_store):
        result = EntityQueryFederator(entity_store).fetch("calendar_entries", EmptyScope())

        assert result.rows == []
        assert not result.partial
        assert entity_store.calls == []

    def test_resolution_failure_raises(self, entity_store):
        scope = ResolutionFailure(UserNotFoundError("u1"))

        with pytest.raises(UserNotFoundError):
            EntityQueryFederator(entity_store).fetch("calendar_entries", scope)

        assert entity_store.calls == []


# =============================================================================
# Merger Tests
# =============================================================================

class TestMergeResults:
    """Tests for merge_results()."""

    def test_dedupes_by_primary_key(self):
        merged = merge_results(
            [
                [{"id": "b", "date": "2024-01-02"}],
                [{"id": "a", "date": "2024-01-01"}, {"id": "b", "date": "2024-01-02"}],
            ],
            "date",
        )
        assert [row["id"] for row in merged] == ["a", "b"]

    def test_ties_broken_by_primary_key(self):
        merged = merge_results(
            [[{"id": "z", "date": "2024-01-01"}], [{"id": "m", "date": "2024-01-01"}]],
            "date",
        )
        assert [row["id"] for row in merged] == ["m", "z"]

    def test_order_independent_of_input_order(self):
        lists = [
            [{"id": "1", "date": "2024-01-03"}, {"id": "2", "date": "2024-01-01"}],
            [{"id": "3", "date": "2024-01-02"}],
        ]
        forward = merge_results(lists, "date")
        backward = merge_results(list(reversed(lists)), "date")
        assert forward == backward

    def test_missing_ordering_value_sorts_first(self):
        merged = merge_results([[{"id": "1", "date": "2024-01-01"}, {"id": "2"}]], "date")
        assert [row["id"] for row in merged] == ["2", "1"]

    def test_rows_without_primary_key_are_kept(self):
        merged = merge_results([[{"date": "2024-01-01"}], [{"date": "2024-01-01"}]], "date")
        assert len(merged) == 2

    def test_merge_for_uses_entity_keys(self):
        artworks = get_entity_type("artworks")
        merged = merge_for(artworks, [[
            {"id": "a2", "created_at": "2024-02-01"},
            {"id": "a1", "created_at": "2024-01-01"},
        ]])
        assert [row["id"] for row in merged] == ["a1", "a2"]

    def test_empty_input(self):
        assert merge_results([], "date") == []
