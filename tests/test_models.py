# =============================================================================
# tests/test_models.py - Model Tests
# =============================================================================
# Unit tests for core/models:
# - role parsing and the unrestricted role
# - registry and grant rows parsed from the database
# - entity type registry and query filters
# - scope and federation result types
#
# Run with: pytest tests/test_models.py -v
# =============================================================================

import pytest
from pydantic import ValidationError

from app.exceptions import UnknownEntityTypeError
from core.models import (
    ENTITY_TYPES,
    ClientRecord,
    DirectoryResolution,
    EmptyScope,
    FederatedResult,
    MatchMode,
    QueryFilters,
    ResolvedScope,
    ScopeSubset,
    Unrestricted,
    UserGrant,
    UserRole,
    get_entity_type,
)


# =============================================================================
# Client Model Tests
# =============================================================================

class TestUserRole:
    """Tests for UserRole."""

    @pytest.mark.parametrize("value,expected", [
        ("IT_ADMIN", UserRole.IT_ADMIN),
        (" designer ", UserRole.DESIGNER),
        ("client", UserRole.CLIENT),
        (UserRole.AGENCY_ADMIN, UserRole.AGENCY_ADMIN),
    ])
    def test_parse(self, value, expected):
        assert UserRole.parse(value) is expected

    @pytest.mark.parametrize("value", ["ROOT", "", None, 3])
    def test_parse_unknown(self, value):
        assert UserRole.parse(value) is None

    def test_only_it_admin_is_unrestricted(self):
        assert [role for role in UserRole if role.is_unrestricted] == [UserRole.IT_ADMIN]


class TestClientRecord:
    """Tests for ClientRecord."""

    def test_from_db_row(self):
        record = ClientRecord.from_db_row({"id": 7, "company_name": "Acme Co", "deleted_at": None})

        assert record.id == "7"
        assert record.company_name == "Acme Co"
        assert not record.deleted

    def test_deleted_at_marks_tombstone(self):
        record = ClientRecord.from_db_row({"id": "x", "company_name": "A", "deleted_at": "2024-01-01"})
        assert record.deleted

    def test_null_company_name(self):
        assert ClientRecord.from_db_row({"id": "x", "company_name": None}).company_name == ""

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            ClientRecord(id="", company_name="Acme Co")

    def test_frozen(self):
        record = ClientRecord(id="x", company_name="Acme Co")
        with pytest.raises(ValidationError):
            record.company_name = "Other"


class TestUserGrant:
    """Tests for UserGrant."""

    def test_from_db_row_keeps_raw_grant(self):
        grant = UserGrant.from_db_row("u1", {"role": "CLIENT", "assigned_clients": "a, b", "client_id": 5})

        assert grant.assigned_clients == "a, b"
        assert grant.client_id == "5"
        assert grant.parsed_role is UserRole.CLIENT

    def test_missing_columns(self):
        grant = UserGrant.from_db_row("u1", {})

        assert grant.role is None
        assert grant.parsed_role is None
        assert grant.client_id is None


# =============================================================================
# Entity Model Tests
# =============================================================================

class TestEntityTypes:
    """Tests for the entity type registry."""

    def test_registered_types(self):
        assert set(ENTITY_TYPES) == {"calendar_entries", "artworks", "social_campaigns", "monthly_analytics"}

    def test_calendar_entries(self):
        calendar = get_entity_type("calendar_entries")

        assert calendar.client_field == "client"
        assert calendar.ordering_key == "date"
        assert calendar.primary_key == "id"

    def test_social_campaigns_table_name(self):
        assert get_entity_type("social_campaigns").table == "social_media_campaigns"

    def test_soft_delete_columns(self):
        assert get_entity_type("artworks").soft_delete_column == "deleted_at"
        assert get_entity_type("social_campaigns").soft_delete_column == "deleted_at"
        assert get_entity_type("calendar_entries").soft_delete_column is None
        assert get_entity_type("monthly_analytics").soft_delete_column is None

    def test_passes_through_entity_type(self):
        calendar = get_entity_type("calendar_entries")
        assert get_entity_type(calendar) is calendar

    def test_unknown_type(self):
        with pytest.raises(UnknownEntityTypeError) as exc_info:
            get_entity_type("invoices")

        assert exc_info.value.status_code == 404
        assert "calendar_entries" in exc_info.value.details["known_types"]


class TestQueryFilters:
    """Tests for QueryFilters."""

    def test_between_without_bounds_is_empty(self):
        assert QueryFilters.between("date").is_empty

    def test_between_one_bound(self):
        assert QueryFilters.between("date", start="2024-01-01").ranges == {"date": ("2024-01-01", None)}

    def test_where_ignores_none_and_copies(self):
        base = QueryFilters.between("date", "2024-01-01", "2024-01-31")
        filtered = base.where(post_type="post", approval_status=None)

        assert filtered.equals == {"post_type": "post"}
        assert base.equals == {}

    def test_describe(self):
        filters = QueryFilters.between("date", "a", "b").where(x=1)
        assert filters.describe() == {"ranges": {"date": ["a", "b"]}, "equals": {"x": 1}}


# =============================================================================
# Scope Model Tests
# =============================================================================

class TestScopeModels:
    """Tests for the scope result types."""

    def test_kinds(self):
        assert Unrestricted.kind == "unrestricted"
        assert EmptyScope.kind == "empty"
        assert ResolvedScope.kind == "resolved"

    def test_subset_match_modes(self):
        assert ScopeSubset.BY_ID.match_mode is MatchMode.EXACT
        assert ScopeSubset.BY_NAME.match_mode is MatchMode.NAME
        assert ScopeSubset.BY_RAW_FALLBACK.match_mode is MatchMode.EXACT

    def test_resolved_scope_all_values(self):
        scope = ResolvedScope(by_id=frozenset({"a"}), by_name=frozenset({"B"}), by_raw_fallback=frozenset({"c"}))

        assert scope.all_values() == {"a", "B", "c"}
        assert not scope.is_empty

    def test_directory_resolution_active_ids(self):
        resolution = DirectoryResolution(
            resolved_ids=frozenset({"a", "b"}),
            deleted_ids=frozenset({"b"}),
            names_by_id={"a": "Acme Co"},
        )

        assert resolution.active_ids() == {"a"}
        assert resolution.name_for("a") == "Acme Co"
        assert resolution.name_for("zzz") is None

    def test_federated_result_flags(self):
        result = FederatedResult(
            attempted_subsets=[ScopeSubset.BY_ID, ScopeSubset.BY_NAME],
            failed_subsets=[ScopeSubset.BY_NAME],
            partial=True,
        )

        assert not result.all_failed
        assert result.count == 0
        assert not FederatedResult().all_failed
