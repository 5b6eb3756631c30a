# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Client Scope API:
# - test_identifiers.py: Grant normalization
# - test_client_directory.py: Id/name resolution and duplicate expansion
# - test_access_scope.py: Role policy and scope subsets
# - test_federation.py: Federated reads and result merging
# - test_scoped_query.py: The pipeline end to end
# - test_supabase_client.py: Database wrapper with a mocked client
# - test_models.py: Model parsing and validation
# - test_routes.py: HTTP endpoints
#
# Run tests with: pytest
# =============================================================================
