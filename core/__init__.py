# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains framework-agnostic business logic:
# - models/: client records, grants, entity types and scope result types
# - services/: the scope pipeline (directory, role policy, federation, merge)
#
# Code in this package should NOT import from FastAPI routers.
# Storage is reached only through core/services/interfaces.py.
# =============================================================================
