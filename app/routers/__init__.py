# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - scope.py: The caller's resolved client scope and single-reference checks
# - entities.py: Client-scoped reads of calendar entries, artworks, etc.
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import scope
from . import entities

__all__ = [
    "health",
    "scope",
    "entities",
]
