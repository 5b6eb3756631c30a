# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed Supabase wrapper for registry, grant and entity reads
# - identifiers.py: Client grant normalizer
# - utils.py: Shared utilities (error base class, UUID and name normalization)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.identifiers import collect_grant_identifiers, normalize_identifiers
from lib.utils import ApplicationError, normalize_name, normalize_uuid

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Identifiers
    "collect_grant_identifiers",
    "normalize_identifiers",
    # Utils
    "ApplicationError",
    "normalize_name",
    "normalize_uuid",
]
