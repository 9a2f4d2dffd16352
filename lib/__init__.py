# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - filters.py: Filter/Sort/Paginate engine - query params to ListQuery
# - tokens.py: HS256 bearer token issue/validate
# - record_store.py: Record store protocol + in-memory implementation
# - supabase_client.py: Supabase/PostgREST record store
# - passwords.py: Argon2id password hashing
# - utils.py: Shared utilities (error base class, slugs, price formatting)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.filters import FilterParseError, ListQuery, parse, parse_view
from lib.passwords import PasswordHasher
from lib.record_store import InMemoryRecordStore, RecordStore, RecordStoreError
from lib.tokens import TokenClaims, TokenService
from lib.utils import ApplicationError, format_price, slugify

__all__ = [
    # Filters
    "FilterParseError",
    "ListQuery",
    "parse",
    "parse_view",
    # Passwords
    "PasswordHasher",
    # Record Store
    "InMemoryRecordStore",
    "RecordStore",
    "RecordStoreError",
    # Tokens
    "TokenClaims",
    "TokenService",
    # Utils
    "ApplicationError",
    "format_price",
    "slugify",
]
