"""Consumer authentication package: hashing and request identity.

Re-exports public API so consumers can use:
    from .auth import hash_key, get_identity
"""

from .hashing import hash_key, key_matches
from .middleware import authenticate_key, extract_api_key, get_identity

__all__ = [
    "hash_key",
    "key_matches",
    "authenticate_key",
    "extract_api_key",
    "get_identity",
]
