"""API key hashing for consumer lookup."""

import hashlib
import hmac

# Minimum key length accepted from callers: 16 bytes = 32 hex chars
_MIN_KEY_LEN = 32


def hash_key(raw_key: str) -> str:
    """SHA-256 hash a raw API key; config stores only this digest."""
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def key_matches(raw_key: str, key_hash: str) -> bool:
    return hmac.compare_digest(hash_key(raw_key), key_hash)
