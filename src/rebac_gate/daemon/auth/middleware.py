"""Consumer authentication: bearer API key -> Identity.

This is the step that runs before authorization. It never raises; an
unauthenticated caller simply yields no identity and the gate answers 401.
"""

from __future__ import annotations

from typing import Iterable

from fastapi import Request

from ..policy.context import Identity
from ..utils.config_loader import ConsumerConfig
from ..utils.logging_config import StructuredLogger
from .hashing import _MIN_KEY_LEN, key_matches

logger = StructuredLogger(__name__)

_SCHEMES = {"bearer", "apikey"}


def extract_api_key(request: Request) -> str | None:
    header = request.headers.get("authorization")
    if not header:
        return None
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() not in _SCHEMES:
        return None
    return credentials.strip() or None


def authenticate_key(api_key: str | None, consumers: Iterable[ConsumerConfig]) -> Identity | None:
    """Match a raw API key against configured consumers.

    Authentication flow:
    1. Reject missing or short keys (insufficient entropy)
    2. Hash key and compare against each consumer's key_hash
    3. Return the consumer identity (sub + claims)
    """
    if not api_key:
        return None

    if len(api_key) < _MIN_KEY_LEN:
        logger.warning("Authentication failed: Key too short", length=len(api_key))
        return None

    for consumer in consumers:
        if key_matches(api_key, consumer.key_hash):
            claims = {"consumer": consumer.name, **consumer.claims}
            return Identity(sub=consumer.sub, claims=claims)

    logger.warning("Authentication failed: Unknown API key")
    return None


def get_identity(request: Request, consumers: Iterable[ConsumerConfig]) -> Identity | None:
    return authenticate_key(extract_api_key(request), consumers)
