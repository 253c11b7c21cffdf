"""Per-request view handed to the authorization gate."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

from fastapi import Request


class BodyParseError(Exception):
    """The request body was required as JSON but could not be parsed."""


@dataclass(frozen=True)
class Identity:
    sub: str
    claims: Mapping[str, Any] = field(default_factory=dict)


BodyLoader = Callable[[], Awaitable[bytes]]


async def _empty_body() -> bytes:
    return b""


class RequestContext:
    """Read-only request data: method, matched route, headers, params, body.

    The body is loaded and parsed lazily, at most once. A parse failure is
    cached too, so every field that references the body sees the same error.
    """

    def __init__(
        self,
        *,
        method: str,
        route_path: str,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        identity: Identity | None = None,
        body_loader: BodyLoader = _empty_body,
        request_id: str | None = None,
    ):
        self.method = method.upper()
        self.route_path = route_path
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.params = dict(params or {})
        self.identity = identity
        self.request_id = request_id or self.headers.get("x-request-id") or uuid.uuid4().hex
        self._body_loader = body_loader
        self._parsed = False
        self._document: Any = None
        self._error: BodyParseError | None = None

    @classmethod
    def from_request(
        cls,
        request: Request,
        *,
        route_path: str,
        params: Mapping[str, str],
        identity: Identity | None,
    ) -> "RequestContext":
        return cls(
            method=request.method,
            route_path=route_path,
            headers=request.headers,
            params=params,
            identity=identity,
            body_loader=request.body,
        )

    @classmethod
    def from_json_body(cls, body: Any, **kwargs) -> "RequestContext":
        """Build a context whose body is ``body`` serialized as JSON."""
        raw = json.dumps(body).encode("utf-8")

        async def _load() -> bytes:
            return raw

        return cls(body_loader=_load, **kwargs)

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    async def json(self) -> Any:
        if not self._parsed:
            self._parsed = True
            try:
                raw = await self._body_loader()
            except Exception as exc:
                raw = None
                self._error = BodyParseError(f"Request body could not be read: {exc}")
            if raw is not None:
                if not raw:
                    self._error = BodyParseError("Request body is empty")
                else:
                    try:
                        self._document = json.loads(raw)
                    except (ValueError, UnicodeDecodeError) as exc:
                        self._error = BodyParseError(f"Request body is not valid JSON: {exc}")
        if self._error is not None:
            raise self._error
        return self._document
