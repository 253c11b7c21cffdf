"""Resource-triple field specs and their per-request resolution.

A field spec is one of:

    "literal"          passed through unchanged
    "$header(NAME)"    value of request header NAME (case-insensitive)
    "$param(NAME)"     value of path parameter NAME
    "$body(a.b.c)"     value at a.b.c in the JSON request body

Specs are parsed once when configuration is loaded. Resolution yields
``None`` whenever no usable value exists so callers can apply defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Sequence

if TYPE_CHECKING:
    from .context import RequestContext


class FieldSpecError(ValueError):
    """Raised when a configured field spec cannot be parsed."""


class FieldKind(str, Enum):
    LITERAL = "literal"
    HEADER = "header"
    PARAM = "param"
    BODY = "body"


_PREFIXES = (
    ("$header(", FieldKind.HEADER),
    ("$param(", FieldKind.PARAM),
    ("$body(", FieldKind.BODY),
)


@dataclass(frozen=True)
class FieldSpec:
    kind: FieldKind
    value: str
    path: tuple[str, ...] = ()

    def __str__(self) -> str:
        if self.kind is FieldKind.LITERAL:
            return self.value
        return f"${self.kind.value}({self.value})"


def parse_field_spec(raw: str | None) -> FieldSpec | None:
    """Parse a configured spec string; empty input means "not configured"."""
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise FieldSpecError(f"Field spec must be a string, got {type(raw).__name__}")
    if not raw.strip():
        return None

    for prefix, kind in _PREFIXES:
        if not raw.startswith(prefix):
            continue
        if not raw.endswith(")"):
            raise FieldSpecError(f"Unterminated field reference: {raw!r}")
        name = raw[len(prefix):-1].strip()
        if not name:
            raise FieldSpecError(f"Empty name in field reference: {raw!r}")
        if kind is not FieldKind.BODY:
            return FieldSpec(kind=kind, value=name)
        path = tuple(part.strip() for part in name.split("."))
        if any(not part for part in path):
            raise FieldSpecError(f"Empty path component in body reference: {raw!r}")
        return FieldSpec(kind=kind, value=name, path=path)

    return FieldSpec(kind=FieldKind.LITERAL, value=raw)


def walk_json(node: Any, path: Sequence[str]) -> Any | None:
    """Follow ``path`` through a parsed JSON document.

    Mappings are indexed by key and sequences by non-negative decimal index.
    A missing key, an out-of-range index, or a scalar in the middle of the
    path all yield ``None``.
    """
    for component in path:
        if isinstance(node, Mapping):
            if component not in node:
                return None
            node = node[component]
        elif isinstance(node, list):
            if not component.isdigit():
                return None
            index = int(component)
            if index >= len(node):
                return None
            node = node[index]
        else:
            return None
    return node


def _to_field_value(value: Any) -> str | None:
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value or None
    if isinstance(value, (int, float)):
        return str(value)
    return None


async def resolve_value(ctx: RequestContext, spec: FieldSpec | None) -> str | None:
    """Resolve ``spec`` against the request.

    Body parsing errors propagate as ``BodyParseError``; the caller decides
    how to fail.
    """
    if spec is None:
        return None
    if spec.kind is FieldKind.LITERAL:
        return spec.value
    if spec.kind is FieldKind.HEADER:
        return _to_field_value(ctx.header(spec.value))
    if spec.kind is FieldKind.PARAM:
        return _to_field_value(ctx.params.get(spec.value))

    document = await ctx.json()
    return _to_field_value(walk_json(document, spec.path))
