"""Authorization gate: field specs, request context and the decision engine."""

from .fields import FieldKind, FieldSpec, FieldSpecError, parse_field_spec, resolve_value
from .context import BodyParseError, Identity, RequestContext
from .engine import Allow, Deny, authorize, build_decision_request, endpoint_identity, resolve_triple

__all__ = [
    "Allow",
    "BodyParseError",
    "Deny",
    "FieldKind",
    "FieldSpec",
    "FieldSpecError",
    "Identity",
    "RequestContext",
    "authorize",
    "build_decision_request",
    "endpoint_identity",
    "parse_field_spec",
    "resolve_triple",
    "resolve_value",
]
