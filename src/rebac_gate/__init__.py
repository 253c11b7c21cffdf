"""rebac-gate - relationship-based authorization gate for API gateways."""

__version__ = "0.3.0"

from .daemon.policy import (  # noqa: E402
    Allow,
    Deny,
    FieldSpec,
    Identity,
    RequestContext,
    authorize,
    parse_field_spec,
    resolve_value,
)

__all__ = [
    "Allow",
    "Deny",
    "FieldSpec",
    "Identity",
    "RequestContext",
    "authorize",
    "parse_field_spec",
    "resolve_value",
    "__version__",
]
