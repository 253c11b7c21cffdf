"""ReBAC authorization check against the remote authorizer.

Pipeline per request:
    identity present? -> resolve (object_type, object_id, relation)
    -> POST decision request -> decisions[0].is -> allow / deny

Every failure path denies. Nothing is cached between calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from ..observability.tracing import end_span, start_span
from ..utils.logging_config import StructuredLogger
from .context import BodyParseError, RequestContext
from .decision import (
    DecisionRequest,
    DecisionResponse,
    IdentityContext,
    PolicyInstance,
    ResourceTriple,
)
from .fields import resolve_value

if TYPE_CHECKING:
    from ..utils.config_loader import PolicyConfig

logger = StructuredLogger(__name__)

DEFAULT_OBJECT_TYPE = "endpoint"
DEFAULT_RELATION = "can_invoke"
TENANT_HEADER = "Aserto-Tenant-ID"

REASON_UNAUTHENTICATED = "unauthenticated"
REASON_BODY_PARSE = "body-parse-failure"
REASON_AUTHORIZER_ERROR = "authorization-error"
REASON_NOT_AUTHORIZED = "not-authorized"


class AuthorizerError(Exception):
    """The authorizer call failed or returned something unusable."""


@dataclass(frozen=True)
class Allow:
    request: Any = None
    triple: ResourceTriple | None = None


@dataclass(frozen=True)
class Deny:
    reason: str
    status_code: int = 403
    triple: ResourceTriple | None = None


def endpoint_identity(service_name: str, method: str, route_path: str) -> str:
    return f"{service_name}:{method.upper()}:{route_path}"


async def resolve_triple(ctx: RequestContext, config: PolicyConfig) -> ResourceTriple:
    """Resolve the three fields, substituting defaults for absent values.

    Raises BodyParseError when a body reference is configured and the body
    is not JSON.
    """
    object_type = await resolve_value(ctx, config.object_type)
    object_id = await resolve_value(ctx, config.object_id)
    relation = await resolve_value(ctx, config.relation)
    return ResourceTriple(
        object_type=object_type or DEFAULT_OBJECT_TYPE,
        object_id=object_id or endpoint_identity(config.service_name, ctx.method, ctx.route_path),
        relation=relation or DEFAULT_RELATION,
    )


def build_decision_request(subject: str, triple: ResourceTriple, config: PolicyConfig) -> DecisionRequest:
    return DecisionRequest(
        identity_context=IdentityContext(identity=subject),
        resource_context=triple,
        policy_instance=PolicyInstance(name=config.policy_name, instance_label=config.policy_name),
    )


def _authorizer_headers(config: PolicyConfig) -> dict[str, str]:
    return {
        "content-type": "application/json",
        TENANT_HEADER: config.tenant_id,
        "Authorization": f"basic {config.authorizer_api_key.get_secret_value()}",
    }


async def query_authorizer(
    client: httpx.AsyncClient,
    url: str,
    payload: DecisionRequest,
    config: PolicyConfig,
) -> DecisionResponse:
    try:
        response = await client.post(
            url,
            content=payload.model_dump_json(),
            headers=_authorizer_headers(config),
        )
    except httpx.HTTPError as exc:
        raise AuthorizerError(f"Authorizer unreachable: {exc.__class__.__name__}") from exc

    if not response.is_success:
        raise AuthorizerError(f"Authorizer returned HTTP {response.status_code}")

    try:
        return DecisionResponse.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise AuthorizerError("Authorizer response is not a decision document") from exc


async def authorize(
    ctx: RequestContext,
    config: PolicyConfig,
    client: httpx.AsyncClient,
    *,
    url: str,
    request: Any = None,
) -> Allow | Deny:
    """Decide whether the request may proceed.

    Returns ``Allow(request)`` with the caller's request untouched, or a
    ``Deny`` carrying the reason and the HTTP status the host should render.
    """
    if ctx.identity is None:
        logger.error(
            "User is not authenticated; an authentication step must run before authorization",
            method=ctx.method,
            route=ctx.route_path,
        )
        return Deny(reason=REASON_UNAUTHENTICATED, status_code=401)

    subject = ctx.identity.sub

    try:
        triple = await resolve_triple(ctx, config)
    except BodyParseError as exc:
        logger.error(
            "Authorization denied: request body could not be parsed",
            sub=subject,
            method=ctx.method,
            route=ctx.route_path,
            error=str(exc),
        )
        return Deny(reason=REASON_BODY_PARSE)

    payload = build_decision_request(subject, triple, config)
    logger.debug("rebac.check request", payload=payload.model_dump())

    span = start_span(ctx.request_id, "authorizer.check", sub=subject, **triple.model_dump())
    try:
        decision = await query_authorizer(client, url, payload, config)
    except Exception as exc:
        end_span(span, outcome="error")
        logger.error(
            "Authorization error; denying request",
            sub=subject,
            triple=triple.model_dump(),
            error=str(exc),
        )
        return Deny(reason=REASON_AUTHORIZER_ERROR, triple=triple)
    end_span(span, outcome="allowed" if decision.allowed else "denied")

    logger.debug("rebac.check response", decisions=[d.model_dump(by_alias=True) for d in decision.decisions])

    if decision.allowed:
        return Allow(request=request, triple=triple)

    logger.error(
        "User is not authorized to perform this action",
        sub=subject,
        triple=triple.model_dump(),
    )
    return Deny(reason=REASON_NOT_AUTHORIZED, triple=triple)
