"""Gateway catch-all: route match, authenticate, authorize, forward upstream."""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Request, Response

from ..auth import get_identity
from ..control import RoutePlan, resolve_route
from ..policy import Deny, RequestContext, authorize
from ..utils.config_loader import HTTP_METHODS, config_loader
from ..utils.logging_config import StructuredLogger
from .lifecycle import get_http_client
from .problems import forbidden, problem_response, unauthorized

logger = StructuredLogger(__name__)
router = APIRouter()

# Hop-by-hop headers plus the ones the gateway owns
_DROP_REQUEST_HEADERS = {
    "authorization",
    "connection",
    "content-length",
    "host",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
}
_DROP_RESPONSE_HEADERS = {
    "connection",
    "content-encoding",
    "content-length",
    "keep-alive",
    "transfer-encoding",
}


def _upstream_url(plan: RoutePlan, request: Request) -> str:
    url = plan.route.upstream.rstrip("/") + request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


def _forward_headers(request: Request, request_id: str) -> dict[str, str]:
    headers = {k: v for k, v in request.headers.items() if k.lower() not in _DROP_REQUEST_HEADERS}
    headers["x-request-id"] = request_id
    return headers


async def forward_upstream(
    request: Request,
    plan: RoutePlan,
    client: httpx.AsyncClient,
    request_id: str,
) -> Response:
    target_url = _upstream_url(plan, request)
    body = await request.body()
    try:
        upstream = await client.request(
            request.method,
            target_url,
            content=body or None,
            headers=_forward_headers(request, request_id),
        )
    except httpx.HTTPError as e:
        logger.error("Upstream error", route=plan.route_path, error=str(e), request_id=request_id)
        return problem_response(request, 502, detail="Upstream service error", request_id=request_id)

    if upstream.status_code >= 500:
        logger.warning(
            "Upstream request failed",
            route=plan.route_path,
            status_code=upstream.status_code,
            request_id=request_id,
        )

    headers = {k: v for k, v in upstream.headers.items() if k.lower() not in _DROP_RESPONSE_HEADERS}
    return Response(content=upstream.content, status_code=upstream.status_code, headers=headers)


def _deny_response(request: Request, outcome: Deny, request_id: str) -> Response:
    if outcome.status_code == 401:
        return unauthorized(request, request_id=request_id)
    return forbidden(request, request_id=request_id)


@router.api_route("/{full_path:path}", methods=list(HTTP_METHODS), include_in_schema=False)
async def gateway(request: Request, full_path: str):
    try:
        config = config_loader.get_config()
    except (FileNotFoundError, ValueError) as e:
        logger.error("Gateway has no usable configuration", error=str(e))
        return problem_response(request, 503, detail="Gateway not configured")

    plan, error = resolve_route(config, request.method, request.url.path)
    if plan is None:
        status_code = 405 if error and error.startswith("Method") else 404
        return problem_response(request, status_code, detail=error)

    identity = get_identity(request, config.consumers)
    ctx = RequestContext.from_request(
        request,
        route_path=plan.route_path,
        params=plan.params,
        identity=identity,
    )

    client = await get_http_client()
    outcome = await authorize(ctx, plan.policy, client, url=config.authorizer.url, request=request)
    if isinstance(outcome, Deny):
        return _deny_response(request, outcome, ctx.request_id)

    logger.info(
        "Request authorized",
        sub=identity.sub,
        route=plan.route_path,
        method=ctx.method,
        request_id=ctx.request_id,
    )
    return await forward_upstream(outcome.request, plan, client, ctx.request_id)
