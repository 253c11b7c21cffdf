"""RFC 7807 problem responses for gateway rejections."""

from __future__ import annotations

from http import HTTPStatus

from fastapi import Request
from fastapi.responses import JSONResponse

PROBLEM_CONTENT_TYPE = "application/problem+json"


def problem_response(
    request: Request,
    status_code: int,
    detail: str | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    body = {
        "type": f"https://httpproblems.com/http-status/{status_code}",
        "title": HTTPStatus(status_code).phrase,
        "status": status_code,
        "instance": request.url.path,
    }
    if detail:
        body["detail"] = detail
    if request_id:
        body["trace"] = {"requestId": request_id}
    return JSONResponse(content=body, status_code=status_code, media_type=PROBLEM_CONTENT_TYPE)


def unauthorized(request: Request, **kwargs) -> JSONResponse:
    return problem_response(request, 401, **kwargs)


def forbidden(request: Request, **kwargs) -> JSONResponse:
    return problem_response(request, 403, **kwargs)
