"""Offline dry-run: show the decision request a call would produce."""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer

from . import app, console, GATEWAY_CONFIG_FILE
from ..daemon.policy import BodyParseError, Identity, RequestContext
from ..daemon.policy.engine import build_decision_request, resolve_triple
from ..daemon.utils.config_loader import GatewayConfig, PolicyConfig, load_config_file


def _pairs(values: List[str], option: str) -> dict:
    result = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected NAME=VALUE, got {item!r}", param_hint=option)
        result[key] = value
    return result


def _policy_for_route(config: GatewayConfig, method: str, route: str) -> PolicyConfig:
    for index, candidate in enumerate(config.routes):
        if candidate.path == route and method in candidate.methods:
            return config.policy_for(index)
    return config.policy


@app.command("explain")
def explain(
    method: str = typer.Option("GET", "--method", "-m"),
    route: str = typer.Option(..., "--route", "-r", help="Route template, e.g. /items/{id}"),
    sub: str = typer.Option(..., "--sub", "-s", help="Authenticated subject"),
    header: List[str] = typer.Option([], "--header", "-H", help="NAME=VALUE, repeatable"),
    param: List[str] = typer.Option([], "--param", "-P", help="NAME=VALUE, repeatable"),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="Raw JSON request body"),
    path: Optional[Path] = typer.Option(None, "--config", "-c", help="gateway.yaml to use"),
):
    """Resolve the resource triple for a request and print the decision request.

    Nothing is sent to the authorizer.
    """
    target = path or GATEWAY_CONFIG_FILE
    try:
        config = load_config_file(target)
    except Exception as e:
        console.print(f"[red]Cannot load {target}: {e}[/red]")
        raise typer.Exit(1)

    method = method.upper()
    raw_body = (body or "").encode("utf-8")

    async def _load_body() -> bytes:
        return raw_body

    ctx = RequestContext(
        method=method,
        route_path=route,
        headers=_pairs(header, "--header"),
        params=_pairs(param, "--param"),
        identity=Identity(sub=sub),
        body_loader=_load_body,
    )
    policy = _policy_for_route(config, method, route)

    try:
        triple = asyncio.run(resolve_triple(ctx, policy))
    except BodyParseError as e:
        console.print(f"[red]Request would be denied (body-parse-failure): {e}[/red]")
        raise typer.Exit(1)

    payload = build_decision_request(sub, triple, policy)
    console.print_json(json.dumps(payload.model_dump()))
