"""Configuration commands: check, hash-key."""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from . import config_app, console, GATEWAY_CONFIG_FILE
from ..daemon.auth import hash_key
from ..daemon.policy.engine import DEFAULT_OBJECT_TYPE, DEFAULT_RELATION
from ..daemon.utils.config_loader import load_config_file


def _describe(spec, default: str) -> str:
    if spec is None:
        return f"[dim]{default}[/dim]"
    return str(spec)


@config_app.command("check")
def check_config(path: Optional[Path] = typer.Option(None, "--path", "-p", help="gateway.yaml to validate")):
    """Validate a gateway.yaml and show the effective authorization per route."""
    target = path or GATEWAY_CONFIG_FILE
    if not target.exists():
        console.print(f"[red]Config file not found: {target}[/red]")
        raise typer.Exit(1)

    try:
        config = load_config_file(target)
    except Exception as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Configuration OK[/green] ({target})")
    console.print(f"Authorizer: {config.authorizer.url} (timeout {config.authorizer.timeout_seconds}s)")
    console.print(f"Tenant: {config.policy.tenant_id}  Policy: {config.policy.policy_name}")
    console.print(f"Consumers: {len(config.consumers)}")

    table = Table(title="Routes")
    table.add_column("Methods", style="cyan")
    table.add_column("Path")
    table.add_column("Upstream")
    table.add_column("object_type")
    table.add_column("object_id")
    table.add_column("relation")

    for index, route in enumerate(config.routes):
        policy = config.policy_for(index)
        table.add_row(
            ",".join(route.methods),
            route.path,
            route.upstream,
            _describe(policy.object_type, DEFAULT_OBJECT_TYPE),
            _describe(policy.object_id, f"{policy.service_name}:<METHOD>:{route.path}"),
            _describe(policy.relation, DEFAULT_RELATION),
        )
    console.print(table)


@config_app.command("hash-key")
def hash_api_key(key: str = typer.Argument(..., help="Raw consumer API key")):
    """Print the key_hash to store for a consumer API key."""
    console.print(hash_key(key))
