"""rebac-gate CLI, modular command package."""

import typer
from pathlib import Path
from rich.console import Console

from .. import __version__

# ── Shared state ────────────────────────────────────────────────────────────

app = typer.Typer(help="rebac-gate - ReBAC authorization gate for API gateways")
console = Console()

# Sub-command groups
daemon_app = typer.Typer()
config_app = typer.Typer()

app.add_typer(daemon_app, name="daemon", help="Manage the gateway process")
app.add_typer(config_app, name="config", help="Validate and inspect gateway configuration")

# ── Path constants ──────────────────────────────────────────────────────────

GATE_DIR = Path.home() / ".rebac-gate"
PID_FILE = GATE_DIR / "rebac-gate.pid"
LOG_DIR = GATE_DIR / "logs"
CONFIG_DIR = GATE_DIR / "config"
GATEWAY_CONFIG_FILE = CONFIG_DIR / "gateway.yaml"

DEFAULT_GATEWAY_YAML = """version: 1

authorizer:
  url: https://authorizer.prod.aserto.com/api/v2/authz/is
  timeout_seconds: 10

policy:
  tenant_id: your-tenant-id
  # Or export REBAC_GATE_AUTHORIZER_API_KEY
  authorizer_api_key: ""
  policy_name: policy-rebac
  service_name: catalog

consumers: []
  # - name: web-frontend
  #   sub: user-1
  #   key_hash: <output of `rebac-gate config hash-key KEY`>

routes:
  - path: /items/{id}
    methods: [GET]
    upstream: http://127.0.0.1:8080
  - path: /items/{id}
    methods: [PUT]
    upstream: http://127.0.0.1:8080
    object_type: item
    object_id: $param(id)
    relation: can_write
"""


# ── Shared helpers ──────────────────────────────────────────────────────────

def get_daemon_pid():
    if PID_FILE.exists():
        try:
            return int(PID_FILE.read_text().strip())
        except ValueError:
            return None
    return None


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
):
    if version:
        console.print(f"rebac-gate {__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


# ── Init command (lives at top level, so defined here) ──────────────────────

@app.command("init")
def init_gate():
    """Initialize local runtime folders and a default gateway.yaml."""
    console.print(f"[bold]Initializing rebac-gate in {GATE_DIR}...[/bold]")

    GATE_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    if GATEWAY_CONFIG_FILE.exists():
        console.print(f"[yellow]{GATEWAY_CONFIG_FILE} already exists, leaving it untouched.[/yellow]")
    else:
        console.print("Creating default gateway.yaml...")
        GATEWAY_CONFIG_FILE.write_text(DEFAULT_GATEWAY_YAML)

    console.print("[green]rebac-gate initialized.[/green]")


# ── Register submodule commands (import triggers decorator registration) ────

from . import daemon_cmds   # noqa: E402, F401
from . import config_cmds   # noqa: E402, F401
from . import explain_cmds  # noqa: E402, F401
