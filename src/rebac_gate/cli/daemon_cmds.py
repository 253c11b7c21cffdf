"""Daemon lifecycle commands: start, stop, status."""

import sys
import signal
import subprocess
import os

import typer

from . import daemon_app, console, GATE_DIR, PID_FILE, LOG_DIR, CONFIG_DIR, get_daemon_pid


@daemon_app.command("start")
def start_daemon(port: int = 9100, host: str = "127.0.0.1", reload: bool = False):
    """Start the gateway."""
    GATE_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    config_dir = os.getenv("REBAC_GATE_CONFIG_DIR") or str(CONFIG_DIR)
    if not os.path.exists(os.path.join(config_dir, "gateway.yaml")):
        console.print(f"[red]No gateway.yaml in {config_dir}. Run `rebac-gate init` first.[/red]")
        raise typer.Exit(1)

    pid = get_daemon_pid()
    if pid:
        try:
            os.kill(pid, 0)
            console.print(f"[red]Gateway already running (PID {pid})[/red]")
            return
        except ProcessLookupError:
            console.print("[yellow]Stale PID file found, removing...[/yellow]")
            PID_FILE.unlink()

    console.print(f"[green]Starting rebac-gate on {host}:{port}...[/green]")

    env = os.environ.copy()
    env["REBAC_GATE_LOG_DIR"] = str(LOG_DIR)
    env["REBAC_GATE_CONFIG_DIR"] = config_dir

    cmd = [
        sys.executable, "-m", "uvicorn",
        "rebac_gate.daemon.app:app",
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        cmd.append("--reload")

    log_file = open(LOG_DIR / "daemon.out", "a")
    proc = subprocess.Popen(cmd, env=env, stdout=log_file, stderr=subprocess.STDOUT)

    PID_FILE.write_text(str(proc.pid))

    console.print(f"Gateway started with PID {proc.pid}")
    console.print(f"Logs: {LOG_DIR}/daemon.out")


@daemon_app.command("stop")
def stop_daemon():
    """Stop the gateway."""
    pid = get_daemon_pid()
    if not pid:
        console.print("[red]Gateway not running (PID file not found)[/red]")
        return

    try:
        os.kill(pid, signal.SIGTERM)
        console.print(f"[green]Stopped gateway (PID {pid})[/green]")
    except ProcessLookupError:
        console.print("[yellow]Gateway process not found, cleaning up PID file[/yellow]")
    if PID_FILE.exists():
        PID_FILE.unlink()


@daemon_app.command("status")
def status_daemon():
    """Check gateway status."""
    pid = get_daemon_pid()
    if pid:
        try:
            os.kill(pid, 0)
            console.print(f"[green]Gateway is running (PID {pid})[/green]")
            console.print(f"Configuration: {os.getenv('REBAC_GATE_CONFIG_DIR') or CONFIG_DIR}")
            return
        except ProcessLookupError:
            pass

    console.print("[red]Gateway is NOT running[/red]")
