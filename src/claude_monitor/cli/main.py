"""
Top-level CLI commands: serve, start, stop, status, events.
"""

import os
import signal
import subprocess
import sys
import time
from datetime import datetime

import typer

from claude_monitor.cli._http import _http_get, get_server_url, is_daemon_running
from claude_monitor.config import PID_FILE

START_TIMEOUT_SECONDS = 5.0

EVENT_ICONS = {
    "started": "🟢",
    "ended": "⚪",
    "waiting": "⏳",
    "resumed": "▶️ ",
    "killed": "🛑",
}


def configure_logging(verbose: bool = False):
    """Configure logging for the CLI."""
    from claude_monitor.logger import setup_logging

    setup_logging(level="DEBUG" if verbose else "WARNING")


def format_timestamp(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _read_pid() -> int | None:
    try:
        return int(PID_FILE.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None


def register_commands(app: typer.Typer):
    """Register top-level commands on the root app."""

    @app.command()
    def serve(
        debug: bool = typer.Option(False, "--debug", help="Log at DEBUG level"),
    ):
        """Run the daemon in the foreground."""
        from claude_monitor.config import load_config
        from claude_monitor.server import run

        config = load_config()
        if debug:
            config.log_level = "DEBUG"
        run(config)

    @app.command()
    def start():
        """Start the daemon in the background."""
        if is_daemon_running():
            typer.echo("❌ Daemon is already running")
            raise typer.Exit(code=1)

        typer.echo("ℹ️  Starting daemon...")
        kwargs = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.DETACHED_PROCESS
        else:
            kwargs["start_new_session"] = True
        subprocess.Popen(
            [sys.executable, "-m", "claude_monitor.server"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            **kwargs,
        )

        deadline = time.monotonic() + START_TIMEOUT_SECONDS
        while time.monotonic() < deadline:
            if is_daemon_running():
                typer.echo("✅ Daemon started")
                typer.echo(f"   API: {get_server_url()}")
                return
            time.sleep(0.2)

        typer.echo("❌ Daemon failed to start")
        raise typer.Exit(code=1)

    @app.command()
    def stop():
        """Stop the background daemon."""
        pid = _read_pid()
        if pid is None:
            typer.echo("❌ Daemon is not running (no pid file)")
            raise typer.Exit(code=1)

        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            typer.echo("❌ Daemon is not running (stale pid file)")
            PID_FILE.unlink(missing_ok=True)
            raise typer.Exit(code=1)
        except PermissionError:
            typer.echo(f"❌ Not allowed to stop process {pid}")
            raise typer.Exit(code=1)

        typer.echo("✅ Daemon stopped")

    @app.command()
    def status():
        """Show whether the daemon runs and how many sessions it tracks."""
        if not is_daemon_running():
            typer.echo("Daemon: not running")
            return

        data = _http_get("/api/health")
        typer.echo("Daemon: running")
        typer.echo(f"API:    {get_server_url()}")
        typer.echo(f"Active sessions: {data.get('sessions', 0)}")

    @app.command()
    def events(
        limit: int = typer.Option(20, "--limit", "-n", help="Number of events to show"),
    ):
        """Show recent session events, newest first."""
        data = _http_get("/api/events") or []
        if not data:
            typer.echo("No events yet.")
            return

        for event in data[:limit]:
            icon = EVENT_ICONS.get(event["type"], "•")
            line = (
                f"{icon} {format_timestamp(event['timestamp'])}  "
                f"{event['type']:<8} {event['project']} (PID {event['pid']})"
            )
            if event.get("message"):
                line += f" - {event['message']}"
            typer.echo(line)
