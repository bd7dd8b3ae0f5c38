"""
Claude Monitor CLI.

This package splits CLI commands into focused modules:
- main:     serve, start, stop, status, events
- sessions: list, show, end
"""

import typer

from claude_monitor.cli._http import _http_delete, _http_get  # noqa: F401
from claude_monitor.cli.main import configure_logging, register_commands
from claude_monitor.cli.sessions import sessions_app

app = typer.Typer(help="Claude Monitor - track coding assistant sessions")


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging (DEBUG level)"
    ),
):
    """
    Claude Monitor - track coding assistant sessions.
    """
    configure_logging(verbose)


register_commands(app)

app.add_typer(sessions_app, name="sessions")

if __name__ == "__main__":
    app()
