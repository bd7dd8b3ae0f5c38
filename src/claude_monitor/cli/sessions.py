"""
CLI subcommands for tracked sessions.

Usage:
    claude-monitor sessions list
    claude-monitor sessions show <pid>
    claude-monitor sessions end <pid>
"""

import typer

from claude_monitor.cli._http import _http_delete, _http_get

sessions_app = typer.Typer(help="Inspect and end tracked sessions")

STATUS_ICONS = {
    "idle": "💤",
    "thinking": "🧠",
    "executing": "⚙️ ",
    "waiting_input": "⏳",
    "done": "✅",
}


@sessions_app.command("list")
def sessions_list():
    """List all active sessions."""
    sessions = _http_get("/api/sessions") or []

    if not sessions:
        typer.echo("No active sessions.")
        return

    typer.echo(f"Active sessions ({len(sessions)}):\n")
    for session in sessions:
        icon = STATUS_ICONS.get(session["status"], "•")
        typer.echo(f"  {icon} {session['project']}")
        typer.echo(f"     PID: {session['pid']} | Terminal: {session['terminal']}")
        typer.echo(f"     Status: {session['status']}")
        typer.echo(f"     Directory: {session['cwd']}")
        if session.get("message"):
            typer.echo(f"     Message: {session['message']}")
        typer.echo("")


@sessions_app.command("show")
def sessions_show(pid: int = typer.Argument(..., help="Session PID")):
    """Show one session with its prompt and tool history."""
    data = _http_get(f"/api/sessions/{pid}/history")

    icon = STATUS_ICONS.get(data["status"], "•")
    typer.echo(f"{icon} {data['project']} (PID {data['pid']})")
    typer.echo(f"   Status: {data['status']}")
    typer.echo(f"   Directory: {data['cwd']}")

    stats = data.get("toolStats", {})
    typer.echo(f"   Tool calls: {stats.get('totalCalls', 0)}")
    for tool, count in sorted(stats.get("byTool", {}).items()):
        typer.echo(f"     {tool}: {count}")

    prompts = data.get("promptHistory", [])
    if prompts:
        typer.echo("   Recent prompts:")
        for prompt in prompts:
            typer.echo(f"     > {prompt['prompt']}")


@sessions_app.command("end")
def sessions_end(pid: int = typer.Argument(..., help="Session PID")):
    """Remove a session from the daemon."""
    _http_delete(f"/api/sessions/{pid}")
    typer.echo(f"Session {pid} ended.")
