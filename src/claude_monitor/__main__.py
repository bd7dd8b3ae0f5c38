from claude_monitor.cli import app

app()
