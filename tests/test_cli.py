"""
Unit tests for the CLI commands (status, events, sessions).
"""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from claude_monitor.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("claude_monitor.cli.configure_logging") as mock_configure:
        yield mock_configure


def session(pid=100, status="idle", message=None):
    return {
        "pid": pid,
        "ppid": 50,
        "terminal": "vscode",
        "cwd": "/home/u/proj-x",
        "project": "proj-x",
        "status": status,
        "startedAt": 1_700_000_000_000,
        "updatedAt": 1_700_000_000_000,
        "message": message,
    }


class TestCLIRoot:
    def test_help_shows_all_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ["serve", "start", "stop", "status", "events", "sessions"]:
            assert command in result.output

    def test_verbose_flag(self, no_logging_setup):
        with patch("claude_monitor.cli.main.is_daemon_running", return_value=False):
            runner.invoke(app, ["--verbose", "status"])
        no_logging_setup.assert_called_once_with(True)


class TestStatus:
    @patch("claude_monitor.cli.main.is_daemon_running", return_value=False)
    def test_not_running(self, mock_running):
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Daemon: not running" in result.output

    @patch("claude_monitor.cli.main._http_get")
    @patch("claude_monitor.cli.main.is_daemon_running", return_value=True)
    def test_running(self, mock_running, mock_get):
        mock_get.return_value = {"status": "ok", "sessions": 3}
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Daemon: running" in result.output
        assert "Active sessions: 3" in result.output
        mock_get.assert_called_once_with("/api/health")


class TestEvents:
    @patch("claude_monitor.cli.main._http_get")
    def test_no_events(self, mock_get):
        mock_get.return_value = []
        result = runner.invoke(app, ["events"])
        assert result.exit_code == 0
        assert "No events yet." in result.output

    @patch("claude_monitor.cli.main._http_get")
    def test_events_limit(self, mock_get):
        mock_get.return_value = [
            {
                "id": f"{pid}-1-abcd",
                "type": "started",
                "pid": pid,
                "project": f"proj-{pid}",
                "timestamp": 1_700_000_000_000,
                "message": None,
            }
            for pid in range(1, 6)
        ]
        result = runner.invoke(app, ["events", "-n", "2"])
        assert result.exit_code == 0
        assert "proj-1" in result.output
        assert "proj-2" in result.output
        assert "proj-3" not in result.output


class TestStop:
    def test_no_pid_file(self):
        with patch("claude_monitor.cli.main._read_pid", return_value=None):
            result = runner.invoke(app, ["stop"])
        assert result.exit_code == 1
        assert "not running" in result.output

    def test_sends_sigterm(self):
        with patch("claude_monitor.cli.main._read_pid", return_value=4321), patch(
            "claude_monitor.cli.main.os.kill"
        ) as mock_kill:
            result = runner.invoke(app, ["stop"])
        assert result.exit_code == 0
        assert mock_kill.call_args.args[0] == 4321
        assert "Daemon stopped" in result.output


class TestStart:
    @patch("claude_monitor.cli.main.is_daemon_running", return_value=True)
    def test_already_running(self, mock_running):
        result = runner.invoke(app, ["start"])
        assert result.exit_code == 1
        assert "already running" in result.output


class TestSessionsSubcommand:
    def test_sessions_help(self):
        result = runner.invoke(app, ["sessions", "--help"])
        assert result.exit_code == 0
        assert "list" in result.output
        assert "show" in result.output
        assert "end" in result.output

    @patch("claude_monitor.cli.sessions._http_get")
    def test_list_empty(self, mock_get):
        mock_get.return_value = []
        result = runner.invoke(app, ["sessions", "list"])
        assert result.exit_code == 0
        assert "No active sessions." in result.output

    @patch("claude_monitor.cli.sessions._http_get")
    def test_list_with_sessions(self, mock_get):
        mock_get.return_value = [
            session(100, "waiting_input", "Allow Bash?"),
            session(200, "thinking"),
        ]
        result = runner.invoke(app, ["sessions", "list"])
        assert result.exit_code == 0
        assert "Active sessions (2)" in result.output
        assert "PID: 100" in result.output
        assert "waiting_input" in result.output
        assert "Allow Bash?" in result.output

    @patch("claude_monitor.cli.sessions._http_get")
    def test_show(self, mock_get):
        mock_get.return_value = {
            **session(),
            "promptHistory": [
                {"id": "p1", "sessionId": 100, "prompt": "fix it", "timestamp": 1}
            ],
            "toolHistory": [],
            "toolStats": {"totalCalls": 4, "byTool": {"Bash": 3, "Read": 1}},
        }
        result = runner.invoke(app, ["sessions", "show", "100"])
        assert result.exit_code == 0
        assert "Tool calls: 4" in result.output
        assert "Bash: 3" in result.output
        assert "> fix it" in result.output
        mock_get.assert_called_once_with("/api/sessions/100/history")

    @patch("claude_monitor.cli.sessions._http_delete")
    def test_end(self, mock_delete):
        mock_delete.return_value = None
        result = runner.invoke(app, ["sessions", "end", "100"])
        assert result.exit_code == 0
        assert "Session 100 ended." in result.output
        mock_delete.assert_called_once_with("/api/sessions/100")


class TestServerUrl:
    def test_default(self, monkeypatch):
        from claude_monitor.cli._http import get_server_url

        for name in ["CLAUDE_MONITOR_URL", "CLAUDE_MONITOR_HOST", "CLAUDE_MONITOR_PORT"]:
            monkeypatch.delenv(name, raising=False)
        assert get_server_url() == "http://localhost:17530"

    def test_explicit_url(self, monkeypatch):
        from claude_monitor.cli._http import get_server_url

        monkeypatch.setenv("CLAUDE_MONITOR_URL", "http://example:1/")
        assert get_server_url() == "http://example:1"
