"""Tests for the notification gateway and transition alerts."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from claude_monitor.config import MonitorConfig, NotificationFlags
from claude_monitor.models import SessionStatus
from claude_monitor.notify import (
    LinuxNotifier,
    LogNotifier,
    MacNotifier,
    NotificationError,
    TransitionAlerts,
    create_notifier,
    escape_applescript,
    notify_safely,
)


def fake_process(returncode=0, stderr=b""):
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(b"", stderr))
    return proc


class TestEscaping:
    def test_quotes_and_backslashes(self):
        assert escape_applescript('say "hi"') == 'say \\"hi\\"'
        assert escape_applescript("a\\b") == "a\\\\b"

    def test_control_characters_removed(self):
        assert escape_applescript("a\x07b\x1bc") == "abc"

    def test_newline_kept(self):
        assert escape_applescript("line1\nline2") == "line1\nline2"


class TestMacNotifier:
    @pytest.mark.asyncio
    async def test_runs_osascript_without_shell(self):
        with patch(
            "asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=fake_process()),
        ) as mock_exec:
            result = await MacNotifier().notify('Title "x"', "Body", "Hero")

        assert result is True
        args = mock_exec.await_args.args
        assert args[0] == "osascript"
        assert args[1] == "-e"
        assert 'with title "Title \\"x\\""' in args[2]
        assert 'display notification "Body"' in args[2]
        assert 'sound name "Hero"' in args[2]

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises(self):
        with patch(
            "asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=fake_process(1, b"not allowed")),
        ):
            with pytest.raises(NotificationError, match="not allowed"):
                await MacNotifier().notify("t", "m")

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self):
        with patch(
            "asyncio.create_subprocess_exec",
            new=AsyncMock(side_effect=FileNotFoundError("osascript")),
        ):
            with pytest.raises(NotificationError):
                await MacNotifier().notify("t", "m")


class TestLinuxNotifier:
    @pytest.mark.asyncio
    async def test_passes_duration_and_separator(self):
        with patch(
            "asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=fake_process()),
        ) as mock_exec:
            await LinuxNotifier().notify("-title", "body", duration_ms=3000)

        args = list(mock_exec.await_args.args)
        assert args[0] == "notify-send"
        assert args[args.index("-t") + 1] == "3000"
        assert args[-3:] == ["--", "-title", "body"]

    @pytest.mark.asyncio
    async def test_zero_duration_uses_default(self):
        with patch(
            "asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=fake_process()),
        ) as mock_exec:
            await LinuxNotifier().notify("t", "m", duration_ms=0)

        assert "-t" not in mock_exec.await_args.args


class TestCreateNotifier:
    def test_falls_back_to_log(self):
        with patch("claude_monitor.notify.shutil.which", return_value=None):
            assert isinstance(create_notifier(), LogNotifier)

    def test_linux_with_notify_send(self):
        with patch("claude_monitor.notify.sys.platform", "linux"), patch(
            "claude_monitor.notify.shutil.which", return_value="/usr/bin/notify-send"
        ):
            assert isinstance(create_notifier(), LinuxNotifier)

    def test_macos_with_osascript(self):
        with patch("claude_monitor.notify.sys.platform", "darwin"), patch(
            "claude_monitor.notify.shutil.which", return_value="/usr/bin/osascript"
        ):
            assert isinstance(create_notifier(), MacNotifier)


class TestNotifySafely:
    @pytest.mark.asyncio
    async def test_success(self):
        assert await notify_safely(LogNotifier(), "t", "m") is True

    @pytest.mark.asyncio
    async def test_error_is_swallowed(self):
        notifier = AsyncMock()
        notifier.notify.side_effect = NotificationError("boom")

        assert await notify_safely(notifier, "t", "m") is False

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        notifier = AsyncMock()
        notifier.notify.side_effect = hang

        assert await notify_safely(notifier, "t", "m", timeout=0.05) is False


class TestTransitionAlerts:
    def make(self, registry, **flags):
        notifier = AsyncMock()
        notifier.notify.return_value = True
        config = MonitorConfig(notifications=NotificationFlags(**flags))
        alerts = TransitionAlerts(notifier, config)
        registry.add_listener(alerts)
        return notifier, alerts

    @pytest.mark.asyncio
    async def test_waiting_input_alert(self, registry):
        notifier, alerts = self.make(registry)
        registry.register(1, 1, "vscode", "/home/u/proj-x")

        registry.update_status(1, SessionStatus.WAITING_INPUT, "Allow Bash?")
        await alerts.drain()

        notifier.notify.assert_awaited_once()
        title, body, sound, duration = notifier.notify.await_args.args
        assert "Waiting for input" in title
        assert "proj-x" in body
        assert body == "Project: proj-x - Allow Bash?"
        assert sound == "Hero"
        assert duration == 0

    @pytest.mark.asyncio
    async def test_waiting_alert_disabled(self, registry):
        notifier, alerts = self.make(registry, waiting_input=False)
        registry.register(1, 1, "vscode", "/p")

        registry.update_status(1, SessionStatus.WAITING_INPUT)
        await alerts.drain()

        notifier.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_prompt_alert_off_by_default(self, registry):
        notifier, alerts = self.make(registry)
        registry.register(1, 1, "vscode", "/p")

        registry.add_prompt(1, "hello")
        await alerts.drain()

        notifier.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_prompt_alert_truncates_preview(self, registry):
        notifier, alerts = self.make(registry, prompt_submit=True)
        registry.register(1, 1, "vscode", "/p")

        registry.add_prompt(1, "x" * 200)
        await alerts.drain()

        body = notifier.notify.await_args.args[1]
        assert len(body) == 80
        assert body.endswith("...")

    def test_no_event_loop_drops_alert(self, registry):
        notifier, alerts = self.make(registry)
        registry.register(1, 1, "vscode", "/p")

        registry.update_status(1, SessionStatus.WAITING_INPUT)

        assert registry.get(1).status == SessionStatus.WAITING_INPUT
        notifier.notify.assert_not_called()
