"""
Notification Gateway: deliver human-visible alerts.

A Notifier hides how an alert reaches the user (macOS notification centre,
a freedesktop notification daemon, or just the log). Callers only rely on
``notify`` either returning True or raising ``NotificationError``.
"""

import asyncio
import re
import shutil
import sys
from abc import ABC, abstractmethod
from typing import Optional

from claude_monitor.config import MonitorConfig
from claude_monitor.logger import get_logger
from claude_monitor.models import (
    ChangeMessage,
    NewEventMessage,
    NewPromptMessage,
    SessionEventType,
)

logger = get_logger(__name__)

APP_TITLE = "Claude Monitor"
DEFAULT_SOUND = "Glass"
DEFAULT_NOTIFY_TIMEOUT = 10.0

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


class NotificationError(Exception):
    """Raised when an alert could not be delivered."""


def escape_applescript(text: str) -> str:
    """Escape text for use inside an AppleScript double-quoted string."""
    text = _CONTROL_CHARS.sub("", text)
    return text.replace("\\", "\\\\").replace('"', '\\"')


def strip_control_chars(text: str) -> str:
    return _CONTROL_CHARS.sub("", text)


class Notifier(ABC):
    """Abstract base class for alert delivery back-ends."""

    name: str = "base"

    @abstractmethod
    async def notify(
        self,
        title: str,
        message: str,
        sound: str = DEFAULT_SOUND,
        duration_ms: Optional[int] = None,
    ) -> bool:
        """
        Show an alert to the user.

        Args:
            title: Alert title.
            message: Alert body.
            sound: Sound name, where the platform supports one.
            duration_ms: How long to keep the alert up; None or 0 means the
                platform default.

        Returns:
            True once the alert was handed to the platform.

        Raises:
            NotificationError: If delivery failed.
        """


class CommandNotifier(Notifier):
    """Notifier that runs an external program without a shell."""

    async def _run(self, *args: str) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise NotificationError(f"Cannot run {args[0]}: {e}") from e

        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise NotificationError(
                f"{args[0]} exited with {proc.returncode}: {detail}"
            )


class MacNotifier(CommandNotifier):
    """macOS notification centre via ``osascript``."""

    name = "osascript"

    async def notify(
        self,
        title: str,
        message: str,
        sound: str = DEFAULT_SOUND,
        duration_ms: Optional[int] = None,
    ) -> bool:
        script = (
            f'display notification "{escape_applescript(message)}" '
            f'with title "{escape_applescript(title)}" '
            f'sound name "{escape_applescript(sound)}"'
        )
        await self._run("osascript", "-e", script)
        return True


class LinuxNotifier(CommandNotifier):
    """freedesktop notifications via ``notify-send``."""

    name = "notify-send"

    async def notify(
        self,
        title: str,
        message: str,
        sound: str = DEFAULT_SOUND,
        duration_ms: Optional[int] = None,
    ) -> bool:
        args = ["notify-send", "--app-name", APP_TITLE]
        if duration_ms:
            args += ["-t", str(duration_ms)]
        args += ["--", strip_control_chars(title), strip_control_chars(message)]
        await self._run(*args)
        return True


class LogNotifier(Notifier):
    """Writes alerts to the log. Used when no desktop back-end is available."""

    name = "log"

    async def notify(
        self,
        title: str,
        message: str,
        sound: str = DEFAULT_SOUND,
        duration_ms: Optional[int] = None,
    ) -> bool:
        logger.info(f"[notification] {title}: {message}")
        return True


def create_notifier() -> Notifier:
    """Pick the best available notifier for this platform."""
    if sys.platform == "darwin" and shutil.which("osascript"):
        return MacNotifier()
    if sys.platform.startswith("linux") and shutil.which("notify-send"):
        return LinuxNotifier()
    logger.info("No desktop notification back-end found, alerts go to the log")
    return LogNotifier()


async def notify_safely(
    notifier: Notifier,
    title: str,
    message: str,
    sound: str = DEFAULT_SOUND,
    duration_ms: Optional[int] = None,
    timeout: float = DEFAULT_NOTIFY_TIMEOUT,
) -> bool:
    """
    Deliver an alert, bounded by ``timeout``. Never raises.

    Returns:
        True if the alert was delivered, False if it failed or timed out.
    """
    try:
        return await asyncio.wait_for(
            notifier.notify(title, message, sound, duration_ms), timeout=timeout
        )
    except asyncio.TimeoutError:
        logger.warning(f"Notification '{title}' timed out after {timeout}s")
    except Exception as e:
        logger.error(f"Failed to send notification '{title}': {e}")
    return False


class TransitionAlerts:
    """
    Registry listener that raises alerts for interesting transitions.

    - a session starts waiting for input (``waiting`` event)
    - the user submits a prompt

    Which alerts fire, their sounds and durations come from the config.
    Deliveries run as background tasks so the registry is never blocked.
    """

    def __init__(self, notifier: Notifier, config: MonitorConfig):
        self.notifier = notifier
        self.config = config
        self._tasks: set[asyncio.Task] = set()

    def __call__(self, message: ChangeMessage) -> None:
        flags = self.config.notifications

        if isinstance(message, NewEventMessage):
            event = message.event
            if event.type == SessionEventType.WAITING and flags.waiting_input:
                self._spawn(
                    f"{APP_TITLE} - Waiting for input",
                    f"Project: {event.project}"
                    + (f" - {event.message}" if event.message else ""),
                    self.config.sounds.waiting_input,
                    self.config.durations.waiting_input,
                )
        elif isinstance(message, NewPromptMessage) and flags.prompt_submit:
            prompt = message.prompt.prompt
            preview = prompt if len(prompt) <= 80 else prompt[:77] + "..."
            self._spawn(
                f"{APP_TITLE} - Prompt submitted",
                preview,
                self.config.sounds.prompt_submit,
                self.config.durations.prompt_submit,
            )

    def _spawn(self, title: str, body: str, sound: str, duration_ms: int) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No event loop, dropping alert '{title}'")
            return

        task = loop.create_task(
            notify_safely(
                self.notifier,
                title,
                body,
                sound,
                duration_ms,
                timeout=self.config.notify_timeout,
            )
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for in-flight alerts, used on shutdown and in tests."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
