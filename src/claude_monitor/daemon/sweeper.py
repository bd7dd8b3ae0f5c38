"""
Liveness Sweeper: reclaim sessions whose process died without saying so.

A session normally ends with an explicit DELETE from the assistant's exit
hook. When the process crashes or is killed, that never arrives and the
session lingers as a zombie. The sweeper probes every registered pid at a
fixed interval and removes the dead ones.
"""

import asyncio
import os
from datetime import datetime
from typing import Callable, Optional

from claude_monitor.config import DEFAULT_CHECK_INTERVAL_MS
from claude_monitor.daemon.registry import SessionRegistry
from claude_monitor.logger import get_logger
from claude_monitor.models import Session
from claude_monitor.notify import (
    APP_TITLE,
    DEFAULT_NOTIFY_TIMEOUT,
    Notifier,
    notify_safely,
)

logger = get_logger(__name__)

ZOMBIE_SOUND = "Basso"


def is_process_alive(pid: int) -> bool:
    """
    Probe ``pid`` with signal 0.

    A process we may not signal (EPERM) is reported as dead too; the probe
    cannot tell that case apart from a missing process. A pid outside the
    platform range cannot belong to a live process either.
    """
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError):
        return False
    return True


class LivenessSweeper:
    """
    Periodically removes sessions whose owning process is gone.

    Runs as a single asyncio task: each tick completes before the next sleep
    starts, and ``sweep_once`` holds a lock so a manual sweep never overlaps
    a timed one.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        notifier: Optional[Notifier] = None,
        interval_ms: int = DEFAULT_CHECK_INTERVAL_MS,
        probe: Callable[[int], bool] = is_process_alive,
        notify_enabled: bool = True,
        notify_timeout: float = DEFAULT_NOTIFY_TIMEOUT,
        notify_duration_ms: Optional[int] = None,
    ):
        self.registry = registry
        self.notifier = notifier
        self.interval_ms = interval_ms
        self.probe = probe
        self.notify_enabled = notify_enabled
        self.notify_timeout = notify_timeout
        self.notify_duration_ms = notify_duration_ms
        self._task: Optional[asyncio.Task] = None
        self._sweep_lock = asyncio.Lock()
        self._last_sweep_at: Optional[datetime] = None
        self._last_reaped = 0
        self._last_error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop. A second call while running is a no-op."""
        if self.running:
            logger.info("Liveness sweeper already running")
            return

        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Liveness sweeper started (interval: {self.interval_ms}ms)")

    async def stop(self) -> None:
        """Stop the sweep loop. Does nothing when not running."""
        if self._task is None:
            return

        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Liveness sweeper stopped")

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Liveness sweep failed: {e}")
                self._last_error = str(e)

    async def sweep_once(self) -> list[Session]:
        """
        Run one sweep.

        Returns:
            The sessions removed by this sweep. Empty if another sweep was
            already in progress.
        """
        if self._sweep_lock.locked():
            logger.debug("Sweep already in progress, skipping")
            return []

        async with self._sweep_lock:
            self._last_error = None
            reaped: list[Session] = []
            for session in self.registry.get_all():
                try:
                    removed = self._reap_if_dead(session)
                except Exception as e:
                    logger.error(f"Liveness check failed for PID {session.pid}: {e}")
                    self._last_error = str(e)
                    continue
                if removed:
                    reaped.append(session)
                    await self._alert(session)

            self._last_sweep_at = datetime.now()
            self._last_reaped = len(reaped)
            return reaped

    def _reap_if_dead(self, session: Session) -> bool:
        """Remove ``session`` if its process is gone. True if this call removed it."""
        if self.probe(session.pid):
            return False

        logger.warning(
            f"Detected zombie session: PID {session.pid} ({session.project})"
        )
        # False when the session ended through the API while we were sweeping.
        return self.registry.delete(session.pid)

    async def _alert(self, session: Session) -> None:
        if not (self.notify_enabled and self.notifier):
            return
        await notify_safely(
            self.notifier,
            f"{APP_TITLE} - Session terminated abnormally",
            f"Project: {session.project}",
            ZOMBIE_SOUND,
            self.notify_duration_ms,
            timeout=self.notify_timeout,
        )

    def get_status(self) -> dict:
        return {
            "running": self.running,
            "interval_ms": self.interval_ms,
            "last_sweep_at": (
                self._last_sweep_at.isoformat() if self._last_sweep_at else None
            ),
            "last_reaped": self._last_reaped,
            "last_error": self._last_error,
        }
