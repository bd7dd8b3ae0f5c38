"""
Daemon core for Claude Monitor.

- registry: session store, single writer of session state
- events:   bounded event history
- sweeper:  periodic zombie-session reaping
- push:     WebSocket fan-out to dashboard viewers
"""

from claude_monitor.daemon.events import EventLog
from claude_monitor.daemon.push import PushChannel, Subscriber
from claude_monitor.daemon.registry import SessionRegistry
from claude_monitor.daemon.sweeper import LivenessSweeper, is_process_alive

__all__ = [
    "EventLog",
    "LivenessSweeper",
    "PushChannel",
    "SessionRegistry",
    "Subscriber",
    "is_process_alive",
]
