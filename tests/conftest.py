"""Shared pytest fixtures and configuration."""

import pytest
from starlette.testclient import TestClient

from claude_monitor.config import MonitorConfig
from claude_monitor.daemon.registry import SessionRegistry
from claude_monitor.notify import LogNotifier
from claude_monitor.server import create_app


class FakeClock:
    """Deterministic millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return SessionRegistry(clock=clock)


@pytest.fixture
def test_config():
    """Config with the background sweeper off so tests drive sweeps."""
    return MonitorConfig(sweeper_enabled=False)


@pytest.fixture
def app(test_config, registry):
    return create_app(
        config=test_config,
        registry=registry,
        notifier=LogNotifier(),
        probe=lambda pid: True,
    )


@pytest.fixture
def client(app):
    """Test client with the application lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def session_body():
    return {
        "pid": 100,
        "ppid": 50,
        "cwd": "/home/u/proj-x",
        "terminal": "iTerm.app",
    }
