"""
Health probe and daemon status endpoints.
"""

import time

from starlette.requests import Request
from starlette.responses import JSONResponse

from claude_monitor.models import HealthStatus
from claude_monitor.routes.responses import success

start_time = time.time()


async def health_check(request: Request) -> JSONResponse:
    """GET /api/health — liveness plus the current session count."""
    registry = request.app.state.registry
    return success(HealthStatus(status="ok", sessions=registry.count))


async def daemon_status(request: Request) -> JSONResponse:
    """GET /api/status — sweeper state, subscriber count and uptime."""
    state = request.app.state
    sweeper = getattr(state, "sweeper", None)
    return success(
        {
            "sessions": state.registry.count,
            "events": len(state.registry.events),
            "subscribers": state.push_channel.count,
            "sweeper": sweeper.get_status() if sweeper else None,
            "notifier": state.notifier.name,
            "uptimeSeconds": int(time.time() - start_time),
        }
    )
