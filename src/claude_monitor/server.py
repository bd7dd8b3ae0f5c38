"""
Starlette-based daemon for Claude Monitor.

This server provides:
- /api/sessions...: register, update, query and end sessions (hook scripts)
- /api/events: recent session events
- /api/health, /api/status: probes
- /ws: push channel streaming every change to dashboard viewers

One SessionRegistry is created per application and handed to every
component that needs it (routes via ``app.state``, the push channel, the
liveness sweeper and the transition alerts).
"""

import asyncio
import os
from contextlib import asynccontextmanager
from typing import Callable, Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from claude_monitor.config import PID_FILE, MonitorConfig, load_config
from claude_monitor.daemon.push import PushChannel
from claude_monitor.daemon.registry import SessionRegistry
from claude_monitor.daemon.sweeper import LivenessSweeper, is_process_alive
from claude_monitor.logger import get_logger, setup_logging
from claude_monitor.notify import Notifier, TransitionAlerts, create_notifier
from claude_monitor.routes.health_routes import daemon_status, health_check
from claude_monitor.routes.responses import error
from claude_monitor.routes.session_routes import (
    create_session,
    delete_session,
    end_tool_call,
    get_session,
    get_session_history,
    get_session_stats,
    list_events,
    list_prompts,
    list_sessions,
    list_tool_calls,
    start_tool_call,
    submit_prompt,
    update_session,
)
from claude_monitor.routes.ws_routes import push_websocket_endpoint
from claude_monitor.validation import INTERNAL_ERROR, ValidationError

logger = get_logger(__name__)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return error(exc.code, exc.message, status_code=400)


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return error(INTERNAL_ERROR, "Internal server error", status_code=500)


def create_app(
    config: Optional[MonitorConfig] = None,
    registry: Optional[SessionRegistry] = None,
    notifier: Optional[Notifier] = None,
    probe: Callable[[int], bool] = is_process_alive,
) -> Starlette:
    """
    Build the daemon application.

    Args:
        config: Effective configuration; loaded from file/env when omitted.
        registry: Session registry to serve; a fresh one when omitted.
        notifier: Alert back-end; picked per platform when omitted.
        probe: Process liveness probe used by the sweeper.
    """
    config = config or load_config()
    registry = registry or SessionRegistry()
    notifier = notifier or create_notifier()

    push_channel = PushChannel(registry)
    alerts = TransitionAlerts(notifier, config)
    sweeper = LivenessSweeper(
        registry,
        notifier,
        interval_ms=config.check_interval,
        probe=probe,
        notify_enabled=config.notifications.session_end,
        notify_timeout=config.notify_timeout,
        notify_duration_ms=config.durations.session_end,
    )

    registry.add_listener(push_channel)
    registry.add_listener(alerts)

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Daemon startup")
        if config.sweeper_enabled:
            sweeper.start()
        try:
            yield
        finally:
            logger.info("Daemon shutdown - stopping sweeper and closing subscribers")
            await sweeper.stop()
            await push_channel.close_all()
            await alerts.drain()

    app = Starlette(
        routes=[
            Route("/api/health", health_check, methods=["GET"]),
            Route("/api/status", daemon_status, methods=["GET"]),
            Route("/api/events", list_events, methods=["GET"]),
            Route("/api/sessions", list_sessions, methods=["GET"]),
            Route("/api/sessions", create_session, methods=["POST"]),
            Route("/api/sessions/{pid}", get_session, methods=["GET"]),
            Route("/api/sessions/{pid}", update_session, methods=["PATCH"]),
            Route("/api/sessions/{pid}", delete_session, methods=["DELETE"]),
            Route("/api/sessions/{pid}/history", get_session_history, methods=["GET"]),
            Route("/api/sessions/{pid}/prompts", submit_prompt, methods=["POST"]),
            Route("/api/sessions/{pid}/prompts", list_prompts, methods=["GET"]),
            Route("/api/sessions/{pid}/tools", start_tool_call, methods=["POST"]),
            Route("/api/sessions/{pid}/tools", list_tool_calls, methods=["GET"]),
            Route(
                "/api/sessions/{pid}/tools/{tool_call_id}",
                end_tool_call,
                methods=["PATCH"],
            ),
            Route("/api/sessions/{pid}/stats", get_session_stats, methods=["GET"]),
            WebSocketRoute("/ws", push_websocket_endpoint),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["*"],
                allow_headers=["*"],
            )
        ],
        exception_handlers={
            ValidationError: validation_error_handler,
            Exception: internal_error_handler,
        },
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.registry = registry
    app.state.notifier = notifier
    app.state.push_channel = push_channel
    app.state.sweeper = sweeper
    app.state.alerts = alerts
    return app


def _write_pid_file() -> None:
    try:
        PID_FILE.parent.mkdir(parents=True, exist_ok=True)
        PID_FILE.write_text(str(os.getpid()), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not write pid file {PID_FILE}: {e}")


def _remove_pid_file() -> None:
    try:
        if PID_FILE.exists() and PID_FILE.read_text(encoding="utf-8").strip() == str(
            os.getpid()
        ):
            PID_FILE.unlink()
    except OSError as e:
        logger.warning(f"Could not remove pid file {PID_FILE}: {e}")


def run(config: Optional[MonitorConfig] = None) -> None:
    """Run the daemon in the foreground until SIGINT/SIGTERM."""
    import uvicorn

    config = config or load_config()
    setup_logging(level=config.log_level, log_file=config.log_file)

    app = create_app(config)

    async def main():
        server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=config.host,
                port=config.port,
                log_level=config.log_level.lower(),
                ws="wsproto",
            )
        )
        logger.info(f"Claude Monitor daemon starting on http://{config.host}:{config.port}")
        logger.info(f"Health: http://{config.host}:{config.port}/api/health")
        _write_pid_file()
        try:
            await server.serve()
        finally:
            _remove_pid_file()

    asyncio.run(main())


if __name__ == "__main__":
    run()
