"""
Shared HTTP helpers for CLI commands that talk to the running daemon.
"""

import os
from typing import Optional

import httpx
import typer

from claude_monitor.config import DEFAULT_PORT


def get_server_url() -> str:
    """Daemon base URL from the environment, or the local default."""
    if url := os.getenv("CLAUDE_MONITOR_URL"):
        return url.rstrip("/")
    host = os.getenv("CLAUDE_MONITOR_HOST", "localhost")
    port = os.getenv("CLAUDE_MONITOR_PORT") or str(DEFAULT_PORT)
    return f"http://{host}:{port}"


def _error_detail(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except Exception:
        return f"HTTP {response.status_code}"


def _request(method: str, path: str, data: Optional[dict] = None, timeout: float = 10.0):
    url = f"{get_server_url()}{path}"
    try:
        resp = httpx.request(method, url, json=data, timeout=timeout)
        resp.raise_for_status()
        return resp.json().get("data")
    except httpx.ConnectError:
        typer.echo("❌ Cannot connect to the Claude Monitor daemon. Is it running?")
        raise typer.Exit(code=1)
    except httpx.HTTPStatusError as e:
        typer.echo(f"❌ Server error: {_error_detail(e.response)}")
        raise typer.Exit(code=1)
    except httpx.HTTPError as e:
        typer.echo(f"❌ Error: {e}")
        raise typer.Exit(code=1)


def _http_get(path: str):
    """GET from the daemon and return the ``data`` field of the envelope."""
    return _request("GET", path)


def _http_delete(path: str):
    """DELETE on the daemon and return the ``data`` field of the envelope."""
    return _request("DELETE", path)


def is_daemon_running(timeout: float = 2.0) -> bool:
    """True if the health probe answers."""
    try:
        resp = httpx.get(f"{get_server_url()}/api/health", timeout=timeout)
        return resp.status_code == 200
    except httpx.HTTPError:
        return False
