"""
Request API routes for sessions, prompts, tool calls and events.

Hook scripts of the coding assistant call these endpoints:
- POST   /api/sessions                              register a session
- GET    /api/sessions                              list sessions
- GET    /api/sessions/{pid}                        one session
- PATCH  /api/sessions/{pid}                        update status
- DELETE /api/sessions/{pid}                        end a session
- GET    /api/sessions/{pid}/history                session with history
- POST   /api/sessions/{pid}/prompts                record a prompt
- GET    /api/sessions/{pid}/prompts                prompt history
- POST   /api/sessions/{pid}/tools                  start a tool call
- PATCH  /api/sessions/{pid}/tools/{tool_call_id}   end a tool call
- GET    /api/sessions/{pid}/tools                  tool-call history
- GET    /api/sessions/{pid}/stats                  prompt/tool counts
- GET    /api/events                                recent events

``ValidationError`` raised here is turned into a 400 response by the
application's exception handler.
"""

from starlette.requests import Request
from starlette.responses import JSONResponse

from claude_monitor.daemon.registry import SessionRegistry
from claude_monitor.logger import get_logger
from claude_monitor.models import (
    PromptSubmitRequest,
    RegisterSessionRequest,
    SessionStats,
    ToolEndRequest,
    ToolStartRequest,
    UpdateSessionRequest,
)
from claude_monitor.routes.responses import error, success
from claude_monitor.validation import (
    SESSION_NOT_FOUND,
    TOOL_CALL_NOT_FOUND,
    parse_pid,
    read_body,
)

logger = get_logger(__name__)


def _get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def _session_not_found(pid: int) -> JSONResponse:
    return error(SESSION_NOT_FOUND, f"Session with PID {pid} not found", 404)


async def create_session(request: Request) -> JSONResponse:
    """POST /api/sessions — register (or re-register) a session."""
    body = await read_body(request, RegisterSessionRequest)
    session = _get_registry(request).register(
        pid=body.pid,
        ppid=body.ppid,
        terminal=body.terminal,
        cwd=body.cwd,
    )
    return success(session, status_code=201)


async def list_sessions(request: Request) -> JSONResponse:
    """GET /api/sessions — all live sessions."""
    return success(_get_registry(request).get_all())


async def get_session(request: Request) -> JSONResponse:
    """GET /api/sessions/{pid} — one session."""
    pid = parse_pid(request.path_params["pid"])
    session = _get_registry(request).get(pid)
    if session is None:
        return _session_not_found(pid)
    return success(session)


async def update_session(request: Request) -> JSONResponse:
    """PATCH /api/sessions/{pid} — change status and optional message."""
    pid = parse_pid(request.path_params["pid"])
    body = await read_body(request, UpdateSessionRequest)

    session = _get_registry(request).update_status(pid, body.status, body.message)
    if session is None:
        return _session_not_found(pid)
    return success(session)


async def delete_session(request: Request) -> JSONResponse:
    """DELETE /api/sessions/{pid} — end a session."""
    pid = parse_pid(request.path_params["pid"])
    if not _get_registry(request).delete(pid):
        return _session_not_found(pid)
    return success(None)


async def get_session_history(request: Request) -> JSONResponse:
    """GET /api/sessions/{pid}/history — session with prompt and tool history."""
    pid = parse_pid(request.path_params["pid"])
    session = _get_registry(request).get_with_history(pid)
    if session is None:
        return _session_not_found(pid)
    return success(session)


async def submit_prompt(request: Request) -> JSONResponse:
    """POST /api/sessions/{pid}/prompts — record a user prompt."""
    pid = parse_pid(request.path_params["pid"])
    body = await read_body(request, PromptSubmitRequest)

    prompt = _get_registry(request).add_prompt(pid, body.prompt)
    if prompt is None:
        return _session_not_found(pid)
    return success(prompt, status_code=201)


async def list_prompts(request: Request) -> JSONResponse:
    """GET /api/sessions/{pid}/prompts — newest first."""
    pid = parse_pid(request.path_params["pid"])
    registry = _get_registry(request)
    if registry.get(pid) is None:
        return _session_not_found(pid)
    return success(registry.get_prompts(pid))


async def start_tool_call(request: Request) -> JSONResponse:
    """POST /api/sessions/{pid}/tools — a tool call started."""
    pid = parse_pid(request.path_params["pid"])
    body = await read_body(request, ToolStartRequest)

    tool_call = _get_registry(request).start_tool_call(pid, body.tool, body.input)
    if tool_call is None:
        return _session_not_found(pid)
    return success(tool_call, status_code=201)


async def end_tool_call(request: Request) -> JSONResponse:
    """PATCH /api/sessions/{pid}/tools/{tool_call_id} — a tool call finished."""
    pid = parse_pid(request.path_params["pid"])
    tool_call_id = request.path_params["tool_call_id"]
    body = await read_body(request, ToolEndRequest)

    tool_call = _get_registry(request).end_tool_call(
        tool_call_id, success=body.success, error=body.error, pid=pid
    )
    if tool_call is None:
        return error(TOOL_CALL_NOT_FOUND, f"Tool call {tool_call_id} not found", 404)
    return success(tool_call)


async def list_tool_calls(request: Request) -> JSONResponse:
    """GET /api/sessions/{pid}/tools — newest first."""
    pid = parse_pid(request.path_params["pid"])
    registry = _get_registry(request)
    if registry.get(pid) is None:
        return _session_not_found(pid)
    return success(registry.get_tool_calls(pid))


async def get_session_stats(request: Request) -> JSONResponse:
    """GET /api/sessions/{pid}/stats — prompt count and tool calls by name."""
    pid = parse_pid(request.path_params["pid"])
    registry = _get_registry(request)
    if registry.get(pid) is None:
        return _session_not_found(pid)

    tool_stats = registry.get_tool_stats(pid)
    stats = SessionStats(
        prompts=len(registry.get_prompts(pid)),
        tool_calls=tool_stats.total_calls,
        by_tool=tool_stats.by_tool,
    )
    return success(stats)


async def list_events(request: Request) -> JSONResponse:
    """GET /api/events — recent events, newest first."""
    return success(_get_registry(request).get_events())
