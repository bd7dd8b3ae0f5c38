"""
Pydantic models for Claude Monitor.

Covers:
- Session state (sessions, events, prompts, tool calls)
- REST API request bodies
- Push channel messages (server -> client and client -> server)

Every model serializes with camelCase keys, which is what the dashboard and
the hook scripts speak.
"""

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Largest pid the OS can hand out (pid_t is a signed 32-bit int).
MAX_PID = 2**31 - 1


class WireModel(BaseModel):
    """Base model with camelCase aliases on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ─── Enumerations ────────────────────────────────────────────────────


class SessionStatus(str, Enum):
    """Activity state of a tracked session.

    There is no ``ended`` member: an ended session is removed from the registry.
    """

    IDLE = "idle"
    THINKING = "thinking"
    EXECUTING = "executing"
    WAITING_INPUT = "waiting_input"
    DONE = "done"


class TerminalType(str, Enum):
    VSCODE = "vscode"
    ITERM = "iterm"
    WARP = "warp"
    TERMINAL = "terminal"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "TerminalType":
        """Map a ``TERM_PROGRAM``-style value to a terminal, exact match only."""
        if not raw:
            return cls.UNKNOWN
        return TERMINAL_ALIASES.get(raw, cls.UNKNOWN)


TERMINAL_ALIASES: dict[str, TerminalType] = {
    "vscode": TerminalType.VSCODE,
    "iTerm.app": TerminalType.ITERM,
    "iTerm": TerminalType.ITERM,
    "WarpTerminal": TerminalType.WARP,
    "Warp": TerminalType.WARP,
    "Apple_Terminal": TerminalType.TERMINAL,
    "Terminal": TerminalType.TERMINAL,
}


class SessionEventType(str, Enum):
    STARTED = "started"
    ENDED = "ended"
    WAITING = "waiting"
    RESUMED = "resumed"
    KILLED = "killed"


class ToolCallStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


# ─── Session State ───────────────────────────────────────────────────


class Session(WireModel):
    """One live coding-assistant process."""

    pid: int
    ppid: int
    terminal: TerminalType
    cwd: str
    project: str
    status: SessionStatus
    started_at: int
    updated_at: int
    message: Optional[str] = None


class SessionEvent(WireModel):
    """Immutable record of a session transition."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: SessionEventType
    pid: int
    project: str
    timestamp: int
    message: Optional[str] = None


class UserPrompt(WireModel):
    id: str
    session_id: int
    prompt: str
    timestamp: int


class ToolCall(WireModel):
    id: str
    session_id: int
    tool: str
    input: dict[str, Any] = Field(default_factory=dict)
    status: ToolCallStatus = ToolCallStatus.PENDING
    started_at: int
    completed_at: Optional[int] = None
    duration: Optional[int] = None
    error: Optional[str] = None


class ToolStats(WireModel):
    total_calls: int = 0
    by_tool: dict[str, int] = Field(default_factory=dict)


class SessionWithHistory(Session):
    """Session plus its retained prompt and tool-call history."""

    prompt_history: list[UserPrompt] = Field(default_factory=list)
    tool_history: list[ToolCall] = Field(default_factory=list)
    tool_stats: ToolStats = Field(default_factory=ToolStats)


class SessionStats(WireModel):
    """GET /api/sessions/{pid}/stats payload."""

    prompts: int
    tool_calls: int
    by_tool: dict[str, int]


class HealthStatus(WireModel):
    status: str = "ok"
    sessions: int


# ─── REST API Requests ───────────────────────────────────────────────


class RegisterSessionRequest(WireModel):
    """POST /api/sessions request body."""

    pid: int = Field(gt=0, le=MAX_PID, strict=True)
    ppid: int = Field(gt=0, le=MAX_PID, strict=True)
    cwd: str = Field(min_length=1)
    terminal: Optional[str] = None


class UpdateSessionRequest(WireModel):
    """PATCH /api/sessions/{pid} request body."""

    status: SessionStatus
    message: Optional[str] = None


class PromptSubmitRequest(WireModel):
    prompt: str = Field(min_length=1)


class ToolStartRequest(WireModel):
    tool: str = Field(min_length=1)
    input: Optional[dict[str, Any]] = None

    @field_validator("input", mode="after")
    @classmethod
    def _default_input(cls, value: Optional[dict[str, Any]]) -> dict[str, Any]:
        return value or {}


class ToolEndRequest(WireModel):
    success: bool = True
    error: Optional[str] = None


# ─── Push Channel: Server -> Client ──────────────────────────────────


class InitMessage(WireModel):
    """Snapshot sent once to a newly connected subscriber."""

    type: Literal["init"] = "init"
    sessions: list[Session]
    events: list[SessionEvent]


class SessionUpdateMessage(WireModel):
    type: Literal["session_update"] = "session_update"
    session: Session


class SessionRemovedMessage(WireModel):
    type: Literal["session_removed"] = "session_removed"
    pid: int


class NewEventMessage(WireModel):
    type: Literal["new_event"] = "new_event"
    event: SessionEvent


class NewPromptMessage(WireModel):
    type: Literal["new_prompt"] = "new_prompt"
    session_id: int
    prompt: UserPrompt


class ToolStartMessage(WireModel):
    type: Literal["tool_start"] = "tool_start"
    session_id: int
    tool_call: ToolCall


class ToolEndMessage(WireModel):
    type: Literal["tool_end"] = "tool_end"
    session_id: int
    tool_call_id: str
    duration: int
    success: bool


ChangeMessage = Union[
    SessionUpdateMessage,
    SessionRemovedMessage,
    NewEventMessage,
    NewPromptMessage,
    ToolStartMessage,
    ToolEndMessage,
]

ServerMessage = Union[InitMessage, ChangeMessage]


# ─── Push Channel: Client -> Server ──────────────────────────────────


class KillSessionMessage(WireModel):
    type: Literal["kill_session"] = "kill_session"
    pid: int


class SubscribeMessage(WireModel):
    """Accepted for compatibility; every subscriber already gets everything."""

    type: Literal["subscribe"] = "subscribe"
    session_ids: Optional[list[int]] = None


ClientMessage = Union[KillSessionMessage, SubscribeMessage]
