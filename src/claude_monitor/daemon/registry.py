"""
Session Registry for Claude Monitor.

Owns every Session record plus the per-session prompt and tool-call history.
It is the only writer of that state: the event log, the push channel and the
notification layer observe it through change listeners.

Records are replaced rather than mutated in place, so a Session or ToolCall
handed to a listener keeps describing the state at the moment of the change.
"""

import threading
from typing import Any, Callable, Optional

from claude_monitor.daemon.events import MAX_EVENTS, EventLog
from claude_monitor.logger import get_logger
from claude_monitor.models import (
    ChangeMessage,
    NewEventMessage,
    NewPromptMessage,
    Session,
    SessionEvent,
    SessionEventType,
    SessionRemovedMessage,
    SessionStatus,
    SessionUpdateMessage,
    SessionWithHistory,
    TerminalType,
    ToolCall,
    ToolCallStatus,
    ToolEndMessage,
    ToolStartMessage,
    ToolStats,
    UserPrompt,
)
from claude_monitor.utils import now_ms, project_name, random_suffix

logger = get_logger(__name__)

MAX_PROMPTS_PER_SESSION = 10
MAX_TOOL_CALLS_PER_SESSION = 50

ChangeListener = Callable[[ChangeMessage], None]


class SessionRegistry:
    """
    In-memory store of live sessions keyed by pid.

    Every compound read-modify-write runs under one re-entrant lock. Change
    listeners are called synchronously inside that lock, after the mutation,
    so they observe changes in their serialized order. Listeners must not
    block; the push channel only enqueues.
    """

    def __init__(
        self,
        clock: Callable[[], int] = now_ms,
        max_events: int = MAX_EVENTS,
    ):
        self._clock = clock
        self._lock = threading.RLock()
        self._sessions: dict[int, Session] = {}
        self._prompts: dict[int, list[UserPrompt]] = {}
        self._tool_calls: dict[int, list[ToolCall]] = {}
        self._pending_tools: dict[str, ToolCall] = {}
        self._listeners: list[ChangeListener] = []
        self.events = EventLog(capacity=max_events, clock=clock)

    @property
    def lock(self) -> threading.RLock:
        """The registry lock; hold it to read a consistent snapshot."""
        return self._lock

    # -- Listeners -----------------------------------------------------------

    def add_listener(self, listener: ChangeListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _emit(self, message: ChangeMessage) -> None:
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as e:
                logger.error(f"Registry listener failed on {message.type}: {e}")

    def _record_event(
        self, event_type: SessionEventType, session: Session
    ) -> SessionEvent:
        event = self.events.append(event_type, session)
        self._emit(NewEventMessage(event=event))
        return event

    def _touch(self, session: Session, **changes: Any) -> Session:
        """Store a copy of ``session`` with ``changes`` and a fresh updatedAt."""
        updated_at = max(self._clock(), session.updated_at)
        updated = session.model_copy(update={**changes, "updated_at": updated_at})
        self._sessions[session.pid] = updated
        return updated

    # -- Sessions ------------------------------------------------------------

    def register(
        self, pid: int, ppid: int, terminal: Optional[str], cwd: str
    ) -> Session:
        """
        Register a session, replacing any existing record for ``pid``.

        Args:
            pid: Process id of the assistant process.
            ppid: Process id of the owning terminal process.
            terminal: Raw terminal program name; unknown values map to "unknown".
            cwd: Working directory of the session.

        Returns:
            The new session, in the ``idle`` state.
        """
        with self._lock:
            now = self._clock()
            session = Session(
                pid=pid,
                ppid=ppid,
                terminal=TerminalType.from_raw(terminal),
                cwd=cwd,
                project=project_name(cwd),
                status=SessionStatus.IDLE,
                started_at=now,
                updated_at=now,
            )
            if pid in self._sessions:
                logger.info(f"Re-registering session {pid}, previous record dropped")
            self._discard_history(pid)
            self._sessions[pid] = session

            self._emit(SessionUpdateMessage(session=session))
            self._record_event(SessionEventType.STARTED, session)
            logger.info(f"Registered session {pid} ({session.project})")
            return session

    def get(self, pid: int) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(pid)

    def get_all(self) -> list[Session]:
        with self._lock:
            return list(self._sessions.values())

    def update_status(
        self, pid: int, status: SessionStatus, message: Optional[str] = None
    ) -> Optional[Session]:
        """
        Change the status of a session.

        Entering ``waiting_input`` records a ``waiting`` event and leaving it
        records a ``resumed`` event. Other transitions record nothing.

        Returns:
            The updated session, or None if ``pid`` is not registered.
        """
        with self._lock:
            current = self._sessions.get(pid)
            if current is None:
                return None

            changes: dict[str, Any] = {"status": status}
            if message is not None:
                changes["message"] = message
            session = self._touch(current, **changes)

            self._emit(SessionUpdateMessage(session=session))

            was_waiting = current.status == SessionStatus.WAITING_INPUT
            is_waiting = status == SessionStatus.WAITING_INPUT
            if is_waiting and not was_waiting:
                self._record_event(SessionEventType.WAITING, session)
            elif was_waiting and not is_waiting:
                self._record_event(SessionEventType.RESUMED, session)

            return session

    def delete(self, pid: int) -> bool:
        """
        Remove a session, recording an ``ended`` event first.

        Returns:
            True if the session existed, False otherwise.
        """
        return self._remove(pid, SessionEventType.ENDED)

    def kill(self, pid: int) -> bool:
        """Remove a session at a viewer's request, recording ``killed``."""
        return self._remove(pid, SessionEventType.KILLED)

    def _remove(self, pid: int, event_type: SessionEventType) -> bool:
        with self._lock:
            session = self._sessions.get(pid)
            if session is None:
                return False

            self._record_event(event_type, session)
            del self._sessions[pid]
            self._discard_history(pid)
            self._emit(SessionRemovedMessage(pid=pid))
            logger.info(f"Removed session {pid} ({session.project}): {event_type.value}")
            return True

    def _discard_history(self, pid: int) -> None:
        self._prompts.pop(pid, None)
        for call in self._tool_calls.pop(pid, []):
            self._pending_tools.pop(call.id, None)

    @property
    def count(self) -> int:
        """Number of live sessions."""
        with self._lock:
            return len(self._sessions)

    # -- Events --------------------------------------------------------------

    def get_events(self) -> list[SessionEvent]:
        with self._lock:
            return self.events.all()

    def clear_events(self) -> None:
        with self._lock:
            self.events.clear()

    # -- Prompts -------------------------------------------------------------

    def add_prompt(self, pid: int, prompt: str) -> Optional[UserPrompt]:
        """
        Record a prompt the user submitted in a session.

        Returns:
            The stored prompt, or None if ``pid`` is not registered.
        """
        with self._lock:
            session = self._sessions.get(pid)
            if session is None:
                return None

            timestamp = self._clock()
            user_prompt = UserPrompt(
                id=f"{pid}-prompt-{timestamp}-{random_suffix()}",
                session_id=pid,
                prompt=prompt,
                timestamp=timestamp,
            )
            prompts = self._prompts.setdefault(pid, [])
            prompts.insert(0, user_prompt)
            del prompts[MAX_PROMPTS_PER_SESSION:]

            self._touch(session)
            self._emit(NewPromptMessage(session_id=pid, prompt=user_prompt))
            return user_prompt

    def get_prompts(self, pid: int) -> list[UserPrompt]:
        with self._lock:
            return list(self._prompts.get(pid, []))

    # -- Tool calls ----------------------------------------------------------

    def start_tool_call(
        self, pid: int, tool: str, tool_input: Optional[dict[str, Any]] = None
    ) -> Optional[ToolCall]:
        """
        Record the start of a tool call in a session.

        Returns:
            The pending tool call, or None if ``pid`` is not registered.
        """
        with self._lock:
            session = self._sessions.get(pid)
            if session is None:
                return None

            started_at = self._clock()
            call = ToolCall(
                id=f"{pid}-tool-{started_at}-{random_suffix()}",
                session_id=pid,
                tool=tool,
                input=tool_input or {},
                started_at=started_at,
            )
            self._pending_tools[call.id] = call

            calls = self._tool_calls.setdefault(pid, [])
            calls.insert(0, call)
            for evicted in calls[MAX_TOOL_CALLS_PER_SESSION:]:
                self._pending_tools.pop(evicted.id, None)
            del calls[MAX_TOOL_CALLS_PER_SESSION:]

            self._touch(session)
            self._emit(ToolStartMessage(session_id=pid, tool_call=call))
            return call

    def end_tool_call(
        self,
        tool_call_id: str,
        success: bool,
        error: Optional[str] = None,
        pid: Optional[int] = None,
    ) -> Optional[ToolCall]:
        """
        Complete a pending tool call.

        Args:
            tool_call_id: Id returned by ``start_tool_call``.
            success: Whether the tool succeeded.
            error: Optional error text.
            pid: When given, the call must belong to this session.

        Returns:
            The completed call, or None if no such pending call exists.
        """
        with self._lock:
            pending = self._pending_tools.get(tool_call_id)
            if pending is None:
                return None
            if pid is not None and pending.session_id != pid:
                return None

            completed_at = max(self._clock(), pending.started_at)
            changes: dict[str, Any] = {
                "status": ToolCallStatus.SUCCESS if success else ToolCallStatus.ERROR,
                "completed_at": completed_at,
                "duration": completed_at - pending.started_at,
            }
            if error:
                changes["error"] = error
            call = pending.model_copy(update=changes)

            del self._pending_tools[tool_call_id]
            calls = self._tool_calls.get(call.session_id, [])
            for index, existing in enumerate(calls):
                if existing.id == tool_call_id:
                    calls[index] = call
                    break

            self._emit(
                ToolEndMessage(
                    session_id=call.session_id,
                    tool_call_id=call.id,
                    duration=call.duration,
                    success=call.status == ToolCallStatus.SUCCESS,
                )
            )
            return call

    def get_tool_calls(self, pid: int) -> list[ToolCall]:
        with self._lock:
            return list(self._tool_calls.get(pid, []))

    def get_tool_stats(self, pid: int) -> ToolStats:
        with self._lock:
            by_tool: dict[str, int] = {}
            calls = self._tool_calls.get(pid, [])
            for call in calls:
                by_tool[call.tool] = by_tool.get(call.tool, 0) + 1
            return ToolStats(total_calls=len(calls), by_tool=by_tool)

    def get_with_history(self, pid: int) -> Optional[SessionWithHistory]:
        """Session plus prompt history, tool history and tool stats."""
        with self._lock:
            session = self._sessions.get(pid)
            if session is None:
                return None
            return SessionWithHistory(
                **session.model_dump(),
                prompt_history=self.get_prompts(pid),
                tool_history=self.get_tool_calls(pid),
                tool_stats=self.get_tool_stats(pid),
            )
