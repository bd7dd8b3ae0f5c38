"""
Push Channel: fan registry changes out to connected dashboard viewers.

Every subscriber owns a bounded FIFO queue drained by its own writer task,
so a slow viewer never holds up the registry or the other viewers, and each
viewer receives broadcasts in exactly the order the registry produced them.

Protocol:
    Server -> Client (once, on connect):
        {"type": "init", "sessions": [...], "events": [...]}

    Server -> Client (broadcast):
        session_update, session_removed, new_event,
        new_prompt, tool_start, tool_end

    Client -> Server:
        {"type": "kill_session", "pid": 1234}
        {"type": "subscribe"}  (accepted, no effect)
"""

import asyncio
import json
import uuid
from typing import Any, Callable, Optional

from pydantic import ValidationError
from starlette.websockets import WebSocket, WebSocketState

from claude_monitor.daemon.registry import SessionRegistry
from claude_monitor.logger import get_logger
from claude_monitor.models import (
    ChangeMessage,
    InitMessage,
    KillSessionMessage,
    SubscribeMessage,
)

logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 1000

# Close code sent to a viewer that falls too far behind ("try again later").
SLOW_CONSUMER_CLOSE_CODE = 1013
GOING_AWAY_CLOSE_CODE = 1001


class Subscriber:
    """One connected viewer and its outbound message queue."""

    def __init__(
        self,
        websocket: WebSocket,
        subscriber_id: Optional[str] = None,
        max_queue: int = DEFAULT_QUEUE_SIZE,
        on_gone: Optional[Callable[["Subscriber"], None]] = None,
    ):
        self.subscriber_id = subscriber_id or uuid.uuid4().hex[:8]
        self._ws = websocket
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max_queue)
        self._loop = asyncio.get_running_loop()
        self._on_gone = on_gone
        self._writer: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    def start(self) -> None:
        self._writer = self._loop.create_task(self._drain())

    def enqueue(self, text: str) -> bool:
        """
        Queue a serialized message for delivery.

        Safe to call from any thread; the put always happens on the
        subscriber's event loop.

        Returns:
            False if the subscriber is already closed.
        """
        if self._closed:
            return False

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._put(text)
        else:
            self._loop.call_soon_threadsafe(self._put, text)
        return True

    def _put(self, text: str) -> None:
        if self._closed:
            return
        try:
            self._queue.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning(
                f"Subscriber {self.subscriber_id} is not keeping up, disconnecting"
            )
            self._loop.create_task(self.close(code=SLOW_CONSUMER_CLOSE_CODE))

    async def _drain(self) -> None:
        try:
            while True:
                text = await self._queue.get()
                if not self.is_open:
                    break
                await self._ws.send_text(text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.info(f"Subscriber {self.subscriber_id} send failed: {e}")
        finally:
            self._mark_gone()

    def _mark_gone(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_gone:
            self._on_gone(self)

    async def close(self, code: int = GOING_AWAY_CLOSE_CODE) -> None:
        """Stop the writer and close the socket if it is still open."""
        was_open = self.is_open
        self._mark_gone()

        writer, self._writer = self._writer, None
        if writer and writer is not asyncio.current_task():
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass

        if was_open:
            try:
                await self._ws.close(code=code)
            except Exception as e:
                logger.debug(f"Closing subscriber {self.subscriber_id}: {e}")


class PushChannel:
    """
    Set of connected subscribers plus the registry listener that feeds them.

    Register the channel itself as a registry listener:
        registry.add_listener(channel)
    """

    def __init__(self, registry: SessionRegistry, max_queue: int = DEFAULT_QUEUE_SIZE):
        self.registry = registry
        self.max_queue = max_queue
        self.subscribers: dict[str, Subscriber] = {}

    def __call__(self, message: ChangeMessage) -> None:
        self.broadcast(message)

    @property
    def count(self) -> int:
        return len(self.subscribers)

    def subscribe(self, websocket: WebSocket) -> Subscriber:
        """
        Add an accepted WebSocket as a subscriber.

        The snapshot is queued and the subscriber registered while holding
        the registry lock, so the snapshot is the first message it receives
        and no change falls between the snapshot and the first broadcast.
        """
        subscriber = Subscriber(
            websocket, max_queue=self.max_queue, on_gone=self._prune
        )
        with self.registry.lock:
            snapshot = InitMessage(
                sessions=self.registry.get_all(),
                events=self.registry.get_events(),
            )
            subscriber.enqueue(json.dumps(snapshot.to_wire()))
            self.subscribers[subscriber.subscriber_id] = subscriber

        subscriber.start()
        logger.info(
            f"Push subscriber {subscriber.subscriber_id} connected. "
            f"Total: {self.count}"
        )
        return subscriber

    async def unsubscribe(self, subscriber: Subscriber) -> None:
        await subscriber.close()
        self._prune(subscriber)

    def _prune(self, subscriber: Subscriber) -> None:
        if self.subscribers.pop(subscriber.subscriber_id, None) is not None:
            logger.info(
                f"Push subscriber {subscriber.subscriber_id} disconnected. "
                f"Total: {self.count}"
            )

    def broadcast(self, message: ChangeMessage) -> int:
        """
        Queue ``message`` for every open subscriber.

        Returns:
            Number of subscribers the message was queued for.
        """
        text = json.dumps(message.to_wire())
        delivered = 0
        for subscriber in list(self.subscribers.values()):
            if subscriber.enqueue(text):
                delivered += 1
        return delivered

    def handle_client_message(self, raw: str) -> None:
        """Process one inbound message from a viewer."""
        try:
            data: Any = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse push channel message: {e}")
            return

        if not isinstance(data, dict):
            logger.warning("Ignoring push channel message that is not an object")
            return

        msg_type = data.get("type")

        if msg_type == "kill_session":
            try:
                msg = KillSessionMessage(**data)
            except ValidationError:
                logger.warning("Malformed kill_session message")
                return
            if not self.registry.kill(msg.pid):
                logger.warning(f"kill_session for unknown session {msg.pid}")

        elif msg_type == "subscribe":
            try:
                SubscribeMessage(**data)
            except ValidationError:
                logger.warning("Malformed subscribe message")
                return
            logger.debug("Subscribe hint received")

        else:
            logger.warning(f"Unknown push channel message type '{msg_type}'")

    async def close_all(self) -> None:
        """Close every subscriber connection (shutdown)."""
        subscribers = list(self.subscribers.values())
        for subscriber in subscribers:
            await subscriber.close(code=GOING_AWAY_CLOSE_CODE)
        self.subscribers.clear()
        if subscribers:
            logger.info(f"Closed {len(subscribers)} push subscribers")
