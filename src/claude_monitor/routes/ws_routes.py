"""
WebSocket endpoint for the push channel (/ws).
"""

from starlette.websockets import WebSocket, WebSocketDisconnect

from claude_monitor.logger import get_logger

logger = get_logger(__name__)


async def push_websocket_endpoint(websocket: WebSocket):
    """
    Push channel connection.

    1. Viewer connects to /ws
    2. Server sends the ``init`` snapshot
    3. Server streams broadcasts; viewer may send ``kill_session``
    """
    channel = getattr(websocket.app.state, "push_channel", None)
    if channel is None:
        await websocket.close(code=1011, reason="Push channel not initialized")
        return

    await websocket.accept()
    subscriber = channel.subscribe(websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            channel.handle_client_message(raw)
    except WebSocketDisconnect:
        logger.debug(f"Push subscriber {subscriber.subscriber_id} went away")
    except Exception as e:
        logger.error(f"Push channel error: {e}")
    finally:
        await channel.unsubscribe(subscriber)
