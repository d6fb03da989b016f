"""WebSocket endpoint for live seat holds."""

import logging
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..realtime.handler import RealtimeHandler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/realtime", tags=["realtime"])


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket) -> None:
    """
    Bidirectional seat-hold channel.

    Every message, in either direction, is a JSON object
    ``{"event": name, "data": payload}``. Closing the socket releases
    every hold taken over it.
    """
    handler: RealtimeHandler = websocket.app.state.realtime_handler
    connection_id = str(uuid4())

    await websocket.accept()
    await handler.connect(connection_id, websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            # Text and binary frames carry the same JSON envelope
            await handler.handle(connection_id, message.get("text") or message.get("bytes") or "")
    except WebSocketDisconnect:
        logger.debug("WebSocket closed by client", extra={"connection_id": connection_id})
    finally:
        await handler.disconnect(connection_id)
