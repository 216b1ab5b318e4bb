import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from marketing_assistant.services.connections import ConnectionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/{user_id}")
async def user_events(websocket: WebSocket, user_id: str) -> None:
    """Tool status events for one user. Clients may send `ping` and get `pong` back."""
    registry: ConnectionRegistry = websocket.app.state.connections
    await registry.connect(user_id, websocket)
    try:
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info("WebSocket client closed", extra={"user_id": user_id})
    finally:
        registry.disconnect(user_id, websocket)
