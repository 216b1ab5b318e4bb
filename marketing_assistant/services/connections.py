from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from fastapi import WebSocket


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Connection:
    websocket: WebSocket
    loop: asyncio.AbstractEventLoop


class ConnectionRegistry:
    """
    Per-user set of open WebSocket connections.

    Delivery is best-effort: events for users without a connection are dropped,
    and a connection that fails to send is removed.
    """

    def __init__(self) -> None:
        self._connections: dict[str, set[_Connection]] = defaultdict(set)
        self._lock = threading.Lock()

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        connection = _Connection(websocket=websocket, loop=asyncio.get_running_loop())
        with self._lock:
            self._connections[user_id].add(connection)
        logger.info("WebSocket connected", extra={"user_id": user_id, "connections": self.count(user_id)})

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        with self._lock:
            remaining = {conn for conn in self._connections.get(user_id, set()) if conn.websocket is not websocket}
            if remaining:
                self._connections[user_id] = remaining
            else:
                self._connections.pop(user_id, None)
        logger.info("WebSocket disconnected", extra={"user_id": user_id})

    def count(self, user_id: str) -> int:
        with self._lock:
            return len(self._connections.get(user_id, ()))

    def publish(self, user_id: str, event: dict[str, Any]) -> int:
        """Push `event` to every connection of `user_id`; callable from worker threads."""
        with self._lock:
            targets = list(self._connections.get(user_id, ()))
        for connection in targets:
            future = asyncio.run_coroutine_threadsafe(connection.websocket.send_json(event), connection.loop)
            future.add_done_callback(lambda fut, conn=connection: self._on_sent(user_id, conn, fut))
        return len(targets)

    def _on_sent(self, user_id: str, connection: _Connection, future) -> None:
        if future.cancelled() or future.exception() is None:
            return
        logger.warning(
            "WebSocket push failed; dropping connection",
            extra={"user_id": user_id, "error": str(future.exception())},
        )
        self.disconnect(user_id, connection.websocket)
