# appforge/lib/websocket.py
from typing import Dict, List
import asyncio

from fastapi import WebSocket

from appforge.core.logging import log


class ConnectionManager:
    """
    Per-document WebSocket connection manager.

    Each document_id has its own list of connections; pipeline and deployment
    events for that document are fanned out to all of them.
    """

    def __init__(self) -> None:
        # document_id -> list[WebSocket]
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, document_id: str) -> None:
        await websocket.accept()
        async with self._lock:
            self.active_connections.setdefault(document_id, []).append(websocket)
        log("WS", f"🔌 Client connected ({len(self.active_connections[document_id])} open)", project_id=document_id)

    async def disconnect(self, websocket: WebSocket, document_id: str) -> None:
        async with self._lock:
            connections = self.active_connections.get(document_id, [])
            if websocket in connections:
                connections.remove(websocket)
            if not connections and document_id in self.active_connections:
                del self.active_connections[document_id]

    def connection_count(self, document_id: str) -> int:
        return len(self.active_connections.get(document_id, []))

    async def send_to_document(self, document_id: str, message: dict) -> int:
        """
        Send a JSON message to every client watching document_id.

        Returns the number of clients that received it. Dead sockets are
        dropped.
        """
        async with self._lock:
            connections = list(self.active_connections.get(document_id, []))

        disconnected: List[WebSocket] = []
        delivered = 0
        for ws in connections:
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception:
                disconnected.append(ws)

        for ws in disconnected:
            await self.disconnect(ws, document_id)
        return delivered
