# appforge/lib/channel.py
"""
Live update channel.

Pipeline stages and the auto-deploy trigger push `{type, content, timestamp}`
events through a LiveChannel. Delivery is best effort: a failed push is
logged and never interrupts the work that produced it.
"""
from datetime import datetime, timezone
from typing import Any, Protocol

from appforge.core.logging import log
from appforge.lib.websocket import ConnectionManager


class LiveChannel(Protocol):
    async def push(self, event_type: str, content: Any) -> None:
        ...


def make_event(event_type: str, content: Any) -> dict:
    return {
        "type": event_type,
        "content": content,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class ProjectChannel:
    """LiveChannel bound to one document's WebSocket subscribers."""

    def __init__(self, manager: ConnectionManager, document_id: str):
        self.manager = manager
        self.document_id = document_id

    async def push(self, event_type: str, content: Any) -> None:
        try:
            delivered = await self.manager.send_to_document(self.document_id, make_event(event_type, content))
        except Exception as e:
            log("WS", f"⚠️ Failed to push {event_type}: {e}", project_id=self.document_id)
            return
        log("WS", f"📡 {event_type} -> {delivered} client(s)", project_id=self.document_id)
