# appforge/deploy/supervisor.py
"""
Supervisor for fire-and-forget work.

Every background task is referenced until it finishes, its failures are
logged and counted, and shutdown cancels whatever is still running.
"""
import asyncio
import logging
from typing import Any, Coroutine, Set

from appforge.core.logging import log
from appforge.lib.monitoring import background_failures


logger = logging.getLogger(__name__)


class BackgroundSupervisor:
    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], kind: str = "background") -> asyncio.Task:
        task = asyncio.create_task(self._guarded(coro, kind), name=kind)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guarded(self, coro: Coroutine[Any, Any, Any], kind: str) -> Any:
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            background_failures.labels(task=kind).inc()
            logger.exception("Background task %s failed", kind)
            log("AUTO-DEPLOY", f"❌ Background task {kind} failed: {e}")
            return None

    async def drain(self) -> None:
        """Wait for every task spawned so far, including ones they spawn."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        log("AUTO-DEPLOY", f"🔌 Background supervisor stopped ({len(pending)} cancelled)")
