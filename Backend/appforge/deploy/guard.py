# appforge/deploy/guard.py
"""
Deployment Guard - at most one deployment per application at a time.

The synchronous deploy stage and the background auto-deploy trigger both
create hosting projects. Both claim the application's key here first, and
whoever deploys second redeploys into the project the first one created, so
one application never ends up with two hosting projects.

Only the most recently deployed applications are remembered. An evicted
application still redeploys into the deployment saved on its record.
"""
import asyncio
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Set

from appforge.core.config import settings
from appforge.core.exceptions import DeploymentInFlightError
from appforge.core.logging import log
from appforge.pipeline.stages import DeployOutput


class DeploymentGuard:
    """Per-application claim registry shared by every deploy path."""

    def __init__(self, history_size: Optional[int] = None) -> None:
        self._active: Set[str] = set()
        self._changed = asyncio.Condition()
        self._deployments: "OrderedDict[str, DeployOutput]" = OrderedDict()
        self.history_size = settings.pipeline.deployment_history_size if history_size is None else history_size

    def is_claimed(self, app_key: str) -> bool:
        return app_key in self._active

    def record_deployment(self, app_key: str, deployment: DeployOutput) -> None:
        """Remember the newest deployment so the next claimant redeploys into it."""
        self._deployments[app_key] = deployment
        self._deployments.move_to_end(app_key)
        while len(self._deployments) > self.history_size:
            evicted, _ = self._deployments.popitem(last=False)
            log("DEPLOY", f"🧹 Forgetting last deployment of {evicted}")

    def last_deployment(self, app_key: str) -> Optional[DeployOutput]:
        return self._deployments.get(app_key)

    async def try_claim(self, app_key: str) -> bool:
        """Claim without waiting. Returns False if someone else holds the key."""
        async with self._changed:
            if app_key in self._active:
                log("DEPLOY", f"⏭️ Deployment already in flight for {app_key}")
                return False
            self._active.add(app_key)
            return True

    async def claim(self, app_key: str) -> None:
        """Wait until the key is free, then claim it."""
        async with self._changed:
            await self._changed.wait_for(lambda: app_key not in self._active)
            self._active.add(app_key)

    async def release(self, app_key: str) -> None:
        async with self._changed:
            self._active.discard(app_key)
            self._changed.notify_all()

    @asynccontextmanager
    async def hold(self, app_key: str, wait: bool = True) -> AsyncIterator[None]:
        """
        Hold the claim for the body of a `with` block.

        With wait=False a held key raises DeploymentInFlightError instead of
        blocking.
        """
        if wait:
            await self.claim(app_key)
        elif not await self.try_claim(app_key):
            raise DeploymentInFlightError(app_key)
        try:
            yield
        finally:
            await self.release(app_key)
