# appforge/provisioning/vercel.py
"""
Hosted deployment provisioner backed by the Vercel REST API.
"""
import asyncio
import base64
import random
import re
import string
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from appforge.core.config import settings
from appforge.core.exceptions import (
    NameConflictExhaustedError,
    ProvisioningError,
    ProvisioningHttpError,
)
from appforge.core.logging import log
from appforge.provisioning.http_client import RateLimitedClient, Clock, Sleeper
from appforge.provisioning.types import (
    Deployment,
    DeploymentStatus,
    ExternalProject,
    NamingAttempt,
)


SERVICE = "vercel"

NEXTJS_SETTINGS = {
    "framework": "nextjs",
    "buildCommand": "npm run build",
    "devCommand": "npm run dev",
    "installCommand": "npm install",
    "outputDirectory": ".next",
}

ENV_TARGETS = ["production", "preview", "development"]
FALLBACK_PROJECT_NAME = "app"

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def sanitize_project_name(name: str, max_length: Optional[int] = None) -> str:
    """
    Normalize a display name into a valid hosting project name.

    Lowercase letters, digits, '.', '_' and '-' only, no runs of hyphens, no
    leading or trailing hyphen. A name with no letter or digit left becomes
    "app". Applying it twice gives the same result.
    """
    max_length = max_length or settings.vercel.max_name_length
    cleaned = re.sub(r"[^a-z0-9._-]", "-", name.lower())
    cleaned = re.sub(r"-{2,}", "-", cleaned)
    cleaned = cleaned[:max_length].strip("-")
    if not re.search(r"[a-z0-9]", cleaned):
        return FALLBACK_PROJECT_NAME
    return cleaned


def is_name_conflict(error: Exception) -> bool:
    if isinstance(error, ProvisioningHttpError) and error.status_code == 409:
        return True
    message = str(error).lower()
    return "already exists" in message or "conflict" in message


def _ms_timestamp() -> int:
    return int(time.time() * 1000)


class DeploymentProvisioner:
    """
    Creates hosting projects, uploads deployments and tracks their status.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        team_id: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
        rng: Optional[random.Random] = None,
        now_ms: Callable[[], int] = _ms_timestamp,
    ):
        token = token or settings.vercel.token
        if not token:
            raise ProvisioningError(SERVICE, "VERCEL_TOKEN is not configured")

        team_id = team_id if team_id is not None else settings.vercel.team_id
        self.client = RateLimitedClient(
            service=SERVICE,
            base_url=base_url or settings.vercel.base_url,
            token=token,
            min_interval=settings.vercel.min_interval,
            default_params={"teamId": team_id} if team_id else None,
            transport=transport,
            clock=clock,
            sleep=sleep,
        )
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._now_ms = now_ms

    async def __aenter__(self) -> "DeploymentProvisioner":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    # ═══════════════════════════════════════════════════════
    # PROJECTS
    # ═══════════════════════════════════════════════════════

    def _next_candidate(self, naming: NamingAttempt) -> str:
        stamp = str(self._now_ms())[-6:]
        suffix = "".join(self._rng.choice(_SUFFIX_ALPHABET) for _ in range(3))
        return f"{naming.base_name}-{stamp}-{suffix}"

    async def create_project(self, name: str, framework: str = "nextjs") -> ExternalProject:
        """
        Create a project, renaming on conflict.

        The first attempt uses the sanitized name; every conflict generates a
        new `{base}-{time}-{random}` candidate. Errors other than a name
        conflict propagate immediately.

        Raises:
            NameConflictExhaustedError after max_name_attempts conflicts
        """
        naming = NamingAttempt(base_name=sanitize_project_name(name))
        max_attempts = settings.vercel.max_name_attempts
        last_error: Optional[Exception] = None

        log("VERCEL", f"🚀 Creating project: {naming.base_name} (from: {name})")

        while naming.attempt_count < max_attempts:
            try:
                data = await self.client.post("/v10/projects", {
                    "name": naming.current_candidate,
                    **NEXTJS_SETTINGS,
                    "framework": framework,
                })
            except Exception as e:
                if not is_name_conflict(e):
                    raise
                last_error = e
                naming.attempt_count += 1
                previous = naming.current_candidate
                naming.current_candidate = self._next_candidate(naming)
                log("VERCEL", f"⚠️ Name '{previous}' taken, trying {naming.current_candidate} ({naming.attempt_count}/{max_attempts})")
                continue

            log("VERCEL", f"✅ Project created: {data['id']} as {naming.current_candidate}")
            return ExternalProject(id=data["id"], name=data.get("name", naming.current_candidate))

        raise NameConflictExhaustedError(SERVICE, naming.base_name, max_attempts, last_error)

    async def get_project(self, project_id: str) -> ExternalProject:
        data = await self.client.get(f"/v10/projects/{project_id}")
        return ExternalProject(id=data["id"], name=data.get("name", ""))

    async def list_projects(self) -> List[Dict[str, Any]]:
        data = await self.client.get("/v10/projects")
        return (data or {}).get("projects", [])

    async def delete_project(self, project_id: str) -> None:
        await self.client.delete(f"/v10/projects/{project_id}")
        log("VERCEL", f"🗑️ Deleted project {project_id}")

    # ═══════════════════════════════════════════════════════
    # ENVIRONMENT
    # ═══════════════════════════════════════════════════════

    async def set_environment_variables(self, project_id: str, env_vars: Dict[str, str]) -> None:
        """Register every variable concurrently; any single failure fails the batch."""
        if not env_vars:
            return
        log("VERCEL", f"🔧 Setting {len(env_vars)} environment variables on {project_id}")

        await asyncio.gather(*[
            self.client.post(f"/v10/projects/{project_id}/env", {
                "key": key,
                "value": value,
                "type": "encrypted",
                "target": ENV_TARGETS,
            })
            for key, value in env_vars.items()
        ])

    # ═══════════════════════════════════════════════════════
    # DEPLOYMENTS
    # ═══════════════════════════════════════════════════════

    async def deploy(
        self,
        project_id: str,
        files: Dict[str, str],
        env_vars: Optional[Dict[str, str]] = None,
        name: Optional[str] = None,
    ) -> Deployment:
        """
        Upload an in-memory file tree. Returns as soon as the deployment is
        accepted; use poll_until_terminal to wait for the build.
        """
        env_vars = env_vars or {}
        payload = {
            "name": name or project_id,
            "project": project_id,
            "target": "production",
            "files": [
                {
                    "file": path,
                    "data": base64.b64encode(content.encode("utf-8")).decode("ascii"),
                    "encoding": "base64",
                }
                for path, content in files.items()
            ],
            "projectSettings": NEXTJS_SETTINGS,
            "env": env_vars,
            "build": {"env": env_vars},
        }

        log("VERCEL", f"📦 Uploading {len(files)} files to {project_id}")
        data = await self.client.post("/v13/deployments", payload)

        deployment = Deployment(
            id=data["id"],
            project_id=project_id,
            url=_https(data.get("url", "")),
            status=DeploymentStatus.from_ready_state(data.get("readyState")),
            env_vars=dict(env_vars),
        )
        log("VERCEL", f"✅ Deployment created: {deployment.id}")
        return deployment

    async def get_deployment(self, deployment_id: str) -> Dict[str, Any]:
        return await self.client.get(f"/v13/deployments/{deployment_id}")

    async def poll_until_terminal(
        self,
        deployment: Deployment,
        on_progress: Optional[Callable[[str], Any]] = None,
    ) -> Deployment:
        """
        Wait for the deployment to reach READY or ERROR.

        Sleeps poll_interval before each check. Gives up after
        poll_max_attempts and marks the deployment TIMED_OUT; never raises
        for a slow build.
        """
        max_attempts = settings.vercel.poll_max_attempts

        for attempt in range(1, max_attempts + 1):
            await self._sleep(settings.vercel.poll_interval)
            data = await self.get_deployment(deployment.id)
            ready_state = (data or {}).get("readyState")
            deployment.status = DeploymentStatus.from_ready_state(ready_state)

            message = f"⏳ Building deployment... {ready_state} ({round(attempt / max_attempts * 100)}% - {attempt}/{max_attempts})"
            log("VERCEL", message)
            if on_progress:
                await _maybe_await(on_progress(message))

            if deployment.status.is_terminal:
                return deployment

        deployment.status = DeploymentStatus.TIMED_OUT
        log("VERCEL", f"⚠️ Deployment {deployment.id} still building after {max_attempts} checks")
        return deployment

    # ═══════════════════════════════════════════════════════
    # READINESS
    # ═══════════════════════════════════════════════════════

    async def check_readiness(self) -> Dict[str, Any]:
        """Confirm the token works by listing projects. Never raises."""
        try:
            projects = await self.list_projects()
        except Exception as e:
            log("VERCEL", f"❌ Readiness check failed: {e}")
            return {
                "success": False,
                "message": f"Deployment service not ready: {e}",
                "details": {"error": str(e)},
            }
        return {
            "success": True,
            "message": "Deployment service is ready.",
            "details": {"vercel": {"connected": True, "project_count": len(projects)}},
        }


def _https(url: str) -> str:
    if not url or url.startswith("https://"):
        return url
    return f"https://{url}"


async def _maybe_await(value: Any) -> None:
    if asyncio.iscoroutine(value):
        await value
