# appforge/deploy/deployer.py
"""
Application Deployer - provisions a database and a hosting project, then
uploads the scaffolded application and waits for its build.

Order for a new application:
    database project -> database -> connection string -> hosting project
    -> render files -> environment variables -> deploy -> poll

An application that already has a hosting project is redeployed into it
instead; no new database is provisioned.
"""
import re
import secrets
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from appforge.core.config import settings
from appforge.core.logging import log, log_section
from appforge.pipeline.stages import DeployOutput, GeneratedAction, ScheduleSpec
from appforge.pipeline.validators import is_valid_cron
from appforge.provisioning import (
    DatabaseProvisioner,
    Deployment,
    DeploymentProvisioner,
    DeploymentStatus,
    sanitize_project_name,
)
from appforge.scaffold import NextAppScaffolder, Scaffolder


ProgressCallback = Callable[[str], Union[None, Awaitable[None]]]

ACTION_EMOJI = {"query": "🔍", "mutation": "✏️"}
SCHEDULE_EMOJI = "⏰"


# ═══════════════════════════════════════════════════════
# NORMALIZATION
# ═══════════════════════════════════════════════════════

def normalize_name(name: str) -> str:
    """Route-safe name: anything outside [a-zA-Z0-9_-] becomes '-', lower-cased."""
    return re.sub(r"[^a-zA-Z0-9_-]", "-", name or "").lower()


def normalize_actions(actions: List[GeneratedAction]) -> Tuple[List[GeneratedAction], List[str]]:
    """
    Keep deployable actions only.

    Returns the normalized actions and a note for each skipped one.
    """
    normalized: List[GeneratedAction] = []
    skipped: List[str] = []
    for action in actions:
        if action.action_type not in ACTION_EMOJI:
            skipped.append(f"Skipped action '{action.name}': type must be query or mutation")
            continue
        name = normalize_name(action.name)
        if not name:
            skipped.append("Skipped action without a name")
            continue
        normalized.append(action.model_copy(update={
            "name": name,
            "emoji": action.emoji or ACTION_EMOJI[action.action_type],
        }))
    return normalized, skipped


def normalize_schedules(schedules: List[ScheduleSpec]) -> Tuple[List[ScheduleSpec], List[str]]:
    normalized: List[ScheduleSpec] = []
    skipped: List[str] = []
    for schedule in schedules:
        name = normalize_name(schedule.name)
        if not name:
            skipped.append("Skipped schedule without a name")
            continue
        if not is_valid_cron(schedule.pattern):
            skipped.append(f"Skipped schedule '{schedule.name}': invalid cron '{schedule.pattern}'")
            continue
        normalized.append(schedule.model_copy(update={
            "name": name,
            "pattern": " ".join(schedule.pattern.split()),
            "action": normalize_name(schedule.action) if schedule.action else None,
            "emoji": schedule.emoji or SCHEDULE_EMOJI,
        }))
    return normalized, skipped


def build_environment(
    database_url: str,
    project_name: str,
    extra_env: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """Runtime variables for the generated app. Caller extras override defaults."""
    env = {
        "DATABASE_URL": database_url,
        "NEXTAUTH_SECRET": secrets.token_urlsafe(32),
        "NEXTAUTH_URL": f"https://{project_name}.vercel.app",
        "NODE_ENV": "production",
        "CRON_SECRET": secrets.token_urlsafe(32),
    }
    env.update(extra_env or {})
    return env


async def _report(on_progress: Optional[ProgressCallback], message: str) -> None:
    log("DEPLOY", message)
    if on_progress:
        result = on_progress(message)
        if hasattr(result, "__await__"):
            await result


async def _check_provider(name: str, factory: Callable[[], Any]) -> Dict[str, Any]:
    # Missing credentials surface from the constructor
    try:
        provisioner = factory()
    except Exception as e:
        return {"success": False, "message": str(e), "details": {name: {"error": str(e)}}}
    async with provisioner:
        return await provisioner.check_readiness()


# ═══════════════════════════════════════════════════════
# DEPLOYER
# ═══════════════════════════════════════════════════════

class ApplicationDeployer:
    def __init__(
        self,
        neon_factory: Optional[Callable[[], DatabaseProvisioner]] = None,
        vercel_factory: Optional[Callable[[], DeploymentProvisioner]] = None,
        scaffolder: Optional[Scaffolder] = None,
    ):
        self._neon_factory = neon_factory or DatabaseProvisioner
        self._vercel_factory = vercel_factory or DeploymentProvisioner
        self.scaffolder = scaffolder or NextAppScaffolder()

    async def check_readiness(self) -> Dict[str, Any]:
        """Check both providers. Ready only when both answer."""
        checks = [
            await _check_provider("neon", self._neon_factory),
            await _check_provider("vercel", self._vercel_factory),
        ]
        failed = [c["message"] for c in checks if not c["success"]]
        details: Dict[str, Any] = {}
        for check in checks:
            details.update(check["details"])
        return {
            "success": not failed,
            "message": "; ".join(failed) or "Database and deployment services are ready.",
            "details": details,
        }

    async def deploy(
        self,
        app_name: str,
        prisma_schema: str,
        actions: List[GeneratedAction],
        schedules: List[ScheduleSpec],
        extra_env: Optional[Dict[str, str]] = None,
        region: Optional[str] = None,
        existing: Optional[DeployOutput] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> DeployOutput:
        actions, skipped_actions = normalize_actions(actions)
        schedules, skipped_schedules = normalize_schedules(schedules)
        notes = skipped_actions + skipped_schedules
        for note in notes:
            log("DEPLOY", f"⚠️ {note}")

        if existing and existing.project_id:
            return await self._redeploy(
                app_name, prisma_schema, actions, schedules, extra_env or {}, existing, notes, on_progress
            )
        return await self._deploy_new(
            app_name, prisma_schema, actions, schedules, extra_env or {}, region, notes, on_progress
        )

    async def _deploy_new(
        self,
        app_name: str,
        prisma_schema: str,
        actions: List[GeneratedAction],
        schedules: List[ScheduleSpec],
        extra_env: Dict[str, str],
        region: Optional[str],
        notes: List[str],
        on_progress: Optional[ProgressCallback],
    ) -> DeployOutput:
        log_section("DEPLOY", f"🚀 Deploying {app_name}")

        async with self._neon_factory() as neon:
            await _report(on_progress, "🗄️ Creating database project...")
            db_project = await neon.create_project(sanitize_project_name(app_name), region)

            db_name = settings.neon.default_database
            await _report(on_progress, f"🗄️ Ensuring database {db_name}...")
            await neon.ensure_database(db_project.id, db_name)
            database_url = await neon.get_connection_string(db_project.id, db_name)

        async with self._vercel_factory() as vercel:
            await _report(on_progress, "🚀 Creating hosting project...")
            hosting = await vercel.create_project(app_name)

            await _report(on_progress, "📁 Generating project files...")
            files = self.scaffolder.render(prisma_schema, actions, schedules, hosting.name)

            await _report(on_progress, "🔧 Configuring environment variables...")
            env = build_environment(database_url, hosting.name, extra_env)
            await vercel.set_environment_variables(hosting.id, env)

            await _report(on_progress, "📦 Uploading and deploying...")
            deployment = await vercel.deploy(hosting.id, files, env, name=hosting.name)
            deployment = await vercel.poll_until_terminal(deployment, on_progress)

        notes = notes + [
            f"Database project {db_project.id} with database {db_name}",
            f"Hosting project {hosting.name}",
        ]
        return await self._result(
            deployment, hosting.name, db_project.id, sorted(env), prisma_schema, actions, schedules, notes, on_progress
        )

    async def _redeploy(
        self,
        app_name: str,
        prisma_schema: str,
        actions: List[GeneratedAction],
        schedules: List[ScheduleSpec],
        extra_env: Dict[str, str],
        existing: DeployOutput,
        notes: List[str],
        on_progress: Optional[ProgressCallback],
    ) -> DeployOutput:
        log_section("DEPLOY", f"🔄 Redeploying {app_name} into {existing.project_id}")

        async with self._vercel_factory() as vercel:
            hosting = await vercel.get_project(existing.project_id)

            await _report(on_progress, "📁 Generating project files...")
            files = self.scaffolder.render(prisma_schema, actions, schedules, hosting.name)

            if extra_env:
                await _report(on_progress, f"🔧 Updating {len(extra_env)} environment variables...")
                await vercel.set_environment_variables(hosting.id, extra_env)

            await _report(on_progress, "📦 Uploading new deployment...")
            deployment = await vercel.deploy(hosting.id, files, extra_env, name=hosting.name)
            deployment = await vercel.poll_until_terminal(deployment, on_progress)

        env_names = sorted(set(existing.env_var_names) | set(extra_env))
        notes = notes + [f"Redeployed into existing hosting project {hosting.name}"]
        return await self._result(
            deployment, hosting.name, existing.database_project_id, env_names,
            prisma_schema, actions, schedules, notes, on_progress,
        )

    async def _result(
        self,
        deployment: Deployment,
        project_name: str,
        database_project_id: Optional[str],
        env_var_names: List[str],
        prisma_schema: str,
        actions: List[GeneratedAction],
        schedules: List[ScheduleSpec],
        notes: List[str],
        on_progress: Optional[ProgressCallback],
    ) -> DeployOutput:
        warnings: List[str] = []
        if deployment.status == DeploymentStatus.READY:
            await _report(on_progress, f"🎉 Deployment live at {deployment.url}")
        elif deployment.status == DeploymentStatus.ERROR:
            warnings.append("Deployment failed during the build")
            await _report(on_progress, "❌ Deployment failed during build process")
        else:
            warnings.append("Deployment timed out but may still be building")
            await _report(on_progress, "⚠️ Deployment timed out, but may still be building...")

        return DeployOutput(
            deployment_id=deployment.id,
            project_id=deployment.project_id,
            project_name=project_name,
            deployment_url=deployment.url,
            status=deployment.status.value,
            database_project_id=database_project_id,
            env_var_names=env_var_names,
            prisma_schema=prisma_schema,
            api_endpoints=[f"{deployment.url}/api/{a.name}" for a in actions],
            cron_jobs=[f"{s.pattern} - /api/cron/{s.name}" for s in schedules],
            notes=notes,
            warnings=warnings,
        )
