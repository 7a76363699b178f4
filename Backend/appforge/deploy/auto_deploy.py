# appforge/deploy/auto_deploy.py
"""
Auto-Deployment Trigger.

Scheduled once the Schema stage completes. After a short debounce it deploys
whatever is known about the application so far, writes the result back into
the originating document and notifies live subscribers.

The trigger is best effort: every failure is logged and counted, never
raised to the pipeline that scheduled it.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from appforge.core.config import settings
from appforge.core.exceptions import DocumentNotFoundError
from appforge.core.logging import log
from appforge.deploy.guard import DeploymentGuard
from appforge.deploy.supervisor import BackgroundSupervisor
from appforge.lib.channel import LiveChannel
from appforge.lib.monitoring import auto_deploy_runs
from appforge.persistence.store import DocumentStore, StoredDocument
from appforge.pipeline.stages import ApplicationRecord, DeployOutput, EnumSummary, ModelSummary

if TYPE_CHECKING:
    from appforge.deploy.deployer import ApplicationDeployer


@dataclass
class AutoDeployContext:
    """Snapshot of what the pipeline knows right after the Schema stage."""
    app_name: str
    prisma_schema: str
    app_id: Optional[str] = None
    document_id: Optional[str] = None
    existing_app: Optional[ApplicationRecord] = None
    description: str = ""
    domain: str = "general"
    models: List[ModelSummary] = field(default_factory=list)
    enums: List[EnumSummary] = field(default_factory=list)
    extra_env: Dict[str, str] = field(default_factory=dict)
    region: Optional[str] = None

    @property
    def app_key(self) -> Optional[str]:
        return self.app_id or self.document_id


def placeholder_record(ctx: AutoDeployContext) -> ApplicationRecord:
    """Minimal record for an application that has never been saved."""
    return ApplicationRecord(
        id=ctx.app_key or "",
        name=ctx.app_name,
        description=ctx.description,
        domain=ctx.domain,
        models=list(ctx.models),
        enums=list(ctx.enums),
        prisma_schema=ctx.prisma_schema,
    )


class AutoDeployTrigger:
    def __init__(
        self,
        deployer: "ApplicationDeployer",
        store: Optional[DocumentStore],
        guard: DeploymentGuard,
        supervisor: BackgroundSupervisor,
        delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.deployer = deployer
        self.store = store
        self.guard = guard
        self.supervisor = supervisor
        self.delay = settings.pipeline.auto_deploy_delay if delay is None else delay
        self._sleep = sleep

    def schedule(self, ctx: AutoDeployContext, channel: Optional[LiveChannel] = None) -> asyncio.Task:
        """Spawn the trigger onto the supervisor. Returns immediately."""
        baseline = self.guard.last_deployment(ctx.app_key) if ctx.app_key else None
        log("AUTO-DEPLOY", f"⏱️ Auto-deploy scheduled in {self.delay}s for {ctx.app_name or '<unnamed>'}",
            project_id=ctx.document_id)
        return self.supervisor.spawn(self.run(ctx, channel, baseline), kind="auto-deploy")

    async def run(
        self,
        ctx: AutoDeployContext,
        channel: Optional[LiveChannel] = None,
        baseline: Optional[DeployOutput] = None,
    ) -> Optional[DeployOutput]:
        await self._sleep(self.delay)

        app_key = ctx.app_key
        if not app_key:
            log("AUTO-DEPLOY", "⏭️ Skipping: no application id or document id")
            auto_deploy_runs.labels(outcome="skipped").inc()
            return None
        if not ctx.app_name:
            log("AUTO-DEPLOY", "⏭️ Skipping: application name unknown", project_id=ctx.document_id)
            auto_deploy_runs.labels(outcome="skipped").inc()
            return None

        if not await self.guard.try_claim(app_key):
            auto_deploy_runs.labels(outcome="skipped").inc()
            return None

        try:
            if self.guard.last_deployment(app_key) is not baseline:
                log("AUTO-DEPLOY", "⏭️ Skipping: application was deployed after scheduling", project_id=ctx.document_id)
                auto_deploy_runs.labels(outcome="skipped").inc()
                return None

            record = ctx.existing_app.model_copy(deep=True) if ctx.existing_app else placeholder_record(ctx)
            existing = baseline or record.deployment

            log("AUTO-DEPLOY", f"🚀 Auto-deploying {ctx.app_name}", project_id=ctx.document_id)
            deployment = await self.deployer.deploy(
                app_name=ctx.app_name,
                prisma_schema=ctx.prisma_schema,
                actions=record.actions,
                schedules=record.schedules,
                extra_env=ctx.extra_env,
                region=ctx.region,
                existing=existing,
            )
            self.guard.record_deployment(app_key, deployment)

            record.deployment = deployment
            record.prisma_schema = ctx.prisma_schema
            record.metadata.status = "deployed"
            record.metadata.updated_at = datetime.now(timezone.utc)

            if ctx.document_id and self.store is not None:
                record = await self._persist(ctx.document_id, record, deployment)

            if channel is not None:
                await channel.push("deployment-complete", {
                    "message": f"🚀 {ctx.app_name} deployed: {deployment.deployment_url}",
                    "status": deployment.status,
                    "deployment_url": deployment.deployment_url,
                })
                await channel.push("agent-data", record.model_dump(mode="json"))
            else:
                log("AUTO-DEPLOY", "📭 No live channel; deployment result only persisted", project_id=ctx.document_id)

            auto_deploy_runs.labels(outcome="success").inc()
            log("AUTO-DEPLOY", f"✅ Auto-deploy finished: {deployment.status} {deployment.deployment_url}",
                project_id=ctx.document_id)
            return deployment
        except Exception as e:
            auto_deploy_runs.labels(outcome="failed").inc()
            log("AUTO-DEPLOY", f"❌ Auto-deploy failed: {e}", project_id=ctx.document_id)
            return None
        finally:
            await self.guard.release(app_key)

    async def _persist(self, document_id: str, record: ApplicationRecord, deployment: DeployOutput) -> ApplicationRecord:
        """
        Read-modify-write the originating document. A record the pipeline
        already saved there is kept and only gains the deployment; a document
        that does not exist yet is created from the placeholder record.
        """
        try:
            doc = await self.store.get_document(document_id)
        except DocumentNotFoundError:
            doc = StoredDocument(id=document_id)
            log("AUTO-DEPLOY", "🆕 Document not saved yet; creating it", project_id=document_id)
        saved = _parse_record(doc.content)
        if saved is not None:
            saved.deployment = deployment
            saved.metadata.status = "deployed"
            saved.metadata.updated_at = record.metadata.updated_at
            record = saved

        metadata = dict(doc.metadata)
        metadata["deployment"] = deployment.model_dump(mode="json")
        await self.store.save_document(document_id, record.model_dump_json(), metadata, title=doc.title or record.name)
        log("AUTO-DEPLOY", "💾 Deployment saved to document", project_id=document_id)
        return record


def _parse_record(content: str) -> Optional[ApplicationRecord]:
    if not content:
        return None
    try:
        return ApplicationRecord.model_validate_json(content)
    except ValidationError:
        return None
