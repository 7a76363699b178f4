# appforge/pipeline/pipeline.py
"""
Stage Pipeline - Analysis -> Schema -> Operations -> Schedule -> Deploy.

Stages run strictly in order. Each stage's output is validated before the
next one starts; a failed gate raises StageValidationError naming the stage
and a generator or provisioning failure raises StageExecutionError with the
cause chained. Nothing is retried at the stage level.

After the Schema stage an auto-deploy is scheduled in the background. The
synchronous Deploy stage and that trigger share a DeploymentGuard, so at most
one of them talks to the hosting provider for an application at a time.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from pydantic import BaseModel, Field

from appforge.core.config import settings
from appforge.core.exceptions import (
    DocumentNotFoundError,
    PersistenceError,
    SchemaError,
    StageExecutionError,
    StageValidationError,
)
from appforge.core.logging import log, log_result, log_section
from appforge.deploy import (
    ApplicationDeployer,
    AutoDeployContext,
    AutoDeployTrigger,
    DeploymentGuard,
)
from appforge.lib.channel import LiveChannel
from appforge.lib.monitoring import observe_stage
from appforge.llm.generator import Generator
from appforge.persistence.store import DocumentStore
from appforge.pipeline import metrics, prompts, validators
from appforge.pipeline.stages import (
    ActionCode,
    AnalysisOutput,
    ApplicationRecord,
    DeployOutput,
    EnumSummary,
    GeneratedAction,
    ModelSummary,
    OperationsOutput,
    OperationsPlan,
    RecordMetadata,
    ScheduleDraft,
    ScheduleOutput,
    SchemaDraft,
    SchemaOutput,
    preserved_user_fields,
)
from appforge.schema import SystemCatalog, merge_catalog, parse_schema, sanitize, validate_schema


T = TypeVar("T")

STAGE_ANALYSIS = "analysis"
STAGE_SCHEMA = "schema"
STAGE_OPERATIONS = "operations"
STAGE_SCHEDULE = "schedule"
STAGE_DEPLOY = "deploy"
STAGES = (STAGE_ANALYSIS, STAGE_SCHEMA, STAGE_OPERATIONS, STAGE_SCHEDULE, STAGE_DEPLOY)

ACTION_EMOJI = {"query": "🔍", "mutation": "✏️"}


class PipelineRequest(BaseModel):
    user_request: str = Field(min_length=1)
    document_id: Optional[str] = None
    existing_app: Optional[ApplicationRecord] = None
    deploy: bool = True
    auto_deploy: bool = True
    project_name: Optional[str] = None
    region: Optional[str] = None
    environment_variables: Dict[str, str] = Field(default_factory=dict)
    conversation_context: str = ""


@dataclass
class PipelineMetrics:
    stage_durations: Dict[str, float] = field(default_factory=dict)
    quality_score: int = 0
    relationship_complexity: str = "simple"
    action_complexity: str = "simple"
    schedule_complexity: str = "simple"
    insights: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def total_duration(self) -> float:
        return sum(self.stage_durations.values())


@dataclass
class PipelineResult:
    app_key: str
    record: ApplicationRecord
    analysis: AnalysisOutput
    schema: SchemaOutput
    operations: OperationsOutput
    schedules: ScheduleOutput
    deployment: Optional[DeployOutput]
    metrics: PipelineMetrics
    auto_deploy_task: Optional[asyncio.Task] = None


@dataclass
class _RunState:
    request: PipelineRequest
    app_key: str
    channel: Optional[LiveChannel]
    metrics: PipelineMetrics = field(default_factory=PipelineMetrics)
    step_progress: Dict[str, str] = field(default_factory=lambda: {s: "pending" for s in STAGES})


class StagePipeline:
    """
    Runs one request through every stage.

    Usage:
        pipeline = StagePipeline(LLMGenerator(), deployer=ApplicationDeployer())
        result = await pipeline.run(PipelineRequest(user_request="..."))
    """

    def __init__(
        self,
        generator: Generator,
        deployer: Optional[ApplicationDeployer] = None,
        store: Optional[DocumentStore] = None,
        guard: Optional[DeploymentGuard] = None,
        auto_deployer: Optional[AutoDeployTrigger] = None,
        catalog: Optional[SystemCatalog] = None,
        min_confidence: Optional[int] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.generator = generator
        self.deployer = deployer
        self.store = store
        self.guard = guard or (auto_deployer.guard if auto_deployer else DeploymentGuard())
        self.auto_deployer = auto_deployer
        self.catalog = catalog
        self.min_confidence = settings.pipeline.min_confidence if min_confidence is None else min_confidence
        self._clock = clock

    async def run(self, request: PipelineRequest, channel: Optional[LiveChannel] = None) -> PipelineResult:
        existing = request.existing_app
        app_key = (existing.id if existing else None) or request.document_id or uuid.uuid4().hex
        state = _RunState(request=request, app_key=app_key, channel=channel)

        log_section("PIPELINE", f"🏗️ Building application ({'update' if existing else 'create'})",
                    project_id=request.document_id)

        analysis = await self._stage(
            state, STAGE_ANALYSIS,
            lambda: self._analyze(state),
            lambda out: validators.validate_analysis(out, self.min_confidence),
            metrics.analysis_insights,
        )
        await self._emit(state, "agent-data", {
            "name": analysis.app_name,
            "description": analysis.app_description,
            "domain": analysis.domain,
            "partial": True,
        })

        schema = await self._stage(
            state, STAGE_SCHEMA,
            lambda: self._build_schema(state, analysis),
            validators.validate_schema_output,
            metrics.schema_insights,
        )
        state.metrics.relationship_complexity = schema.relationship_complexity
        auto_deploy_task = self._schedule_auto_deploy(state, analysis, schema)

        operations = await self._stage(
            state, STAGE_OPERATIONS,
            lambda: self._build_operations(state, analysis, schema),
            lambda out: validators.validate_operations(out, schema),
            metrics.operations_insights,
        )
        state.metrics.action_complexity = operations.implementation_complexity

        schedules = await self._stage(
            state, STAGE_SCHEDULE,
            lambda: self._build_schedules(state, analysis, operations),
            lambda out: validators.validate_schedules(out, analysis, operations),
            metrics.schedule_insights,
        )
        state.metrics.schedule_complexity = schedules.implementation_complexity

        deployment: Optional[DeployOutput] = None
        if self._should_deploy(request):
            deployment = await self._stage(
                state, STAGE_DEPLOY,
                lambda: self._deploy(state, analysis, schema, operations, schedules),
                validators.validate_deploy,
                metrics.deploy_insights,
            )
        else:
            state.step_progress[STAGE_DEPLOY] = "skipped"

        state.metrics.quality_score = metrics.quality_score(schema, operations, schedules)
        record = self._assemble(state, analysis, schema, operations, schedules, deployment)
        await self._save(state, record)
        await self._emit(state, "agent-data", record.model_dump(mode="json"))

        log("PIPELINE", f"🎉 {record.name} ready (quality {state.metrics.quality_score}/100, "
            f"{state.metrics.total_duration:.1f}s)", project_id=request.document_id)

        return PipelineResult(
            app_key=app_key,
            record=record,
            analysis=analysis,
            schema=schema,
            operations=operations,
            schedules=schedules,
            deployment=deployment,
            metrics=state.metrics,
            auto_deploy_task=auto_deploy_task,
        )

    # ═══════════════════════════════════════════════════════
    # STAGE RUNNER
    # ═══════════════════════════════════════════════════════

    async def _stage(
        self,
        state: _RunState,
        stage: str,
        work: Callable[[], Awaitable[T]],
        validate: Callable[[T], List[str]],
        insights: Callable[[T], Dict[str, Any]],
    ) -> T:
        document_id = state.request.document_id
        state.step_progress[stage] = "processing"
        await self._emit(state, "agent-step", {"step": stage, "status": "processing"})
        log("PIPELINE", f"▶️ Stage {stage} started", project_id=document_id)

        started = self._clock()
        try:
            output = await work()
        except (StageValidationError, StageExecutionError):
            state.step_progress[stage] = "failed"
            raise
        except SchemaError as e:
            state.step_progress[stage] = "failed"
            raise StageValidationError(stage, [e.message]) from e
        except Exception as e:
            state.step_progress[stage] = "failed"
            log("PIPELINE", f"❌ Stage {stage} raised: {e}", project_id=document_id)
            raise StageExecutionError(stage, str(e)) from e
        finally:
            elapsed = self._clock() - started
            state.metrics.stage_durations[stage] = elapsed
            observe_stage(stage, elapsed)

        issues = validate(output)
        log_result("PIPELINE", not issues, 100 if not issues else 0, issues, project_id=document_id)
        if issues:
            state.step_progress[stage] = "failed"
            raise StageValidationError(stage, issues)

        stage_insights = insights(output)
        state.metrics.insights[stage] = stage_insights
        state.step_progress[stage] = "complete"
        await self._emit(state, "agent-step", {
            "step": stage,
            "status": "complete",
            "duration": round(state.metrics.stage_durations[stage], 3),
            "insights": stage_insights,
        })
        return output

    async def _emit(self, state: _RunState, event_type: str, content: Any) -> None:
        if state.channel is None:
            return
        try:
            await state.channel.push(event_type, content)
        except Exception as e:
            log("PIPELINE", f"⚠️ Live update {event_type} failed: {e}", project_id=state.request.document_id)

    # ═══════════════════════════════════════════════════════
    # STAGES
    # ═══════════════════════════════════════════════════════

    async def _analyze(self, state: _RunState) -> AnalysisOutput:
        request = state.request
        context: Dict[str, Any] = {}
        if request.conversation_context:
            context["conversation"] = request.conversation_context
        if request.existing_app:
            context["existing_app"] = {
                "name": request.existing_app.name,
                "models": [m.name for m in request.existing_app.models if not m.is_system],
                "actions": [a.name for a in request.existing_app.actions],
                "schedules": [s.name for s in request.existing_app.schedules],
            }
        return await self.generator.generate(
            prompts.analysis_prompt(request.user_request, request.existing_app), context, AnalysisOutput
        )

    async def _build_schema(self, state: _RunState, analysis: AnalysisOutput) -> SchemaOutput:
        draft = await self.generator.generate(
            prompts.schema_prompt(analysis),
            {"models": [m.model_dump() for m in analysis.models]},
            SchemaDraft,
        )

        merged = merge_catalog(draft.prisma_schema, self.catalog)
        repaired = sanitize(merged.text)
        final = parse_schema(repaired.text)
        system_names = {m.name for m in merged.system_models}
        models = [ModelSummary.from_ir(m, is_system=m.name in system_names) for m in final.models]

        return SchemaOutput(
            prisma_schema=repaired.text,
            models=models,
            enums=[EnumSummary.from_ir(e) for e in final.enums],
            catalog_version=merged.catalog_version,
            sanitize_actions=[a.message for a in repaired.actions],
            validation_issues=validate_schema(final),
            collisions=merged.collisions,
            relationship_complexity=metrics.relationship_complexity(models),
            design_rationale=draft.design_rationale,
            example_records=draft.example_records,
        )

    async def _build_operations(
        self,
        state: _RunState,
        analysis: AnalysisOutput,
        schema: SchemaOutput,
    ) -> OperationsOutput:
        plan = await self.generator.generate(
            prompts.action_plan_prompt(analysis, schema),
            {"models": [m.name for m in schema.business_models]},
            OperationsPlan,
        )

        # One code generation per action; failures surface after the join
        results = await asyncio.gather(
            *[
                self.generator.generate(
                    prompts.action_code_prompt(action, schema),
                    {"action": action.name, "models": action.models},
                    ActionCode,
                )
                for action in plan.actions
            ],
            return_exceptions=True,
        )

        failed = [(a.name, r) for a, r in zip(plan.actions, results) if isinstance(r, BaseException)]
        if failed:
            names = ", ".join(name for name, _ in failed)
            raise StageExecutionError(
                STAGE_OPERATIONS, f"code generation failed for {len(failed)} action(s): {names}"
            ) from failed[0][1]

        actions = [
            GeneratedAction(
                **action.model_dump(),
                emoji=ACTION_EMOJI.get(action.action_type or "", ""),
                code=code.code,
            )
            for action, code in zip(plan.actions, results)
        ]
        return OperationsOutput(
            actions=actions,
            implementation_notes=plan.implementation_notes,
            implementation_complexity=metrics.action_complexity(actions),
        )

    async def _build_schedules(
        self,
        state: _RunState,
        analysis: AnalysisOutput,
        operations: OperationsOutput,
    ) -> ScheduleOutput:
        if not analysis.schedules:
            log("PIPELINE", "⏭️ No schedules planned", project_id=state.request.document_id)
            return ScheduleOutput()

        draft = await self.generator.generate(
            prompts.schedule_prompt(analysis, operations),
            {"actions": [a.name for a in operations.actions]},
            ScheduleDraft,
        )
        return ScheduleOutput(
            schedules=draft.schedules,
            implementation_complexity=metrics.schedule_complexity(len(draft.schedules)),
        )

    def _should_deploy(self, request: PipelineRequest) -> bool:
        return bool(request.deploy and self.deployer is not None and settings.pipeline.deploy_enabled)

    async def _deploy(
        self,
        state: _RunState,
        analysis: AnalysisOutput,
        schema: SchemaOutput,
        operations: OperationsOutput,
        schedules: ScheduleOutput,
    ) -> DeployOutput:
        request = state.request
        existing_app = request.existing_app

        async def progress(message: str) -> None:
            await self._emit(state, "deployment-progress", {"message": message})

        async with self.guard.hold(state.app_key):
            existing = self.guard.last_deployment(state.app_key) or (
                existing_app.deployment if existing_app else None
            )
            deployment = await self.deployer.deploy(
                app_name=request.project_name or analysis.app_name,
                prisma_schema=schema.prisma_schema,
                actions=operations.actions,
                schedules=schedules.schedules,
                extra_env=request.environment_variables,
                region=request.region,
                existing=existing,
                on_progress=progress,
            )
            self.guard.record_deployment(state.app_key, deployment)
        return deployment

    # ═══════════════════════════════════════════════════════
    # AUTO-DEPLOY, ASSEMBLY, PERSISTENCE
    # ═══════════════════════════════════════════════════════

    def _schedule_auto_deploy(
        self,
        state: _RunState,
        analysis: AnalysisOutput,
        schema: SchemaOutput,
    ) -> Optional[asyncio.Task]:
        request = state.request
        if not (request.auto_deploy and self.auto_deployer and settings.pipeline.auto_deploy_enabled):
            return None

        existing = request.existing_app
        ctx = AutoDeployContext(
            app_name=request.project_name or analysis.app_name,
            prisma_schema=schema.prisma_schema,
            app_id=existing.id if existing else None,
            document_id=request.document_id,
            existing_app=existing,
            description=analysis.app_description,
            domain=analysis.domain,
            models=list(schema.models),
            enums=list(schema.enums),
            extra_env=dict(request.environment_variables),
            region=request.region,
        )
        return self.auto_deployer.schedule(ctx, state.channel)

    def _assemble(
        self,
        state: _RunState,
        analysis: AnalysisOutput,
        schema: SchemaOutput,
        operations: OperationsOutput,
        schedules: ScheduleOutput,
        deployment: Optional[DeployOutput],
    ) -> ApplicationRecord:
        existing = state.request.existing_app
        deployment = deployment or self.guard.last_deployment(state.app_key) or (
            existing.deployment if existing else None
        )

        now = datetime.now(timezone.utc)
        metadata = RecordMetadata(
            created_at=existing.metadata.created_at if existing else now,
            updated_at=now,
            version=_next_version(existing),
            tags=[analysis.domain],
            status="deployed" if deployment else "generated",
        )

        return ApplicationRecord(
            id=state.app_key,
            name=analysis.app_name,
            description=analysis.app_description,
            domain=analysis.domain,
            models=schema.models,
            enums=schema.enums,
            actions=operations.actions,
            schedules=schedules.schedules,
            prisma_schema=schema.prisma_schema,
            external_apis=analysis.external_apis,
            deployment=deployment,
            metadata=metadata,
            **preserved_user_fields(existing),
        )

    async def _save(self, state: _RunState, record: ApplicationRecord) -> None:
        document_id = state.request.document_id
        if not (self.store and document_id):
            return

        try:
            try:
                metadata = dict((await self.store.get_document(document_id)).metadata)
            except DocumentNotFoundError:
                metadata = {}

            metadata["step_progress"] = dict(state.step_progress)
            metadata["quality_score"] = state.metrics.quality_score
            if record.deployment:
                metadata["deployment"] = record.deployment.model_dump(mode="json")

            await self.store.save_document(document_id, record.model_dump_json(), metadata, title=record.name)
            log("DB", f"💾 Saved {record.name}", project_id=document_id)
        except PersistenceError as e:
            log("DB", f"⚠️ Could not save application: {e.message}", project_id=document_id)


def _next_version(existing: Optional[ApplicationRecord]) -> str:
    if existing and existing.metadata.version.isdigit():
        return str(int(existing.metadata.version) + 1)
    return "1"
