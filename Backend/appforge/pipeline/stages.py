# appforge/pipeline/stages.py
"""
Typed stage inputs and outputs.

Generator-facing shapes (`*Draft`, `*Plan`) describe what the model must
return; stage outputs are frozen once built and are only ever read by later
stages and by final assembly.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from appforge.schema.ir import Model as SchemaModel, EnumDef


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# ═══════════════════════════════════════════════════════
# STAGE 0: ANALYSIS
# ═══════════════════════════════════════════════════════

class PlannedItem(FrozenModel):
    """A model, action or schedule the analysis intends to create or change."""
    name: str
    operation: Optional[str] = None
    type: Optional[str] = None
    description: str = ""


class ExternalApi(FrozenModel):
    provider: str
    requires_connection: bool = False
    connection_type: Literal["oauth", "api_key", "none"] = "none"
    primary_use_case: str = ""
    required_scopes: List[str] = Field(default_factory=list)
    priority: Literal["primary", "secondary"] = "secondary"


class AnalysisOutput(FrozenModel):
    app_name: str = ""
    app_description: str = ""
    domain: str = "general"
    confidence: int = 0
    operation: Literal["create", "update"] = "create"
    models: List[PlannedItem] = Field(default_factory=list)
    actions: List[PlannedItem] = Field(default_factory=list)
    schedules: List[PlannedItem] = Field(default_factory=list)
    external_apis: List[ExternalApi] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════
# STAGE 1: SCHEMA
# ═══════════════════════════════════════════════════════

class SchemaDraft(FrozenModel):
    prisma_schema: str
    design_rationale: str = ""
    example_records: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)


class FieldSummary(FrozenModel):
    name: str
    type: str
    kind: str = "scalar"
    is_id: bool = False
    is_required: bool = True
    is_unique: bool = False
    is_list: bool = False
    default_value: Optional[str] = None
    relation_to: Optional[str] = None


class ModelSummary(FrozenModel):
    name: str
    description: str = ""
    is_system: bool = False
    fields: List[FieldSummary] = Field(default_factory=list)

    @classmethod
    def from_ir(cls, model: SchemaModel, is_system: bool = False) -> "ModelSummary":
        return cls(
            name=model.name,
            description=model.description,
            is_system=is_system,
            fields=[
                FieldSummary(
                    name=f.name,
                    type=f.type,
                    kind=f.kind.value,
                    is_id=f.is_id,
                    is_required=f.is_required,
                    is_unique=f.is_unique,
                    is_list=f.is_list,
                    default_value=f.default_value,
                    relation_to=f.type if f.is_relation else None,
                )
                for f in model.fields
            ],
        )


class EnumSummary(FrozenModel):
    name: str
    values: List[str] = Field(default_factory=list)

    @classmethod
    def from_ir(cls, enum: EnumDef) -> "EnumSummary":
        return cls(name=enum.name, values=list(enum.values))


class SchemaOutput(FrozenModel):
    prisma_schema: str
    models: List[ModelSummary]
    enums: List[EnumSummary] = Field(default_factory=list)
    catalog_version: str = ""
    sanitize_actions: List[str] = Field(default_factory=list)
    validation_issues: List[str] = Field(default_factory=list)
    collisions: List[str] = Field(default_factory=list)
    relationship_complexity: Literal["simple", "moderate", "complex"] = "simple"
    design_rationale: str = ""
    example_records: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)

    @property
    def business_models(self) -> List[ModelSummary]:
        return [m for m in self.models if not m.is_system]

    @property
    def model_names(self) -> List[str]:
        return [m.name for m in self.models]


# ═══════════════════════════════════════════════════════
# STAGE 2: OPERATIONS
# ═══════════════════════════════════════════════════════

class ActionInput(FrozenModel):
    name: str
    type: str = "string"
    required: bool = True
    description: str = ""


class ActionPlan(FrozenModel):
    name: str
    description: str = ""
    action_type: Optional[Literal["query", "mutation"]] = None
    models: List[str] = Field(default_factory=list)
    role: str = "member"
    inputs: List[ActionInput] = Field(default_factory=list)


class OperationsPlan(FrozenModel):
    actions: List[ActionPlan] = Field(default_factory=list)
    implementation_notes: str = ""


class ActionCode(FrozenModel):
    """Generated handler body for one action."""
    code: str
    notes: str = ""


class GeneratedAction(FrozenModel):
    name: str
    description: str = ""
    action_type: Optional[Literal["query", "mutation"]] = None
    models: List[str] = Field(default_factory=list)
    role: str = "member"
    emoji: str = ""
    inputs: List[ActionInput] = Field(default_factory=list)
    code: str = ""


class OperationsOutput(FrozenModel):
    actions: List[GeneratedAction]
    implementation_notes: str = ""
    implementation_complexity: Literal["simple", "moderate", "complex"] = "simple"


# ═══════════════════════════════════════════════════════
# STAGE 3: SCHEDULE
# ═══════════════════════════════════════════════════════

class ScheduleSpec(FrozenModel):
    name: str
    description: str = ""
    pattern: str = ""
    timezone: str = "UTC"
    action: Optional[str] = None
    active: bool = True
    emoji: str = ""


class ScheduleDraft(FrozenModel):
    schedules: List[ScheduleSpec] = Field(default_factory=list)


class ScheduleOutput(FrozenModel):
    schedules: List[ScheduleSpec] = Field(default_factory=list)
    implementation_complexity: Literal["simple", "moderate", "complex"] = "simple"


# ═══════════════════════════════════════════════════════
# STAGE 4: DEPLOY
# ═══════════════════════════════════════════════════════

class DeployOutput(FrozenModel):
    deployment_id: str
    project_id: str
    project_name: str = ""
    deployment_url: str
    status: Literal["pending", "building", "ready", "error", "timed_out"]
    database_project_id: Optional[str] = None
    env_var_names: List[str] = Field(default_factory=list)
    prisma_schema: str = ""
    api_endpoints: List[str] = Field(default_factory=list)
    cron_jobs: List[str] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    deployed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ═══════════════════════════════════════════════════════
# ASSEMBLED APPLICATION
# ═══════════════════════════════════════════════════════

class RecordMetadata(BaseModel):
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = ""
    last_modified_by: str = "appforge-pipeline"
    tags: List[str] = Field(default_factory=list)
    status: Literal["draft", "generated", "deployed"] = "generated"


class ApplicationRecord(BaseModel):
    """Everything known about one generated application."""
    id: str
    name: str
    description: str = ""
    domain: str = "general"
    models: List[ModelSummary] = Field(default_factory=list)
    enums: List[EnumSummary] = Field(default_factory=list)
    actions: List[GeneratedAction] = Field(default_factory=list)
    schedules: List[ScheduleSpec] = Field(default_factory=list)
    prisma_schema: str = ""
    external_apis: List[ExternalApi] = Field(default_factory=list)
    deployment: Optional[DeployOutput] = None
    metadata: RecordMetadata = Field(default_factory=RecordMetadata)

    # User-configured values that regeneration must never drop
    avatar: Optional[Dict[str, Any]] = None
    theme: Optional[str] = None
    oauth_tokens: Optional[Dict[str, Any]] = None
    api_keys: Optional[Dict[str, Any]] = None
    credentials: Optional[Dict[str, Any]] = None


USER_CONFIGURED_FIELDS = ("avatar", "theme", "oauth_tokens", "api_keys", "credentials")


def preserved_user_fields(existing: Optional[ApplicationRecord]) -> Dict[str, Any]:
    if existing is None:
        return {}
    return {
        name: getattr(existing, name)
        for name in USER_CONFIGURED_FIELDS
        if getattr(existing, name) is not None
    }
