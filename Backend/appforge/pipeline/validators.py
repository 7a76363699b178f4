# appforge/pipeline/validators.py
"""
Stage gates.

Each validator returns a list of issues; an empty list lets the pipeline
advance. The pipeline turns a non-empty list into StageValidationError.
"""
from typing import List, Optional

from appforge.pipeline.stages import (
    AnalysisOutput,
    DeployOutput,
    OperationsOutput,
    ScheduleOutput,
    SchemaOutput,
)


CRON_FIELDS = 5


def is_valid_cron(pattern: str) -> bool:
    return len((pattern or "").split()) == CRON_FIELDS


def validate_analysis(output: AnalysisOutput, min_confidence: int) -> List[str]:
    issues: List[str] = []
    if not output.app_name.strip():
        issues.append("Application name is missing")
    if output.confidence < min_confidence:
        issues.append(f"Confidence {output.confidence} is below {min_confidence}")
    if not (output.models or output.actions or output.schedules):
        issues.append("Analysis planned no models, actions or schedules")

    for kind, items in (("model", output.models), ("action", output.actions), ("schedule", output.schedules)):
        for item in items:
            if not item.operation:
                issues.append(f"Planned {kind} '{item.name}' has no operation")
            if kind != "model" and not item.type:
                issues.append(f"Planned {kind} '{item.name}' has no type")
    return issues


def validate_schema_output(output: SchemaOutput) -> List[str]:
    issues: List[str] = []
    if not output.business_models:
        issues.append("Schema defines no business models")
    # Identity, uniqueness and relation-target checks ran on the IR
    issues.extend(output.validation_issues)
    return issues


def validate_operations(output: OperationsOutput, schema: SchemaOutput) -> List[str]:
    issues: List[str] = []
    if not output.actions:
        issues.append("No actions were generated")

    known_models = set(schema.model_names)
    seen = set()
    for action in output.actions:
        label = action.name or "<unnamed>"
        if not action.name:
            issues.append("Action is missing a name")
        if not action.description:
            issues.append(f"Action '{label}' is missing a description")
        if not action.action_type:
            issues.append(f"Action '{label}' is missing a type")
        if action.name in seen:
            issues.append(f"Action '{label}' is defined more than once")
        seen.add(action.name)
        for model in action.models:
            if model not in known_models:
                issues.append(f"Action '{label}' references unknown model '{model}'")
    return issues


def validate_schedules(
    output: ScheduleOutput,
    analysis: AnalysisOutput,
    operations: Optional[OperationsOutput] = None,
) -> List[str]:
    issues: List[str] = []
    if analysis.schedules and not output.schedules:
        issues.append("Analysis planned schedules but none were generated")

    action_names = {a.name for a in operations.actions} if operations else set()
    for schedule in output.schedules:
        label = schedule.name or "<unnamed>"
        if not schedule.name:
            issues.append("Schedule is missing a name")
        if not schedule.description:
            issues.append(f"Schedule '{label}' is missing a description")
        if not is_valid_cron(schedule.pattern):
            issues.append(f"Schedule '{label}' has invalid cron pattern '{schedule.pattern}'")
        if schedule.action and operations and schedule.action not in action_names:
            issues.append(f"Schedule '{label}' targets unknown action '{schedule.action}'")
    return issues


def validate_deploy(output: DeployOutput) -> List[str]:
    issues: List[str] = []
    if not output.deployment_id:
        issues.append("Deployment id is missing")
    if not output.project_id:
        issues.append("Hosting project id is missing")
    if not output.deployment_url:
        issues.append("Deployment URL is missing")
    if not output.prisma_schema:
        issues.append("Deployed schema is missing")
    if not output.api_endpoints:
        issues.append("Deployment exposes no API endpoints")
    return issues
