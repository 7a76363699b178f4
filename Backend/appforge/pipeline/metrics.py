# appforge/pipeline/metrics.py
"""
Quality and complexity scoring plus per-stage insights.
"""
from typing import Any, Dict, List, Optional

from appforge.pipeline.stages import (
    AnalysisOutput,
    DeployOutput,
    GeneratedAction,
    ModelSummary,
    OperationsOutput,
    ScheduleOutput,
    SchemaOutput,
)


def relationship_complexity(models: List[ModelSummary]) -> str:
    """Count owning relation fields: <=2 simple, <=5 moderate, else complex."""
    relations = sum(
        1
        for model in models
        for f in model.fields
        if f.relation_to and not f.is_list
    )
    if relations <= 2:
        return "simple"
    if relations <= 5:
        return "moderate"
    return "complex"


def action_complexity(actions: List[GeneratedAction]) -> str:
    mutations = sum(1 for a in actions if a.action_type == "mutation")
    touched = {m for a in actions for m in a.models}
    if len(actions) <= 3 and len(touched) <= 2:
        return "simple"
    if len(actions) <= 8 and mutations <= 4:
        return "moderate"
    return "complex"


def schedule_complexity(count: int) -> str:
    if count <= 1:
        return "simple"
    if count <= 4:
        return "moderate"
    return "complex"


def quality_score(
    schema: Optional[SchemaOutput],
    operations: Optional[OperationsOutput],
    schedules: Optional[ScheduleOutput],
) -> int:
    """Completeness score out of 100: models 40, actions 30, schedules 30."""
    score = 0
    if schema and schema.business_models:
        score += 40
    if operations and operations.actions:
        score += 30
    if schedules and schedules.schedules:
        score += 30
    return score


# ═══════════════════════════════════════════════════════
# INSIGHTS
# ═══════════════════════════════════════════════════════

def analysis_insights(output: AnalysisOutput) -> Dict[str, Any]:
    return {
        "app_name": output.app_name,
        "domain": output.domain,
        "confidence": output.confidence,
        "planned": {
            "models": len(output.models),
            "actions": len(output.actions),
            "schedules": len(output.schedules),
        },
        "external_apis": [api.provider for api in output.external_apis],
    }


def schema_insights(output: SchemaOutput) -> Dict[str, Any]:
    business = output.business_models
    return {
        "business_models": [m.name for m in business],
        "system_models": [m.name for m in output.models if m.is_system],
        "total_fields": sum(len(m.fields) for m in business),
        "relationship_complexity": output.relationship_complexity,
        "repairs": len(output.sanitize_actions),
        "catalog_version": output.catalog_version,
    }


def operations_insights(output: OperationsOutput) -> Dict[str, Any]:
    return {
        "total": len(output.actions),
        "queries": sum(1 for a in output.actions if a.action_type == "query"),
        "mutations": sum(1 for a in output.actions if a.action_type == "mutation"),
        "complexity": output.implementation_complexity,
    }


def schedule_insights(output: ScheduleOutput) -> Dict[str, Any]:
    return {
        "total": len(output.schedules),
        "active": sum(1 for s in output.schedules if s.active),
        "complexity": output.implementation_complexity,
    }


def deploy_insights(output: DeployOutput) -> Dict[str, Any]:
    return {
        "status": output.status,
        "url": output.deployment_url,
        "api_endpoint_count": len(output.api_endpoints),
        "cron_job_count": len(output.cron_jobs),
        "env_var_count": len(output.env_var_names),
        "has_database": bool(output.database_project_id),
    }
