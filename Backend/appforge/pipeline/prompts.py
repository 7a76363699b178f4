# appforge/pipeline/prompts.py
"""
Stage prompt builders.

Prompts describe the task only; the generator appends the context and the
JSON schema of the expected response.
"""
from typing import List, Optional

from appforge.pipeline.stages import (
    ActionPlan,
    AnalysisOutput,
    ApplicationRecord,
    OperationsOutput,
    SchemaOutput,
)
from appforge.schema.catalog import default_catalog


def _existing_summary(existing: Optional[ApplicationRecord]) -> str:
    if existing is None:
        return "This is a new application."
    return (
        f"The application '{existing.name}' already exists with "
        f"{len(existing.models)} models, {len(existing.actions)} actions and "
        f"{len(existing.schedules)} schedules. Plan changes against it: mark each "
        f"item with operation create, update, delete or keep."
    )


def analysis_prompt(user_request: str, existing: Optional[ApplicationRecord] = None) -> str:
    return f"""Analyse the following request for a data-backed web application.

REQUEST:
{user_request}

{_existing_summary(existing)}

Decide the application name, a one-paragraph description and the business domain.
List the data models, the actions (each a "query" or a "mutation") and the scheduled
jobs (type "cron") the application needs. Every planned item needs an operation.
Report your confidence from 0 to 100 that the request is specific enough to build.
List any external APIs the application must call."""


def schema_prompt(analysis: AnalysisOutput) -> str:
    reserved = ", ".join(default_catalog().model_names)
    models: List[str] = [f"- {m.name}: {m.description}" for m in analysis.models]
    return f"""Write the Prisma schema for '{analysis.app_name}' ({analysis.domain}).

{analysis.app_description}

PLANNED MODELS:
{chr(10).join(models) or "- (derive from the description)"}

Rules:
- Output only model and enum blocks; no generator or datasource blocks.
- Every model has exactly one `id String @id @default(cuid())` field.
- Foreign keys are named `<relation>Id`. One-to-one relations need `@unique` on the key.
- Every relation has its opposite field on the other model.
- Do not define these system models, they are added automatically: {reserved}.
  You may relate to User through a `userId String?` key."""


def action_plan_prompt(analysis: AnalysisOutput, schema: SchemaOutput) -> str:
    planned = [f"- {a.name} ({a.type}): {a.description}" for a in analysis.actions]
    return f"""Design the server actions for '{analysis.app_name}'.

PLANNED ACTIONS:
{chr(10).join(planned) or "- (derive from the schema)"}

AVAILABLE MODELS: {", ".join(m.name for m in schema.business_models)}

For every action give a kebab-case name, a description, action_type ("query" reads data,
"mutation" changes it), the models it touches and its inputs."""


def action_code_prompt(action: ActionPlan, schema: SchemaOutput) -> str:
    return f"""Implement the `{action.name}` {action.action_type or "query"} as the body of an
async TypeScript function `handler(input, prisma)` returning JSON-serialisable data.

DESCRIPTION: {action.description}
MODELS: {", ".join(action.models) or "none"}
INPUTS: {", ".join(f"{i.name}: {i.type}" for i in action.inputs) or "none"}

PRISMA SCHEMA:
{schema.prisma_schema}"""


def schedule_prompt(analysis: AnalysisOutput, operations: OperationsOutput) -> str:
    planned = [f"- {s.name}: {s.description}" for s in analysis.schedules]
    actions = ", ".join(a.name for a in operations.actions)
    return f"""Define the scheduled jobs for '{analysis.app_name}'.

PLANNED SCHEDULES:
{chr(10).join(planned)}

AVAILABLE ACTIONS: {actions}

Each schedule needs a kebab-case name, a description, a standard five-field cron
pattern (minute hour day month weekday), a timezone and optionally the action it runs."""
