# appforge/pipeline/__init__.py
"""
Stage shapes, gates and scoring.

The orchestrator itself lives in appforge.pipeline.pipeline.
"""
from .stages import (
    AnalysisOutput,
    ApplicationRecord,
    DeployOutput,
    GeneratedAction,
    OperationsOutput,
    ScheduleOutput,
    ScheduleSpec,
    SchemaOutput,
)
from .metrics import quality_score, relationship_complexity

__all__ = [
    "AnalysisOutput",
    "ApplicationRecord",
    "DeployOutput",
    "GeneratedAction",
    "OperationsOutput",
    "ScheduleOutput",
    "ScheduleSpec",
    "SchemaOutput",
    "quality_score",
    "relationship_complexity",
]
