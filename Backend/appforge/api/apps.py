# appforge/api/apps.py
"""
Application generation routes.
"""
import json
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from appforge.core.exceptions import (
    DocumentNotFoundError,
    GenerationError,
    PersistenceError,
    ProvisioningError,
    StageExecutionError,
    StageValidationError,
)
from appforge.core.logging import log
from appforge.lib.channel import ProjectChannel
from appforge.persistence.store import DocumentStore
from appforge.pipeline.pipeline import PipelineRequest
from appforge.pipeline.stages import ApplicationRecord

router = APIRouter(prefix="/api/apps", tags=["Apps"])


class GenerateAppRequest(BaseModel):
    prompt: str = Field(min_length=1)
    documentId: Optional[str] = None
    projectName: Optional[str] = None
    region: Optional[str] = None
    deploy: bool = True
    autoDeploy: bool = True
    environmentVars: Dict[str, str] = Field(default_factory=dict)
    conversation: str = ""


async def load_existing_app(store: DocumentStore, document_id: Optional[str]) -> Optional[ApplicationRecord]:
    """The application previously saved under document_id, if any."""
    if not document_id:
        return None
    try:
        doc = await store.get_document(document_id)
    except PersistenceError:
        return None
    if not doc.content:
        return None
    try:
        return ApplicationRecord.model_validate_json(doc.content)
    except ValidationError as e:
        log("DB", f"⚠️ Stored application is unreadable, regenerating from scratch: {e.error_count()} errors",
            project_id=document_id)
        return None


def _stage_error_status(error: StageExecutionError) -> int:
    if isinstance(error.__cause__, (ProvisioningError, GenerationError)):
        return 502
    return 500


@router.post("/generate")
async def generate_app(request: Request, data: GenerateAppRequest):
    """Run the full pipeline for one request."""
    state = request.app.state
    existing = await load_existing_app(state.store, data.documentId)
    channel = ProjectChannel(state.manager, data.documentId) if data.documentId else None

    pipeline_request = PipelineRequest(
        user_request=data.prompt,
        document_id=data.documentId,
        existing_app=existing,
        deploy=data.deploy,
        auto_deploy=data.autoDeploy,
        project_name=data.projectName,
        region=data.region,
        environment_variables=data.environmentVars,
        conversation_context=data.conversation,
    )

    try:
        result = await state.pipeline.run(pipeline_request, channel)
    except StageValidationError as e:
        raise HTTPException(status_code=422, detail={
            "stage": e.stage,
            "message": e.message,
            "issues": e.issues,
        })
    except StageExecutionError as e:
        raise HTTPException(status_code=_stage_error_status(e), detail={
            "stage": e.stage,
            "message": e.message,
        })

    return {
        "success": True,
        "appId": result.app_key,
        "documentId": data.documentId,
        "app": result.record.model_dump(mode="json"),
        "deployment": result.deployment.model_dump(mode="json") if result.deployment else None,
        "autoDeployScheduled": result.auto_deploy_task is not None,
        "metrics": {
            "qualityScore": result.metrics.quality_score,
            "relationshipComplexity": result.metrics.relationship_complexity,
            "actionComplexity": result.metrics.action_complexity,
            "scheduleComplexity": result.metrics.schedule_complexity,
            "stageDurations": result.metrics.stage_durations,
            "insights": result.metrics.insights,
        },
    }


@router.get("/{document_id}")
async def get_app(request: Request, document_id: str):
    """Saved application and its run metadata."""
    try:
        doc = await request.app.state.store.get_document(document_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail=f"Application {document_id} not found")

    return {
        "documentId": doc.id,
        "title": doc.title,
        "metadata": doc.metadata,
        "app": json.loads(doc.content) if doc.content else None,
    }
