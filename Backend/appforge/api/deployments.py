# appforge/api/deployments.py
"""
Deployment routes.
"""
from fastapi import APIRouter, Request

router = APIRouter(prefix="/api/deployments", tags=["Deployment"])


@router.get("/readiness")
async def deployment_readiness(request: Request):
    """Check the hosting provider accepts our token. Always 200; see `success`."""
    return await request.app.state.deployer.check_readiness()


@router.get("/background")
async def background_status(request: Request):
    """Number of auto-deployments still running."""
    return {"active": request.app.state.supervisor.active_count}
