# appforge/api/health.py
"""
Health check endpoints.
"""
from datetime import datetime, timezone
from fastapi import APIRouter

from appforge.db import get_connection_error, is_connected

router = APIRouter(tags=["Health"])


@router.get("/healthz")
async def healthz():
    """Simple health check."""
    return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/api/health")
async def api_health():
    """API health check with document store status."""
    return {
        "status": "healthy",
        "database": "mongodb" if is_connected() else "memory",
        "database_error": get_connection_error(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
