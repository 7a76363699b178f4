# appforge/main.py
"""
AppForge Backend - natural-language request to deployed application.
"""
import os
import uvicorn
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from starlette.middleware.cors import CORSMiddleware

# Rate limiting
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from dotenv import load_dotenv
load_dotenv()

from appforge.core.config import settings
from appforge.core.logging import log
from appforge.deploy import ApplicationDeployer, AutoDeployTrigger, BackgroundSupervisor, DeploymentGuard
from appforge.lib.websocket import ConnectionManager
from appforge.llm import LLMGenerator
from appforge.persistence import BeanieDocumentStore, DocumentStore, InMemoryDocumentStore
from appforge.pipeline.pipeline import StagePipeline

# Print environment status
print("🔑 Environment check:")
print(f"  GEMINI_API_KEY loaded: {bool(settings.llm.gemini_api_key)}")
print(f"  NEON_API_KEY loaded: {bool(settings.neon.api_key)}")
print(f"  VERCEL_TOKEN loaded: {bool(settings.vercel.token)}")
print(f"  Default model: {settings.llm.default_model}")

manager = ConnectionManager()
guard = DeploymentGuard()
supervisor = BackgroundSupervisor()
deployer = ApplicationDeployer()


def build_pipeline(store: DocumentStore) -> StagePipeline:
    auto_deployer = AutoDeployTrigger(deployer, store, guard, supervisor)
    return StagePipeline(
        LLMGenerator(),
        deployer=deployer,
        store=store,
        guard=guard,
        auto_deployer=auto_deployer,
    )


# ---------------------------------------------------------------------------
# LIFESPAN
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    print("🚀 AppForge starting...")

    from appforge.db import connect_db, disconnect_db, is_connected
    await connect_db()

    if is_connected():
        app.state.store = BeanieDocumentStore()
        app.state.pipeline = build_pipeline(app.state.store)

    yield

    print("🔌 Shutting down...")
    await supervisor.shutdown()
    await disconnect_db()


# ---------------------------------------------------------------------------
# APP INITIALIZATION
# ---------------------------------------------------------------------------

app = FastAPI(
    title="AppForge",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.manager = manager
app.state.guard = guard
app.state.supervisor = supervisor
app.state.deployer = deployer
app.state.store = InMemoryDocumentStore()
app.state.pipeline = build_pipeline(app.state.store)

# Monitoring
from appforge.lib.monitoring import register_monitoring
register_monitoring(app)

# CORS: comma-separated CORS_ORIGINS in production
cors_origins_str = os.getenv("CORS_ORIGINS", "*")
cors_origins = cors_origins_str.split(",") if cors_origins_str != "*" else ["*"]

if cors_origins == ["*"] and not settings.debug:
    print("⚠️ [CORS] Warning: Using allow_origins=['*'] - consider setting CORS_ORIGINS in production")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate Limiting: RATE_LIMIT env var, e.g. "50/minute"
rate_limit = os.getenv("RATE_LIMIT", "100/minute")
limiter = Limiter(key_func=get_remote_address, default_limits=[rate_limit])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
print(f"🛡️ [SECURITY] Rate limiting enabled: {rate_limit}")


# ---------------------------------------------------------------------------
# WEBSOCKET
# ---------------------------------------------------------------------------

@app.websocket("/ws/{document_id}")
async def websocket_endpoint(websocket: WebSocket, document_id: str):
    """Live pipeline and deployment events for one document."""
    await manager.connect(websocket, document_id)
    try:
        while True:
            data = await websocket.receive_json()
            if data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        await manager.disconnect(websocket, document_id)
    except Exception as e:
        log("WS", f"Error: {e}", project_id=document_id)
        await manager.disconnect(websocket, document_id)


# ---------------------------------------------------------------------------
# API ROUTES
# ---------------------------------------------------------------------------

from appforge.api import apps, deployments, health

app.include_router(health.router)
app.include_router(apps.router)
app.include_router(deployments.router)


# ---------------------------------------------------------------------------
# RUN
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "appforge.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
    )
