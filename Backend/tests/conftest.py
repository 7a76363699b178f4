# tests/conftest.py
"""
Shared pytest fixtures for AppForge tests.

Provides:
- A fake clock whose sleep advances time instantly
- A scripted HTTP API served through httpx.MockTransport
- A scripted generator keyed by response shape
- Sample stage outputs for a small project tracker app
- An in-memory document store, a mock live channel and an API client
"""
import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Type
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from pydantic import BaseModel

from appforge.persistence import InMemoryDocumentStore
from appforge.pipeline.stages import (
    ActionCode,
    AnalysisOutput,
    DeployOutput,
    OperationsPlan,
    ScheduleDraft,
    SchemaDraft,
)


# ═══════════════════════════════════════════════════════
# FAKE TIME
# ═══════════════════════════════════════════════════════

class FakeClock:
    """Monotonic clock in seconds. sleep() advances it without waiting."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(seconds, 0)


@pytest.fixture
def fake_clock():
    return FakeClock()


# ═══════════════════════════════════════════════════════
# SCRIPTED HTTP API
# ═══════════════════════════════════════════════════════

Reply = Any  # (status, json_body) or callable(request) -> httpx.Response


class FakeApi:
    """
    Route table for httpx.MockTransport.

    Each (method, path) holds a queue of replies; the last reply repeats once
    the queue is down to one. Unrouted requests get a 404.
    """

    def __init__(self, clock: Optional[FakeClock] = None):
        self.routes: Dict[Tuple[str, str], List[Reply]] = {}
        self.requests: List[httpx.Request] = []
        self.started_at: List[float] = []
        self.clock = clock

    def add(self, method: str, path: str, *replies: Reply) -> "FakeApi":
        self.routes.setdefault((method, path), []).extend(replies)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.clock is not None:
            self.started_at.append(self.clock())

        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": f"no route for {request.method} {request.url.path}"})

        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(reply):
            return reply(request)
        status, body = reply
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def body(self, request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def fake_api(fake_clock):
    return FakeApi(clock=fake_clock)


# ═══════════════════════════════════════════════════════
# SCRIPTED GENERATOR
# ═══════════════════════════════════════════════════════

class FakeGenerator:
    """
    Generator returning canned values per response shape.

    A value may be a dict (validated into the shape), a shape instance, an
    exception (raised), or a callable(prompt, context) returning any of those.
    """

    def __init__(self, responses: Dict[Type[BaseModel], Any]):
        self.responses = dict(responses)
        self.calls: List[Tuple[Type[BaseModel], str, Dict[str, Any]]] = []

    async def generate(self, stage_prompt: str, context: Dict[str, Any], shape: Type[BaseModel]) -> Any:
        self.calls.append((shape, stage_prompt, context))
        value = self.responses[shape]
        if callable(value) and not isinstance(value, (BaseModel, Exception)):
            value = value(stage_prompt, context)
        if isinstance(value, Exception):
            raise value
        if isinstance(value, dict):
            return shape.model_validate(value)
        return value

    def shapes_called(self) -> List[Type[BaseModel]]:
        return [shape for shape, _, _ in self.calls]


# ═══════════════════════════════════════════════════════
# SAMPLE APP: PROJECT TRACKER
# ═══════════════════════════════════════════════════════

BUSINESS_SCHEMA = """/// A body of work
model Project {
  id        String   @id @default(cuid())
  name      String
  tasks     Task[]
  createdAt DateTime @default(now())
}

model Task {
  id        String   @id @default(cuid())
  title     String
  done      Boolean  @default(false)
  projectId String
  project   Project  @relation(fields: [projectId], references: [id])
  tags      Tag[]
}

model Tag {
  id     String  @id @default(cuid())
  label  String  @unique
  taskId String?
  task   Task?   @relation(fields: [taskId], references: [id])
}
"""


@pytest.fixture
def business_schema():
    return BUSINESS_SCHEMA


@pytest.fixture
def analysis_payload():
    return {
        "app_name": "Project Tracker",
        "app_description": "Track projects and their tasks.",
        "domain": "productivity",
        "confidence": 85,
        "operation": "create",
        "models": [
            {"name": "Project", "operation": "create", "description": "A body of work"},
            {"name": "Task", "operation": "create", "description": "A unit of work"},
            {"name": "Tag", "operation": "create", "description": "Task label"},
        ],
        "actions": [
            {"name": "list-tasks", "operation": "create", "type": "query", "description": "List tasks"},
            {"name": "complete-task", "operation": "create", "type": "mutation", "description": "Finish a task"},
        ],
        "schedules": [
            {"name": "daily-digest", "operation": "create", "type": "cron", "description": "Daily summary"},
        ],
    }


@pytest.fixture
def operations_plan_payload():
    return {
        "actions": [
            {
                "name": "list-tasks",
                "description": "List tasks for a project",
                "action_type": "query",
                "models": ["Task"],
                "inputs": [{"name": "projectId", "type": "string"}],
            },
            {
                "name": "complete-task",
                "description": "Mark a task done",
                "action_type": "mutation",
                "models": ["Task"],
                "inputs": [{"name": "taskId", "type": "string"}],
            },
        ],
        "implementation_notes": "Plain Prisma calls.",
    }


@pytest.fixture
def schedule_payload():
    return {
        "schedules": [
            {
                "name": "daily-digest",
                "description": "Summarise open tasks",
                "pattern": "0 8 * * *",
                "action": "list-tasks",
            }
        ]
    }


@pytest.fixture
def tracker_responses(analysis_payload, operations_plan_payload, schedule_payload):
    return {
        AnalysisOutput: analysis_payload,
        SchemaDraft: {"prisma_schema": BUSINESS_SCHEMA, "design_rationale": "Projects own tasks."},
        OperationsPlan: operations_plan_payload,
        ActionCode: {"code": "return await prisma.task.findMany();"},
        ScheduleDraft: schedule_payload,
    }


@pytest.fixture
def tracker_generator(tracker_responses):
    return FakeGenerator(tracker_responses)


# ═══════════════════════════════════════════════════════
# DEPLOYMENTS
# ═══════════════════════════════════════════════════════

def make_deploy_output(**overrides) -> DeployOutput:
    values = {
        "deployment_id": "dpl_1",
        "project_id": "prj_1",
        "project_name": "project-tracker",
        "deployment_url": "https://project-tracker.vercel.app",
        "status": "ready",
        "database_project_id": "proj_1",
        "env_var_names": ["DATABASE_URL"],
        "prisma_schema": BUSINESS_SCHEMA,
        "api_endpoints": ["https://project-tracker.vercel.app/api/list-tasks"],
    }
    values.update(overrides)
    return DeployOutput(**values)


@pytest.fixture
def fake_deployer():
    """ApplicationDeployer stand-in whose deploy() returns a ready deployment."""
    deployer = AsyncMock()
    deployer.deploy = AsyncMock(return_value=make_deploy_output())
    return deployer


# ═══════════════════════════════════════════════════════
# STORE / CHANNEL / API CLIENT
# ═══════════════════════════════════════════════════════

@pytest.fixture
def memory_store():
    return InMemoryDocumentStore()


@pytest.fixture
def mock_channel():
    """Live channel recording every pushed event."""
    channel = AsyncMock()
    channel.push = AsyncMock()
    return channel


def pushed_types(channel) -> List[str]:
    return [c.args[0] for c in channel.push.await_args_list]


@pytest_asyncio.fixture
async def async_client():
    from appforge.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
