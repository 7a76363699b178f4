# appforge/lib/monitoring.py
from fastapi import FastAPI
from prometheus_client.registry import CollectorRegistry as Registry
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator
from appforge.core.logging import log

# Separate registry so tests can import modules repeatedly without collisions
registry = Registry()

provider_requests = Counter(
    'appforge_provider_requests_total',
    'Requests sent to provisioning providers',
    ['service', 'outcome'],
    registry=registry
)

stage_duration = Histogram(
    'appforge_stage_duration_seconds',
    'Wall-clock duration of each pipeline stage',
    ['stage'],
    registry=registry
)

auto_deploy_runs = Counter(
    'appforge_auto_deploy_runs_total',
    'Auto-deployment trigger outcomes',
    ['outcome'],
    registry=registry
)

background_failures = Counter(
    'appforge_background_task_failures_total',
    'Supervised background tasks that raised',
    ['task'],
    registry=registry
)


def record_provider_request(service: str, outcome: str) -> None:
    provider_requests.labels(service=service, outcome=outcome).inc()


def observe_stage(stage: str, seconds: float) -> None:
    stage_duration.labels(stage=stage).observe(seconds)


def register_monitoring(app: FastAPI):
    """Registers Prometheus instrumentation and the /metrics endpoint."""
    instrumentator = Instrumentator(
        excluded_handlers=["/metrics"],
        registry=registry
    ).instrument(app)

    instrumentator.expose(app, include_in_schema=False, should_gzip=True)

    log("MONITORING", "Prometheus instrumentation registered at /metrics.")
