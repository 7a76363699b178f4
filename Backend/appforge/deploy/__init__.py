# appforge/deploy/__init__.py
"""
Deployment orchestration: the deployer, the per-application guard, and the
background auto-deploy trigger.
"""
from .guard import DeploymentGuard
from .supervisor import BackgroundSupervisor
from .auto_deploy import AutoDeployContext, AutoDeployTrigger
from .deployer import (
    ApplicationDeployer,
    build_environment,
    normalize_actions,
    normalize_name,
    normalize_schedules,
)

__all__ = [
    "DeploymentGuard",
    "BackgroundSupervisor",
    "AutoDeployContext",
    "AutoDeployTrigger",
    "ApplicationDeployer",
    "build_environment",
    "normalize_actions",
    "normalize_name",
    "normalize_schedules",
]
