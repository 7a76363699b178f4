# appforge/provisioning/__init__.py
"""
Clients for the external services an application is deployed onto.
"""
from .http_client import RateLimitedClient, RateLimiterState
from .neon import DatabaseProvisioner
from .vercel import DeploymentProvisioner, sanitize_project_name
from .types import Deployment, DeploymentStatus, ExternalProject, NamingAttempt

__all__ = [
    "RateLimitedClient",
    "RateLimiterState",
    "DatabaseProvisioner",
    "DeploymentProvisioner",
    "sanitize_project_name",
    "Deployment",
    "DeploymentStatus",
    "ExternalProject",
    "NamingAttempt",
]
