# appforge/core/__init__.py
"""
Core module - configuration, logging and shared exceptions.
"""
from .config import settings
from .exceptions import (
    AppForgeError,
    ProvisioningError,
    ProvisioningHttpError,
    NameConflictExhaustedError,
    ConnectionStringError,
    GenerationError,
    StageValidationError,
    StageExecutionError,
    SchemaError,
    DeploymentInFlightError,
    PersistenceError,
    DocumentNotFoundError,
)

__all__ = [
    "settings",
    "AppForgeError",
    "ProvisioningError",
    "ProvisioningHttpError",
    "NameConflictExhaustedError",
    "ConnectionStringError",
    "GenerationError",
    "StageValidationError",
    "StageExecutionError",
    "SchemaError",
    "DeploymentInFlightError",
    "PersistenceError",
    "DocumentNotFoundError",
]
