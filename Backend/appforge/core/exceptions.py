# appforge/core/exceptions.py
"""
Custom exceptions for the application.
"""
from typing import Optional, Dict, Any, List


class AppForgeError(Exception):
    """Base exception for all AppForge errors."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ═══════════════════════════════════════════════════════
# PROVISIONING
# ═══════════════════════════════════════════════════════

class ProvisioningError(AppForgeError):
    """An external provisioning service could not complete a request."""
    def __init__(self, service: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{service} error: {message}", {"service": service, **(details or {})})
        self.service = service


class ProvisioningHttpError(ProvisioningError):
    """Non-2xx response from a provider API, carrying the full response context."""
    def __init__(
        self,
        service: str,
        status_code: int,
        status_text: str,
        endpoint: str,
        method: str,
        body: str,
    ):
        super().__init__(
            service,
            f"{status_code} {status_text}\n"
            f"Endpoint: {method} {endpoint}\n"
            f"Response: {body}",
            {
                "status_code": status_code,
                "status_text": status_text,
                "endpoint": endpoint,
                "method": method,
            },
        )
        self.status_code = status_code
        self.status_text = status_text
        self.endpoint = endpoint
        self.method = method
        self.body = body

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class NameConflictExhaustedError(ProvisioningError):
    """Every candidate project name collided with an existing project."""
    def __init__(self, service: str, base_name: str, attempts: int, last_error: Optional[Exception] = None):
        super().__init__(
            service,
            f"Failed to create project '{base_name}' after {attempts} naming attempts: {last_error}",
            {"base_name": base_name, "attempts": attempts},
        )
        self.base_name = base_name
        self.attempts = attempts
        self.last_error = last_error


class ConnectionStringError(ProvisioningError):
    """Both the primary and the fallback connection-string paths failed."""
    def __init__(self, project_id: str, primary_error: Exception, fallback_error: Exception):
        super().__init__(
            "neon",
            f"Could not resolve connection string for {project_id}. "
            f"Primary: {primary_error}. Fallback: {fallback_error}",
            {"project_id": project_id},
        )
        self.project_id = project_id
        self.primary_error = primary_error
        self.fallback_error = fallback_error


# ═══════════════════════════════════════════════════════
# PIPELINE
# ═══════════════════════════════════════════════════════

class GenerationError(AppForgeError):
    """The generator could not produce output of the requested shape."""
    def __init__(self, provider: str, message: str):
        super().__init__(f"Generation error ({provider}): {message}", {"provider": provider})
        self.provider = provider


class StageValidationError(AppForgeError):
    """A stage produced output that failed its validator."""
    def __init__(self, stage: str, issues: List[str]):
        super().__init__(
            f"{stage} stage failed validation: {'; '.join(issues)}",
            {"stage": stage, "issues": issues},
        )
        self.stage = stage
        self.issues = issues


class StageExecutionError(AppForgeError):
    """A stage raised while running; the original error is chained."""
    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage} stage failed: {message}", {"stage": stage})
        self.stage = stage


class SchemaError(AppForgeError):
    """Schema text could not be parsed."""
    def __init__(self, message: str, line_no: Optional[int] = None):
        where = f" (line {line_no})" if line_no else ""
        super().__init__(f"Schema error{where}: {message}", {"line_no": line_no})
        self.line_no = line_no


# ═══════════════════════════════════════════════════════
# DEPLOYMENT / PERSISTENCE
# ═══════════════════════════════════════════════════════

class DeploymentInFlightError(AppForgeError):
    """Another deployment already holds the claim for this application."""
    def __init__(self, app_key: str):
        super().__init__(f"Deployment already in progress for {app_key}", {"app_key": app_key})
        self.app_key = app_key


class PersistenceError(AppForgeError):
    """Document store read or write failed."""
    def __init__(self, document_id: str, message: str):
        super().__init__(f"Cannot access document {document_id}: {message}", {"document_id": document_id})
        self.document_id = document_id


class DocumentNotFoundError(PersistenceError):
    """The document has not been saved yet."""
    def __init__(self, document_id: str):
        super().__init__(document_id, "not found")
