# appforge/provisioning/types.py
"""
Shared value types for the provisioners.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class DeploymentStatus(str, Enum):
    """
    Lifecycle of a hosted deployment.

    TIMED_OUT is only produced by polling that gave up, so callers can tell
    "still building when we stopped looking" apart from a fresh deployment.
    """
    PENDING = "pending"
    BUILDING = "building"
    READY = "ready"
    ERROR = "error"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStatus.READY, DeploymentStatus.ERROR)

    @classmethod
    def from_ready_state(cls, ready_state: Optional[str]) -> "DeploymentStatus":
        state = (ready_state or "").upper()
        if state == "READY":
            return cls.READY
        if state in ("ERROR", "CANCELED"):
            return cls.ERROR
        if state in ("BUILDING", "INITIALIZING", "ANALYZING", "DEPLOYING"):
            return cls.BUILDING
        return cls.PENDING


@dataclass
class ExternalProject:
    """A project created on either provider."""
    id: str
    name: str
    region: Optional[str] = None
    default_branch_id: Optional[str] = None


@dataclass
class Deployment:
    id: str
    project_id: str
    url: str
    status: DeploymentStatus = DeploymentStatus.PENDING
    env_vars: Dict[str, str] = field(default_factory=dict)


@dataclass
class NamingAttempt:
    """Progress through the name-conflict resolution loop."""
    base_name: str
    attempt_count: int = 0
    current_candidate: str = ""

    def __post_init__(self):
        if not self.current_candidate:
            self.current_candidate = self.base_name
