# appforge/provisioning/credentials.py
"""
Short-lived cache for resolved database connection strings.

One cache belongs to one provisioner instance. Entries expire after a TTL so
rotated passwords are eventually picked up.
"""
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple


@dataclass
class CachedCredential:
    connection_string: str
    expires_at: float


class CredentialCache:
    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Tuple[str, str], CachedCredential] = {}

    def get(self, project_id: str, db_name: str) -> Optional[str]:
        entry = self._entries.get((project_id, db_name))
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[(project_id, db_name)]
            return None
        return entry.connection_string

    def put(self, project_id: str, db_name: str, connection_string: str) -> None:
        self._entries[(project_id, db_name)] = CachedCredential(
            connection_string=connection_string,
            expires_at=self._clock() + self.ttl,
        )

    def invalidate(self, project_id: str) -> None:
        """Drop every cached database for a project (e.g. after deletion)."""
        for key in [k for k in self._entries if k[0] == project_id]:
            del self._entries[key]
