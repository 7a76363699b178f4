# appforge/provisioning/neon.py
"""
Postgres project provisioner backed by the Neon management API.
"""
import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx

from appforge.core.config import settings
from appforge.core.exceptions import ConnectionStringError, ProvisioningError
from appforge.core.logging import log
from appforge.provisioning.credentials import CredentialCache
from appforge.provisioning.http_client import RateLimitedClient, Clock, Sleeper
from appforge.provisioning.types import ExternalProject


SERVICE = "neon"


class DatabaseProvisioner:
    """
    Creates Postgres projects and resolves their connection strings.

    Usage:
        async with DatabaseProvisioner() as neon:
            project = await neon.create_project("my-app")
            await neon.ensure_database(project.id, "neondb")
            url = await neon.get_connection_string(project.id, "neondb")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        api_key = api_key or settings.neon.api_key
        if not api_key:
            raise ProvisioningError(SERVICE, "NEON_API_KEY is not configured")

        self.client = RateLimitedClient(
            service=SERVICE,
            base_url=base_url or settings.neon.base_url,
            token=api_key,
            min_interval=settings.neon.min_interval,
            transport=transport,
            clock=clock,
            sleep=sleep,
        )
        self.credentials = CredentialCache(settings.neon.credential_ttl, clock=clock)

    async def __aenter__(self) -> "DatabaseProvisioner":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    # ═══════════════════════════════════════════════════════
    # PROJECTS
    # ═══════════════════════════════════════════════════════

    async def create_project(self, name: str, region: Optional[str] = None) -> ExternalProject:
        """Create a Postgres 16 project with stored passwords. Single attempt."""
        region = region or settings.neon.region
        log("NEON", f"🐘 Creating database project '{name}' in {region}")

        data = await self.client.post("/projects", {
            "project": {
                "name": name,
                "region_id": region,
                "pg_version": settings.neon.pg_version,
                "store_passwords": True,
            }
        })

        project = data.get("project", {})
        branch = data.get("branch") or {}
        created = ExternalProject(
            id=project["id"],
            name=project.get("name", name),
            region=project.get("region_id", region),
            default_branch_id=branch.get("id"),
        )
        log("NEON", f"✅ Database project created: {created.id}")
        return created

    async def get_project(self, project_id: str) -> ExternalProject:
        data = await self.client.get(f"/projects/{project_id}")
        project = (data or {}).get("project", {})
        return ExternalProject(
            id=project.get("id", project_id),
            name=project.get("name", ""),
            region=project.get("region_id"),
            default_branch_id=project.get("default_branch_id"),
        )

    async def list_projects(self) -> List[Dict[str, Any]]:
        data = await self.client.get("/projects")
        return (data or {}).get("projects", [])

    async def delete_project(self, project_id: str) -> None:
        await self.client.delete(f"/projects/{project_id}")
        self.credentials.invalidate(project_id)
        log("NEON", f"🗑️ Deleted database project {project_id}")

    async def check_readiness(self) -> Dict[str, Any]:
        """Confirm the API key works by listing projects. Never raises."""
        try:
            projects = await self.list_projects()
        except Exception as e:
            log("NEON", f"❌ Readiness check failed: {e}")
            return {
                "success": False,
                "message": f"Database service not ready: {e}",
                "details": {"neon": {"error": str(e)}},
            }
        return {
            "success": True,
            "message": "Database service is ready.",
            "details": {"neon": {"connected": True, "project_count": len(projects)}},
        }

    # ═══════════════════════════════════════════════════════
    # BRANCHES / DATABASES
    # ═══════════════════════════════════════════════════════

    async def resolve_default_branch_id(self, project_id: str) -> str:
        """
        Fetch the project and return its default branch id.

        Older projects do not report the id on the project record, so the
        branch list is consulted for the branch flagged default or primary.

        Raises:
            ProvisioningError if the project has no default branch
        """
        project = await self.get_project(project_id)
        if project.default_branch_id:
            return project.default_branch_id

        data = await self.client.get(f"/projects/{project_id}/branches")
        for branch in (data or {}).get("branches", []):
            if branch.get("default") or branch.get("primary"):
                return branch["id"]

        raise ProvisioningError(SERVICE, f"Project {project_id} has no default branch")

    async def ensure_database(self, project_id: str, db_name: str) -> bool:
        """
        Make sure `db_name` exists on the project's default branch.

        Returns:
            True if the database was created, False if it already existed
        """
        branch_id = await self.resolve_default_branch_id(project_id)

        data = await self.client.get(f"/projects/{project_id}/branches/{branch_id}/databases")
        existing = {db.get("name") for db in (data or {}).get("databases", [])}

        if db_name in existing:
            log("NEON", f"Database '{db_name}' already exists on {branch_id}")
            return False

        await self.client.post(
            f"/projects/{project_id}/branches/{branch_id}/databases",
            {"database": {"name": db_name, "owner_name": settings.neon.owner_role}},
        )
        log("NEON", f"✅ Created database '{db_name}' on {branch_id}")
        return True

    # ═══════════════════════════════════════════════════════
    # CONNECTION STRINGS
    # ═══════════════════════════════════════════════════════

    async def get_connection_string(self, project_id: str, db_name: Optional[str] = None) -> str:
        """
        Resolve a connection string for `db_name`.

        Tries the provider's connection_uri endpoint first. If that fails the
        string is assembled by hand from the default branch, its read-write
        endpoint, the owner role and its revealed password.

        Raises:
            ConnectionStringError carrying both failures
        """
        db_name = db_name or settings.neon.default_database

        cached = self.credentials.get(project_id, db_name)
        if cached:
            return cached

        try:
            uri = await self._primary_connection_string(project_id, db_name)
        except Exception as primary_error:
            log("NEON", f"⚠️ connection_uri lookup failed, assembling manually: {primary_error}")
            try:
                uri = await self._fallback_connection_string(project_id, db_name)
            except Exception as fallback_error:
                raise ConnectionStringError(project_id, primary_error, fallback_error) from fallback_error

        self.credentials.put(project_id, db_name, uri)
        return uri

    async def _primary_connection_string(self, project_id: str, db_name: str) -> str:
        data = await self.client.get(
            f"/projects/{project_id}/connection_uri",
            params={"database_name": db_name, "role_name": settings.neon.owner_role},
        )
        uri = (data or {}).get("uri")
        if not uri:
            raise ProvisioningError(SERVICE, "connection_uri response did not include a uri")
        return uri

    async def _fallback_connection_string(self, project_id: str, db_name: str) -> str:
        branch_id = await self.resolve_default_branch_id(project_id)

        data = await self.client.get(f"/projects/{project_id}/endpoints")
        endpoints = (data or {}).get("endpoints", [])
        endpoint = next(
            (e for e in endpoints if e.get("type") == "read_write" and e.get("branch_id") == branch_id),
            None,
        )
        if endpoint is None:
            raise ProvisioningError(SERVICE, f"No read-write endpoint on branch {branch_id}")

        data = await self.client.get(f"/projects/{project_id}/branches/{branch_id}/roles")
        roles = (data or {}).get("roles", [])
        if not roles:
            raise ProvisioningError(SERVICE, f"No roles on branch {branch_id}")
        role = next((r for r in roles if r.get("name") == settings.neon.owner_role), roles[0])
        role_name = role["name"]

        data = await self.client.get(
            f"/projects/{project_id}/branches/{branch_id}/roles/{role_name}/reveal_password"
        )
        password = (data or {}).get("password")
        if not password:
            raise ProvisioningError(SERVICE, f"Password for role {role_name} is not available")

        return f"postgresql://{role_name}:{password}@{endpoint['host']}:5432/{db_name}?sslmode=require"
