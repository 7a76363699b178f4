# appforge/core/config.py
"""
Application configuration - single source of truth for all settings.
"""
import os
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class LLMSettings:
    """LLM provider configuration."""
    default_provider: str = field(default_factory=lambda: os.getenv("DEFAULT_LLM_PROVIDER", "gemini"))
    default_model: str = field(default_factory=lambda: os.getenv("DEFAULT_LLM_MODEL", "gemini-2.0-flash"))
    gemini_api_key: Optional[str] = field(default_factory=lambda: os.getenv("GEMINI_API_KEY"))
    temperature: float = 0.2
    max_tokens: int = 8000
    request_timeout: int = 120


@dataclass
class HttpSettings:
    """Shared retry behaviour for provider HTTP clients."""
    max_retries: int = field(default_factory=lambda: int(os.getenv("PROVIDER_MAX_RETRIES", "3")))
    # Seconds; doubled on every retry.
    base_delay: float = field(default_factory=lambda: float(os.getenv("PROVIDER_BASE_DELAY", "1.0")))
    timeout: float = 60.0


@dataclass
class NeonSettings:
    """Postgres project provisioner (Neon)."""
    api_key: Optional[str] = field(default_factory=lambda: os.getenv("NEON_API_KEY"))
    base_url: str = field(default_factory=lambda: os.getenv("NEON_API_URL", "https://console.neon.tech/api/v2"))
    region: str = field(default_factory=lambda: os.getenv("NEON_REGION", "aws-us-east-1"))
    pg_version: int = 16
    default_database: str = "neondb"
    owner_role: str = "neondb_owner"
    min_interval: float = 0.5
    # Seconds a resolved connection string stays in the provisioner cache.
    credential_ttl: float = 15 * 60


@dataclass
class VercelSettings:
    """Application hosting provisioner (Vercel)."""
    token: Optional[str] = field(default_factory=lambda: os.getenv("VERCEL_TOKEN"))
    team_id: Optional[str] = field(default_factory=lambda: os.getenv("VERCEL_TEAM_ID"))
    base_url: str = field(default_factory=lambda: os.getenv("VERCEL_API_URL", "https://api.vercel.com"))
    min_interval: float = 0.3
    poll_interval: float = 10.0
    poll_max_attempts: int = 30
    max_name_attempts: int = 10
    max_name_length: int = 100


@dataclass
class PipelineSettings:
    """Stage pipeline and auto-deployment behaviour."""
    min_confidence: int = 50
    deploy_enabled: bool = field(default_factory=lambda: _env_bool("DEPLOY_ENABLED", "true"))
    auto_deploy_enabled: bool = field(default_factory=lambda: _env_bool("AUTO_DEPLOY_ENABLED", "true"))
    # Applications whose last deployment the guard keeps in memory
    deployment_history_size: int = field(default_factory=lambda: int(os.getenv("DEPLOYMENT_HISTORY_SIZE", "500")))
    # Debounce before the auto-deploy trigger starts work.
    auto_deploy_delay: float = field(default_factory=lambda: float(os.getenv("AUTO_DEPLOY_DELAY", "2.0")))


@dataclass
class DatabaseSettings:
    """Document store configuration."""
    mongo_url: str = field(default_factory=lambda: os.getenv("MONGODB_URL", "mongodb://localhost:27017"))
    database_name: str = field(default_factory=lambda: os.getenv("MONGODB_DATABASE", "appforge"))


@dataclass
class Settings:
    """Main application settings."""
    llm: LLMSettings = field(default_factory=LLMSettings)
    http: HttpSettings = field(default_factory=HttpSettings)
    neon: NeonSettings = field(default_factory=NeonSettings)
    vercel: VercelSettings = field(default_factory=VercelSettings)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)

    # Server
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG", "false"))


# Singleton instance
settings = Settings()
