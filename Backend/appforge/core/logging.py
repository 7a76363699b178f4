# appforge/core/logging.py
"""
Scoped console logging.

Only INFO_SCOPES are printed by default. Set APPFORGE_DEBUG=true to see all
scopes.
"""
import sys
import os
from datetime import datetime
from typing import Any, Optional, List


# ═══════════════════════════════════════════════════════════════════════════════
# LOG FILTERING
# ═══════════════════════════════════════════════════════════════════════════════

INFO_SCOPES = {
    "PIPELINE",     # Stage lifecycle
    "SCHEMA",       # Merge / repair decisions
    "NEON",         # Database provisioning
    "VERCEL",       # Hosting provisioning
    "DEPLOY",       # Deployment orchestration
    "AUTO-DEPLOY",  # Background trigger
    "DB",           # Document store
}

# Hidden unless APPFORGE_DEBUG=true
DEBUG_SCOPES = {
    "HTTP",
    "LLM",
    "SCAFFOLD",
    "WS",
    "MONITORING",
}

DEBUG_MODE = os.getenv("APPFORGE_DEBUG", "false").lower() == "true"


def _prefix(scope: str, project_id: Optional[str]) -> str:
    timestamp = datetime.now().strftime("%H:%M:%S")
    prefix = f"[{timestamp}] [{scope}]"
    if project_id:
        prefix += f" [{project_id[:8]}]"
    return prefix


def log(scope: str, message: str, data: Any = None, project_id: Optional[str] = None) -> None:
    """
    Unified logging function.

    Non-INFO scopes are skipped unless debug mode is on.
    """
    if not DEBUG_MODE and scope not in INFO_SCOPES:
        return

    print(f"{_prefix(scope, project_id)} {message}")

    if data:
        print(f"  Data: {data}")

    sys.stdout.flush()


def log_section(scope: str, title: str, project_id: Optional[str] = None) -> None:
    """Log a section header with visual separator."""
    print(f"\n{'='*60}")
    print(f"{_prefix(scope, project_id)} {title}")
    print(f"{'='*60}")
    sys.stdout.flush()


def log_result(
    scope: str,
    passed: bool,
    score: int,
    issues: Optional[List[str]] = None,
    project_id: Optional[str] = None,
) -> None:
    """Log a stage validation verdict with its quality score."""
    prefix = _prefix(scope, project_id)

    if passed:
        print(f"{prefix} ✅ PASSED - Quality: {score}/100")
    else:
        print(f"{prefix} ⚠️ FAILED - Quality: {score}/100")
        for issue in (issues or [])[:5]:
            print(f"{prefix}   - {issue}")
    sys.stdout.flush()
