"""
Configuration
=============

Centralized configuration for the context engine.

All settings can be overridden via environment variables with the
CONTEXT_ENGINE_ prefix (e.g., CONTEXT_ENGINE_MAX_SKILL_MATCHES=5).
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Tool names agents may declare that are served locally rather than by a connector
DEFAULT_BUILTIN_TOOLS = [
    "changes",
    "codebase",
    "edit",
    "editFiles",
    "extensions",
    "fetch",
    "findTestFiles",
    "githubRepo",
    "new",
    "openSimpleBrowser",
    "problems",
    "read",
    "runCommands",
    "runTasks",
    "runTests",
    "search",
    "terminalLastCommand",
    "terminalSelection",
    "testFailure",
    "usages",
    "vscodeAPI",
]


class EngineSettings(BaseSettings):
    """Context engine configuration.

    Attributes:
        max_skill_matches: Default cap on skills included per request
        builtin_tools: Known local tool vocabulary used by scope checks
        manifest_path: JSON manifest of pre-parsed primitive records
        reload_poll_interval: Seconds between manifest change checks
        capability_refresh_timeout: Seconds allowed for a capability refresh
    """

    model_config = SettingsConfigDict(env_prefix="CONTEXT_ENGINE_", case_sensitive=False)

    # Resolution
    max_skill_matches: int = Field(default=3, ge=1, le=50)
    builtin_tools: List[str] = Field(default_factory=lambda: list(DEFAULT_BUILTIN_TOOLS))

    # Loading
    manifest_path: Optional[str] = Field(default=None)
    reload_poll_interval: float = Field(default=2.0, gt=0)
    capability_refresh_timeout: float = Field(default=5.0, gt=0)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    service_name: str = Field(default="context-engine")


# Singleton settings instance
_settings: Optional[EngineSettings] = None


def get_settings() -> EngineSettings:
    """Get the engine settings.

    Returns a cached singleton instance. Settings are loaded from
    environment variables on first access.
    """
    global _settings
    if _settings is None:
        _settings = EngineSettings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
