"""
Core settings configuration for the editor backend.
Handles environment variables, the YAML feature file, and service configuration.
"""

import os
from typing import Optional, Dict, Any, List

import yaml
import structlog
from pydantic import Field
from pydantic_settings import BaseSettings

logger = structlog.get_logger(__name__)

FEATURES_PATH = os.path.join(os.path.dirname(__file__), "features.yaml")


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # ========================
    # REMOTE REPOSITORY API
    # ========================
    github_api_url: str = Field(default="https://api.github.com", description="GitHub REST API base URL")
    github_web_url: str = Field(default="https://github.com", description="Base URL used for remote origins")
    http_timeout_seconds: float = Field(default=30.0, description="Total timeout handed to the HTTP transport")
    user_agent: str = Field(default="Editor-Backend", description="User-Agent sent to the remote API")

    # ========================
    # STORAGE
    # ========================
    vfs_root: str = Field(default="./.editor_vfs", description="Backing directory of the virtual filesystem")

    # ========================
    # IMPORT ENGINE
    # ========================
    blob_fetch_concurrency: int = Field(default=8, ge=1, description="Maximum in-flight blob requests")
    default_import_strategy: str = Field(default="tarball", description="tarball, zipball or tree")
    api_cache_ttl_seconds: int = Field(default=300, description="TTL of cached JSON responses")
    api_cache_size: int = Field(default=1000, description="Maximum cached JSON responses")

    # ========================
    # VERSION CONTROL
    # ========================
    git_author_name: str = Field(default="User")
    git_author_email: str = Field(default="user@example.com")
    git_remote_name: str = Field(default="origin")

    # ========================
    # LOGGING
    # ========================
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # ========================
    # YAML CONFIGURATION
    # ========================
    _yaml_config: Optional[Dict[str, Any]] = None

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._load_yaml_config()

    def _load_yaml_config(self):
        """Load configuration from YAML file."""
        try:
            with open(FEATURES_PATH, 'r', encoding='utf-8') as f:
                self._yaml_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not load YAML config", path=FEATURES_PATH, error=str(e))
            self._yaml_config = {}

    def get_yaml_config(self, key: str, default: Any = None) -> Any:
        """Get configuration value from YAML file."""
        if not self._yaml_config:
            return default

        keys = key.split('.')
        value = self._yaml_config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    # ========================
    # APPLICATION SETTINGS (from YAML)
    # ========================
    @property
    def app_name(self) -> str:
        return self.get_yaml_config("app.name", "Editor Backend")

    @property
    def api_prefix(self) -> str:
        return self.get_yaml_config("app.api_prefix", "/api/v1")

    @property
    def cors_origins(self) -> List[str]:
        return self.get_yaml_config("app.cors_origins", ["*"])

    # ========================
    # FEATURE FLAGS (from YAML)
    # ========================
    @property
    def feature_flags(self) -> Dict[str, bool]:
        return {
            "tarball_strategy": self.get_yaml_config("features.tarball_strategy", True),
            "zipball_strategy": self.get_yaml_config("features.zipball_strategy", True),
            "tree_strategy": self.get_yaml_config("features.tree_strategy", True),
            "push": self.get_yaml_config("features.push", True),
            "local_repositories": self.get_yaml_config("features.local_repositories", True),
        }

    def is_feature_enabled(self, feature_name: str) -> bool:
        """Check if a feature is enabled."""
        return self.feature_flags.get(feature_name, False)

    # ========================
    # VALIDATION METHODS
    # ========================

    def validate_log_level(self) -> str:
        """Validate log level setting."""
        level = self.log_level
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if level.upper() not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return level.upper()

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"
    }


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def is_feature_enabled(feature_name: str) -> bool:
    """Check if a feature is enabled."""
    return settings.is_feature_enabled(feature_name)
