# File: fleet_tracker/infrastructure/config.py
"""
Configuration, Secrets and Logging for Fleet Tracking System

Settings are read from FLEET_* environment variables by pydantic-settings.
Connection secrets are fetched separately through a SecretProvider so that
repositories never read the environment themselves.
"""

from abc import ABC, abstractmethod
from typing import Optional, Any, Mapping
import logging
import os
import sys

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class SecretNotFoundError(Exception):
    """Raised when a secret is not available from its provider"""
    pass


# ============================================================================
# SETTINGS
# ============================================================================

class FleetSettings(BaseSettings):
    """Application settings, overridable through FLEET_* environment variables"""

    model_config = SettingsConfigDict(env_prefix="FLEET_", env_ignore_empty=True, extra="ignore")

    repository_backend: str = Field(default="memory", pattern="^(memory|mongo)$")
    mongo_url: Optional[str] = None
    mongo_database: str = "fleet"
    mongo_collection: str = "vehicles"
    mongo_events_collection: str = "vehicle_events"
    mongo_timeout_ms: int = Field(default=5000, gt=0)
    redis_url: Optional[str] = None
    event_channel: str = "fleet.vehicle-events"
    default_radius_km: float = Field(default=5.0, gt=0)
    simulator_interval_seconds: float = Field(default=5.0, gt=0)
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @field_validator('repository_backend', mode='before')
    @classmethod
    def normalize_backend(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


# ============================================================================
# SECRETS
# ============================================================================

class SecretProvider(ABC):
    """Source of connection secrets"""

    @abstractmethod
    async def get_secret(self, name: str) -> str:
        """Return the secret value or raise SecretNotFoundError"""
        pass


class EnvironmentSecretProvider(SecretProvider):
    """Reads secrets from environment variables: mongo-url -> FLEET_SECRET_MONGO_URL"""

    def __init__(self, environ: Optional[Mapping[str, str]] = None, prefix: str = "FLEET_SECRET_"):
        self.environ = os.environ if environ is None else environ
        self.prefix = prefix

    def variable_name(self, name: str) -> str:
        return self.prefix + name.replace("-", "_").replace(".", "_").upper()

    async def get_secret(self, name: str) -> str:
        value = self.environ.get(self.variable_name(name))
        if not value:
            raise SecretNotFoundError(f"Secret '{name}' not found ({self.variable_name(name)} is not set)")
        return value


class StaticSecretProvider(SecretProvider):
    """Secrets from a fixed mapping, e.g. a URL given directly in settings"""

    def __init__(self, secrets: Mapping[str, str]):
        self.secrets = dict(secrets)

    async def get_secret(self, name: str) -> str:
        if not self.secrets.get(name):
            raise SecretNotFoundError(f"Secret '{name}' not found")
        return self.secrets[name]


# ============================================================================
# LOGGING
# ============================================================================

def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Setup application logging configuration"""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )
    return logging.getLogger("fleet_tracker")
