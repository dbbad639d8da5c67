"""Configuration loading from YAML and environment.

Settings missing from the YAML file are read from environment variables
with the section prefix (STORE_, CLAIM_, LOGGING_), then defaults.
Command-line flags override everything.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = Path(".beads/claim.yaml")

# Injected by load_config so ${VAR} substitution reads a stable copy of the env
_current_env: dict[str, str] = {}


class StoreConfig(BaseSettings):
    """Beads database location and SQLite settings."""

    model_config = SettingsConfigDict(env_prefix="STORE_", extra="ignore")

    db_path: Path | None = Field(default=None, description="Database path; skips workspace discovery when set")
    busy_timeout_ms: int = Field(default=3000, ge=1, description="SQLite busy timeout in milliseconds")
    journal_mode: str = Field(default="WAL", description="Journal mode to set on open; empty leaves it unchanged")
    skip_version_check: bool = Field(default=False, description="Skip the bd_version compatibility check")
    max_attempts: int = Field(default=3, ge=1, le=10, description="Claim attempts when the database is busy")
    base_backoff_ms: int = Field(default=20, ge=0, description="First retry delay; doubles on each retry")


class ClaimConfig(BaseSettings):
    """Defaults for claim requests."""

    model_config = SettingsConfigDict(env_prefix="CLAIM_", extra="ignore")

    agent: str | None = Field(default=None, description="Agent name when --agent is not given")
    labels: list[str] = Field(default_factory=list, description="Required labels")
    exclude_labels: list[str] = Field(default_factory=list, description="Excluded labels")
    min_priority: int | None = Field(default=None, ge=0, le=2, description="Minimum priority (0=low, 2=high)")
    only_unassigned: bool = Field(default=False, description="Only consider unassigned issues")
    timeout_seconds: float | None = Field(default=None, gt=0, description="Deadline for one claim call")


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="ERROR", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format (ignored when json_format is true)",
    )
    json_format: bool = Field(default=True, description="One JSON object per line on stderr")

    @field_validator("level")
    @classmethod
    def _strip_level(cls, value: str) -> str:
        return value.strip().upper()


class AppConfig(BaseSettings):
    """Root application config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore")

    store: StoreConfig = Field(default_factory=StoreConfig)
    claim: ClaimConfig = Field(default_factory=ClaimConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings with environment values."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return _current_env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return _current_env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from a YAML file and the environment.

    A missing file yields env values and defaults only.

    Raises:
        yaml.YAMLError: when the file is not valid YAML.
        pydantic.ValidationError: when values are out of range.
    """
    global _current_env
    _current_env = dict(os.environ)

    path = config_path or DEFAULT_CONFIG_PATH
    if not path.is_file():
        return AppConfig()

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"config file {path} must contain a mapping")
    raw = _substitute_env(raw)

    return AppConfig(
        store=StoreConfig(**(raw.get("store") or {})),
        claim=ClaimConfig(**(raw.get("claim") or {})),
        logging=LoggingConfig(**(raw.get("logging") or {})),
    )
