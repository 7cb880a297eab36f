"""
Configuration management.

Uses Pydantic Settings for environment variable handling and validation.
Values are layered: CLI flags > environment variables > config file > defaults.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from .core.budget import DEFAULT_MESSAGE_LIMIT
from .core.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

ENV_PREFIX = "KUBETAIL_"

DEFAULT_CONFIG_PATH = Path.home() / ".kube-tail" / "config.yaml"

# Location used by earlier releases; read when DEFAULT_CONFIG_PATH is absent
LEGACY_CONFIG_PATH = Path.home() / ".go-kube-tail" / "config.json"

# Key names used by earlier JSON config files
LEGACY_KEYS = {
    "projectName": "project",
    "topicName": "topic",
    "subscriptionName": "subscription",
    "podString": "pod_pattern",
    "namespaceName": "namespace",
    "containerName": "container",
}


def load_config_file(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML (or JSON) file.

    Without an explicit path, DEFAULT_CONFIG_PATH is read, falling back to
    LEGACY_CONFIG_PATH. When neither exists the result is {} so
    environment-only setups work. A missing explicit path is an error.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    explicit = config_path is not None
    path = Path(config_path) if explicit else DEFAULT_CONFIG_PATH
    if not explicit and not path.exists() and LEGACY_CONFIG_PATH.exists():
        logger.info("Using legacy config file", config_file=str(LEGACY_CONFIG_PATH))
        path = LEGACY_CONFIG_PATH

    if not path.exists():
        if explicit:
            raise ConfigurationError(
                f"Failed to load config file '{path}': file not found",
                details={"config_file": str(path)},
            )
        return {}

    try:
        with open(path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Failed to load config file '{path}': {e}",
            details={"config_file": str(path)},
        ) from e

    if not isinstance(config_data, dict):
        raise ConfigurationError(
            f"Failed to load config file '{path}': expected a mapping",
            details={"config_file": str(path)},
        )

    return normalize_config(config_data)


def normalize_config(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """Map legacy camelCase keys onto settings field names."""
    normalized: Dict[str, Any] = {}
    for key, value in config_data.items():
        normalized[LEGACY_KEYS.get(key, key)] = value
    return normalized


class TailSettings(BaseSettings):
    """kube-tail settings."""

    # Backend connection
    project: str = Field(min_length=1, description="GCP project id")
    topic: str = Field(min_length=1, description="Topic carrying exported log entries")
    subscription: str = Field(min_length=1, description="Subscription created for this tail")

    # Selection
    container: str = Field(default="", description="Exact container name filter")
    namespace: str = Field(default="", description="Exact namespace filter")
    pod_pattern: str = Field(default="", description="Pod name regex (substring ok too)")

    # Delivery
    max_messages: int = Field(
        default=DEFAULT_MESSAGE_LIMIT,
        gt=0,
        description="Messages to process before stopping"
    )
    ack_deadline_seconds: int = Field(
        default=20,
        ge=10,
        le=600,
        description="Ack deadline for a newly created subscription"
    )
    max_outstanding_messages: int = Field(
        default=1000,
        gt=0,
        description="Streaming pull flow control limit"
    )
    fail_on_render_error: bool = Field(
        default=True,
        description="Stop the tail when a line cannot be written"
    )

    # Observability
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(default=False, description="Render log lines as JSON")
    metrics_port: Optional[int] = Field(
        default=None,
        ge=1,
        le=65535,
        description="Serve Prometheus metrics on this port"
    )

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{v}'")
        return level

    class Config:
        env_prefix = ENV_PREFIX
        case_sensitive = False
        extra = "ignore"


def load_settings(config_path: Optional[Path] = None, **overrides: Any) -> TailSettings:
    """
    Build settings from the config file, environment and CLI overrides.

    Args:
        config_path: Explicit config file, or None for the default location
        **overrides: CLI values; None means "not given"

    Raises:
        ConfigurationError: If the file or any value is invalid
    """
    config_data = load_config_file(config_path)

    # Environment variables override the config file
    values = {
        key: value
        for key, value in config_data.items()
        if f"{ENV_PREFIX}{key}".upper() not in os.environ
    }
    values.update({key: value for key, value in overrides.items() if value is not None})

    try:
        settings = TailSettings(**values)
    except ValidationError as e:
        fields = [".".join(str(part) for part in error["loc"]) for error in e.errors()]
        raise ConfigurationError(
            f"Invalid configuration: {', '.join(fields)}",
            details={"errors": [error["msg"] for error in e.errors()], "fields": fields},
        ) from e

    logger.debug("Settings loaded", config_file=str(config_path or DEFAULT_CONFIG_PATH))
    return settings
