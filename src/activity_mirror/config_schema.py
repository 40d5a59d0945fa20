"""Unified configuration schema for activity-mirror.

Defines Pydantic models for the config file structure: a list of source
services, the destination GitHub account, and logging.

Usage:
    from activity_mirror.config_loader import load_hierarchical_config
    from activity_mirror.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging
import tempfile
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .redaction import RedactLevel

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


def default_workdir() -> Path:
    """Root directory for local mirror working copies."""
    return Path(tempfile.gettempdir()) / "activity-mirror"


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ServiceType(str, Enum):
    """Source forges with an activity adapter."""

    GITEA = "gitea"
    FORGEJO = "forgejo"


class PushMethod(str, Enum):
    """Remote URL flavour used to clone and push mirrors."""

    HTTP = "http"
    SSH = "ssh"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class ServiceConfig(BaseModel):
    """One source forge account to pull activity from."""

    service_type: ServiceType = Field(description="Source forge kind")
    username: str = Field(min_length=1, description="Source username")
    url: str = Field(description="Base URL of the forge")
    token: str = Field(min_length=1, description="API access token")

    model_config = {"frozen": True}

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid URL '{value}': must start with http:// or https://"
            )
        return value.removesuffix("/")


class GitHubConfig(BaseModel):
    """Destination forge account that owns the mirrors.

    ``username`` and ``token`` are optional here so env vars and CLI args
    can supply them; ``config.load_config()`` enforces them afterwards.
    """

    username: str | None = Field(default=None, description="GitHub login")
    token: str | None = Field(default=None, description="GitHub token")
    email: str | None = Field(
        default=None, description="Commit email (noreply address if unset)"
    )
    redact_level: RedactLevel = Field(
        default=RedactLevel.PRIVATE_REPOS,
        description="How much source content to disclose",
    )
    push_method: PushMethod = Field(
        default=PushMethod.SSH, description="Clone/push transport"
    )
    api_url: str = Field(
        default=DEFAULT_API_URL, description="REST API base URL"
    )
    workdir: Path | None = Field(
        default=None, description="Root for local working copies"
    )

    model_config = {"frozen": True}

    @field_validator("redact_level", mode="before")
    @classmethod
    def _parse_redact_level(cls, value: object) -> RedactLevel:
        # ConfigurationError is not a ValueError, so translate it for pydantic.
        try:
            level = RedactLevel.parse(value)
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from None
        if level == RedactLevel.ENCRYPTED:
            raise ValueError(
                "Encrypted redaction is not implemented yet"
            )
        return level

    @field_validator("api_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.strip().removesuffix("/")

    @property
    def resolved_workdir(self) -> Path:
        return self.workdir or default_workdir()


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration.

    Every section has defaults so a file carrying only ``services`` parses.
    """

    services: list[ServiceConfig] = Field(default_factory=list)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.

    Raises:
        ConfigurationError: If any section fails validation.
    """
    if not raw_data:
        return UnifiedConfig()

    try:
        return UnifiedConfig(**raw_data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from exc
