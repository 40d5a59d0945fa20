"""Runtime configuration assembly.

Reads the mirror settings from CLI args, environment variables, .env
files, and the YAML config file.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    MIRROR_GITHUB_USERNAME: Destination GitHub login
    MIRROR_GITHUB_TOKEN: Destination GitHub token
    MIRROR_GITHUB_EMAIL: Commit email for mirrored commits (optional)
    MIRROR_REDACT_LEVEL: Redaction level name or 0-4 code (optional)
    ACTIVITY_MIRROR_CONFIG: Path to the YAML config file (optional)
"""

import logging
import os
from pathlib import Path

from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def validate_config(config: UnifiedConfig) -> None:
    """Check cross-field requirements the schema cannot express.

    Raises:
        ConfigurationError: If no services are declared or destination
            credentials are missing.
    """
    if not config.services:
        raise ConfigurationError(
            "No source services configured. Add at least one entry under "
            "'services' in the config file."
        )

    if not (config.github.username or "").strip():
        raise ConfigurationError(
            "GitHub username not found. Set MIRROR_GITHUB_USERNAME, "
            "pass --username, or add 'github.username' to the config file."
        )

    if not (config.github.token or "").strip():
        raise ConfigurationError(
            "GitHub token not found. Set MIRROR_GITHUB_TOKEN or add "
            "'github.token' to the config file."
        )


def load_config(
    config_path: Path | None = None,
    username: str | None = None,
    email: str | None = None,
    redact_level: str | None = None,
    workdir: Path | None = None,
) -> UnifiedConfig:
    """Load configuration with unified precedence.

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        config_path: Explicit config file; replaces discovery when given.
        username: Override GitHub username.
        email: Override commit email.
        redact_level: Override redaction level.
        workdir: Override the working copy root.

    Returns:
        Validated ``UnifiedConfig``.

    Raises:
        ConfigurationError: If any source is invalid or required values
            are missing after checking all sources.
    """
    raw = load_hierarchical_config(config_path)
    github = dict(raw.get("github") or {})

    overrides = {
        "username": username or os.getenv("MIRROR_GITHUB_USERNAME"),
        "token": os.getenv("MIRROR_GITHUB_TOKEN"),
        "email": email or os.getenv("MIRROR_GITHUB_EMAIL"),
        "redact_level": redact_level or os.getenv("MIRROR_REDACT_LEVEL"),
        "workdir": workdir,
    }
    for key, value in overrides.items():
        if value:
            github[key] = value

    raw = {**raw, "github": github}
    config = build_config(raw)
    validate_config(config)

    logger.debug(
        "Configuration: %d service(s), redact_level=%s, push_method=%s",
        len(config.services),
        config.github.redact_level.config_name,
        config.github.push_method.value,
    )
    return config
