"""
Config file discovery and loading for activity-mirror.

The file declares source services and destination credentials, so it is
usually split: tokens live in a separate file pulled in with ``!include``
or come from the environment through ``${VAR}`` / ``${VAR:-default}``.

Usage:
    from activity_mirror.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ACTIVITY_MIRROR_CONFIG"
CONFIG_DIR = "activity_mirror"
PROJECT_FILES = ("config.yml", "config.yaml")

# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------

_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable falls back to its default, or to ``""``
    when there is none.  A ``${`` without a closing brace is left alone.
    """

    def _expand(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        env_val = os.environ.get(name)
        if env_val:
            return env_val
        if default is None:
            logger.warning(
                "Config references unset environment variable %s", name
            )
            return ""
        return default

    return _ENV_REF.sub(_expand, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {key: _interpolate_recursive(val) for key, val in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# YAML with !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader that understands ``!include other.yml``.

    A subclass keeps the tag off the global ``yaml.SafeLoader``.  Each
    instance carries the chain of files being loaded so include cycles are
    reported instead of recursing forever.
    """

    include_chain: list[Path]


def _resolve_include(loader: ConfigLoader, target: str) -> Path:
    including = Path(loader.name).resolve()
    path = Path(target)
    if not path.is_absolute():
        path = including.parent / path
    path = path.resolve()

    if path in loader.include_chain:
        chain = " -> ".join(str(p) for p in [*loader.include_chain, path])
        raise ConfigurationError(f"Circular include detected: {chain}")
    if not path.exists():
        raise ConfigurationError(
            f"Include file not found: {path} (referenced from {including})"
        )
    return path


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    path = _resolve_include(loader, loader.construct_scalar(node))
    return _load_yaml_with_includes(
        path, _include_chain=[*loader.include_chain, path]
    )


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path, *, _include_chain: list[Path] | None = None
) -> Any:
    """Parse one YAML file, following ``!include`` tags relative to it."""
    path = path.resolve()
    with open(path, encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.include_chain = _include_chain or [path]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery and merge
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Candidates, in order: the ``ACTIVITY_MIRROR_CONFIG`` path,
    ``./.activity_mirror/config.yml``, ``./.activity_mirror/config.yaml``
    and ``~/.config/activity_mirror/config.yml``.
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project_dir = Path.cwd() / f".{CONFIG_DIR}"
    candidates.extend(project_dir / name for name in PROJECT_FILES)
    candidates.append(Path.home() / ".config" / CONFIG_DIR / PROJECT_FILES[0])

    return [path for path in candidates if path.exists()]


def _read_section_map(path: Path) -> dict[str, Any]:
    logger.debug("Loading config: %s", path)
    try:
        data = _load_yaml_with_includes(path)
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Failed to parse config file {path}: {exc}"
        ) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Config file %s has non-dict root (%s), skipping",
            path,
            type(data).__name__,
        )
        return {}
    return data


def load_hierarchical_config(
    explicit_path: Path | None = None,
) -> dict[str, Any]:
    """Load the raw config mapping.

    With *explicit_path* only that file is read.  Otherwise the discovered
    files are layered from lowest precedence up, and a top-level section
    (``services``, ``github``, ``logging``) in a higher file replaces the
    whole section from a lower one.  Env var references are expanded
    after the merge.

    Returns:
        The merged mapping; empty when no file exists.

    Raises:
        ConfigurationError: If a file is missing, unparsable, or includes
            itself.
    """
    if explicit_path is not None:
        explicit_path = explicit_path.expanduser()
        if not explicit_path.exists():
            raise ConfigurationError(f"Config file not found: {explicit_path}")
        paths = [explicit_path]
    else:
        paths = discover_config_files()

    if not paths:
        logger.debug("No config files found")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        merged.update(_read_section_map(path))
    return _interpolate_recursive(merged)
