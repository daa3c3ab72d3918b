"""Layered TOML configuration files.

Layers, lowest priority first:
    config/default.toml           required
    config/{CHRONICLE_ENV}.toml   optional per-environment overrides
"""

import os
import tomllib
from collections.abc import Iterator
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "CHRONICLE_CONFIG_DIR"
ENVIRONMENT_ENV = "CHRONICLE_ENV"
DEFAULT_ENVIRONMENT = "development"
_SEARCH_DEPTH = 5


def get_config_dir() -> Path:
    """Locate the config directory.

    ``CHRONICLE_CONFIG_DIR`` wins when set and must exist. Otherwise the
    nearest ``config/`` in the working directory or one of its parents.
    """
    explicit = os.environ.get(CONFIG_DIR_ENV)
    if explicit:
        config_dir = Path(explicit)
        if not config_dir.is_dir():
            raise FileNotFoundError(f"{CONFIG_DIR_ENV} points to a missing directory: {explicit}")
        return config_dir

    for parent in [Path.cwd(), *Path.cwd().parents][:_SEARCH_DEPTH]:
        candidate = parent / "config"
        if candidate.is_dir():
            return candidate
    return Path("config")


def get_environment() -> str:
    return os.environ.get(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the file is not valid TOML
    """
    try:
        with file_path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {file_path}") from None


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated with ``override``; tables merge, other values replace.

    Neither argument is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _layers(config_dir: Path, environment: str) -> Iterator[Path]:
    default = config_dir / "default.toml"
    if not default.is_file():
        raise FileNotFoundError(
            f"Default configuration file not found: {default}. "
            f"Create config/default.toml or set {CONFIG_DIR_ENV}."
        )
    yield default

    override = config_dir / f"{environment}.toml"
    if override.is_file():
        yield override


def load_config() -> dict[str, Any]:
    """Merge every configuration layer into one dictionary."""
    config: dict[str, Any] = {}
    for path in _layers(get_config_dir(), get_environment()):
        config = deep_merge(config, load_toml(path))
    return config
