"""
Settings management for parallel mapping.

This module provides centralized access to the ``parallelism`` settings
with caching, environment overrides and validation.
"""

import copy
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from chunkmap.errors import ConfigurationError
from chunkmap.utils.logging_utils import get_logger

__all__ = [
    "DEFAULT_PARALLELISM",
    "get_config_path",
    "load_parallelism_settings",
    "reload_settings",
    "validate_settings",
]

logger = get_logger(__name__)

CONFIG_ENV_VAR = "CHUNKMAP_CONFIG"
WORKERS_ENV_VAR = "CHUNKMAP_WORKERS"
BACKEND_ENV_VAR = "CHUNKMAP_BACKEND"

VALID_BACKENDS = ("loky", "threading", "sequential")

DEFAULT_PARALLELISM: Dict[str, Any] = {
    "backend": "loky",
    "workers": "auto",
    "min_chunk": 250,
    "pool_factor": 12,
    "small_input_threshold": 0,
}


def get_config_path(filename: str = "settings.yaml") -> Optional[Path]:
    """Locate the settings file.

    Precedence: ``CHUNKMAP_CONFIG`` env var, then ``config/<filename>`` in the
    current directory or any parent.

    Returns:
        Path to the config file, or None when no file exists

    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)

    current = Path.cwd()
    for parent in [current] + list(current.parents):
        candidate = parent / "config" / filename
        if candidate.exists():
            return candidate

    return None


def _read_parallelism_section(path: Path) -> Dict[str, Any]:
    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        logger.debug(f"Settings file {path} not found, using defaults")
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in settings file {path}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Settings file {path} must contain a mapping, got {type(config).__name__}",
        )

    section = config.get("parallelism", {})
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigurationError(
            f"'parallelism' in {path} must be a mapping, got {type(section).__name__}",
        )
    return section


def _apply_env_overrides(settings: Dict[str, Any]) -> None:
    workers = os.environ.get(WORKERS_ENV_VAR)
    if workers:
        if workers.strip().lower() == "auto":
            settings["workers"] = "auto"
        else:
            try:
                settings["workers"] = int(workers)
            except ValueError as e:
                raise ConfigurationError(
                    f"{WORKERS_ENV_VAR} must be 'auto' or an integer, got {workers!r}",
                ) from e

    backend = os.environ.get(BACKEND_ENV_VAR)
    if backend:
        settings["backend"] = backend.strip().lower()


@lru_cache(maxsize=8)
def _load_cached(path: Optional[str]) -> Dict[str, Any]:
    settings = copy.deepcopy(DEFAULT_PARALLELISM)
    if path is not None:
        settings.update(_read_parallelism_section(Path(path)))
    _apply_env_overrides(settings)

    for warning in validate_settings(settings):
        logger.warning(f"Settings: {warning}")

    logger.debug(f"Parallelism settings loaded from {path or 'defaults'}: {settings}")
    return settings


def load_parallelism_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the ``parallelism`` settings merged over defaults.

    Results are cached per resolved path; use ``reload_settings()`` to
    force a fresh read.

    Args:
        path: Explicit settings file. None resolves via ``get_config_path()``.

    Returns:
        Settings dict (a copy; callers may mutate it)

    """
    if path is None:
        resolved = get_config_path()
        path = str(resolved) if resolved is not None else None
    return dict(_load_cached(path))


def reload_settings() -> None:
    """Clear the settings cache."""
    _load_cached.cache_clear()


def validate_settings(settings: Optional[Dict[str, Any]] = None) -> List[str]:
    """Returns list of validation warnings.

    Args:
        settings: Parallelism settings to validate. If None, loads them.

    Returns:
        List of validation warning messages.

    """
    warnings = []
    if settings is None:
        settings = load_parallelism_settings()

    backend = settings.get("backend", "loky")
    if backend not in VALID_BACKENDS:
        warnings.append(
            f"parallelism.backend must be one of {', '.join(VALID_BACKENDS)}, got {backend!r}",
        )

    workers = settings.get("workers", "auto")
    if workers != "auto" and (
        not isinstance(workers, int) or isinstance(workers, bool) or workers < 1
    ):
        warnings.append(f"parallelism.workers must be 'auto' or int >= 1, got {workers!r}")

    for key in ("min_chunk", "pool_factor"):
        value = settings.get(key, DEFAULT_PARALLELISM[key])
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            warnings.append(f"parallelism.{key} must be int >= 1, got {value!r}")

    threshold = settings.get("small_input_threshold", 0)
    if not isinstance(threshold, int) or isinstance(threshold, bool) or threshold < 0:
        warnings.append(
            f"parallelism.small_input_threshold must be int >= 0, got {threshold!r}",
        )

    return warnings
