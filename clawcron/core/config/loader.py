"""Config file discovery and YAML parsing."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pydantic
import yaml
from loguru import logger

from clawcron.core.config.schema import Config
from clawcron.core.errors import ConfigError

CONFIG_ENV = "CLAWCRON_CONFIG"
DEFAULT_CONFIG_FILE = "config.yaml"


def load_config(config_path: str | Path | None = None) -> Config:
    """Build the Config from a YAML file plus the environment.

    The file is ``config_path`` if given, else ``$CLAWCRON_CONFIG``, else
    ``./config.yaml`` when present. A missing file means defaults. Env vars
    (``CLAWCRON_CRON__TIMEOUT_S=120``) win over values from the file; see
    ``Config.settings_customise_sources``.

    Raises ConfigError for unreadable YAML or values that fail validation.
    """
    path = find_config_file(config_path)
    data = read_yaml(path) if path else {}
    try:
        config = Config(**data)
    except pydantic.ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ConfigError(
            f"Invalid configuration in {path or 'environment'}: {fields}",
            details={"path": str(path) if path else None, "errors": e.errors()},
        ) from e
    logger.debug(f"Config loaded from {path or 'defaults'}")
    return config


def find_config_file(config_path: str | Path | None = None) -> Path | None:
    candidate = config_path or os.environ.get(CONFIG_ENV)
    if candidate:
        path = Path(candidate).expanduser()
        if not path.exists():
            logger.warning(f"Config file {path} not found, using defaults")
            return None
        return path
    default = Path(DEFAULT_CONFIG_FILE)
    return default if default.exists() else None


def read_yaml(path: Path) -> dict[str, Any]:
    """Parse ``path``; an empty file is an empty mapping."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}", details={"path": str(path)}) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config {path} must be a mapping, got {type(data).__name__}",
            details={"path": str(path)},
        )
    return data
