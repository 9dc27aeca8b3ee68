"""Configuration module."""

from clawcron.core.config.loader import load_config
from clawcron.core.config.schema import Config

__all__ = ["Config", "load_config"]
