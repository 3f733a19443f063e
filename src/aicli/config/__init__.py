"""Configuration models and parser for aicli.yaml."""

from aicli.config.models import AicliConfig, ExecutorConfig
from aicli.config.parser import DEFAULT_CONFIG_NAME, load_config
from aicli.errors import ConfigError

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "AicliConfig",
    "ConfigError",
    "ExecutorConfig",
    "load_config",
]
