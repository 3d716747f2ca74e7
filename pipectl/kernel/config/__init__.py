"""Configuration models and loader."""

from pipectl.kernel.config.loader import ConfigLoader, get_default_config, load_config
from pipectl.kernel.config.models import (
    ConnectionConfig,
    LoggingConfig,
    PipectlConfig,
    ReconcilerConfig,
)

__all__ = [
    "ConfigLoader",
    "ConnectionConfig",
    "LoggingConfig",
    "PipectlConfig",
    "ReconcilerConfig",
    "get_default_config",
    "load_config",
]
