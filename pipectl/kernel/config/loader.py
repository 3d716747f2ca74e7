"""Configuration loader for pipectl.

Supports two config sources:

1. **kind: Config YAML**, loaded via explicit path or the
   ``PIPECTL_CONFIG_PATH`` env var.
2. **pyproject.toml [tool.pipectl]**, auto-discovered in the current
   directory and its parents.

``${VAR}`` placeholders are substituted from the environment, then
``PIPECTL_*`` environment variables override individual settings.
"""

from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any

import yaml

from pipectl.kernel.config.models import (
    DEFAULT_CONTROL_PLANE_URL,
    ConnectionConfig,
    LoggingConfig,
    PipectlConfig,
    ReconcilerConfig,
)
from pipectl.kernel.exceptions import ConfigurationError
from pipectl.kernel.logging import get_logger

_TRUTHY_VALUES = frozenset({"true", "1", "yes", "on", "enabled"})
_FALSY_VALUES = frozenset({"false", "0", "no", "off", "disabled"})

logger = get_logger(__name__)


def _parse_bool_env(value: str) -> bool:
    """Parse boolean from environment variable value.

    Raises
    ------
    ValueError
        If value is not a recognized boolean string
    """
    normalized = value.lower().strip()
    if normalized in _TRUTHY_VALUES:
        return True
    if normalized in _FALSY_VALUES:
        return False
    expected = sorted(_TRUTHY_VALUES | _FALSY_VALUES)
    raise ValueError(f"Invalid boolean value: {value!r}. Expected one of: {expected}")


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(name, f"expected a mapping, got {type(section).__name__}")
    return section


class ConfigLoader:
    """Loads and processes pipectl configuration files."""

    ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

    def load_config_file(self, path: str | Path | None = None) -> PipectlConfig:
        """Load configuration from YAML or pyproject.toml.

        Parameters
        ----------
        path : str | Path | None
            Path to config file. If None, searches using discovery order.

        Raises
        ------
        FileNotFoundError
            If an explicit path does not exist or nothing was discovered
        ConfigurationError
            If the file content is invalid
        """
        config_path = self._find_config_file(path)
        logger.info("Loading configuration from {path}", path=config_path)
        if config_path.suffix in (".yaml", ".yml"):
            return self._load_yaml_config(config_path)
        return self._load_toml_config(config_path)

    def _load_yaml_config(self, config_path: Path) -> PipectlConfig:
        with config_path.open("r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(config_path.name, f"invalid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                config_path.name, f"expected a mapping, got {type(data).__name__}"
            )

        kind = data.get("kind")
        if kind != "Config":
            raise ConfigurationError(
                config_path.name,
                f"YAML config file must use 'kind: Config' manifest format, got 'kind: {kind}'",
            )

        spec = data.get("spec") or {}
        if not isinstance(spec, dict):
            raise ConfigurationError(config_path.name, "'spec' must be a mapping")

        return self._parse_config(self._substitute_env_vars(spec))

    def _load_toml_config(self, config_path: Path) -> PipectlConfig:
        with config_path.open("rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigurationError(config_path.name, f"invalid TOML: {e}") from e

        if config_path.name == "pyproject.toml":
            pipectl_data = data.get("tool", {}).get("pipectl", {})
            if not pipectl_data:
                logger.warning("No [tool.pipectl] section found in pyproject.toml, using defaults")
                pipectl_data = {}
        elif "tool" in data and "pipectl" in data.get("tool", {}):
            pipectl_data = data["tool"]["pipectl"]
        else:
            pipectl_data = data

        return self._parse_config(self._substitute_env_vars(pipectl_data))

    def _find_config_file(self, path: str | Path | None) -> Path:
        """Find configuration file.

        Discovery order:
        1. Explicit path argument
        2. ``PIPECTL_CONFIG_PATH`` env var
        3. ``pyproject.toml`` with a ``[tool.pipectl]`` table in CWD or a parent
        """
        if path:
            config_path = Path(path)
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return config_path

        if env_path := os.getenv("PIPECTL_CONFIG_PATH"):
            config_path = Path(env_path)
            if config_path.exists():
                logger.debug("Using config from PIPECTL_CONFIG_PATH: {}", config_path)
                return config_path
            logger.warning("PIPECTL_CONFIG_PATH set but file not found: {}", config_path)

        current = Path.cwd()
        for directory in (current, *current.parents):
            pyproject = directory / "pyproject.toml"
            if not pyproject.exists():
                continue
            with pyproject.open("rb") as f:
                try:
                    data = tomllib.load(f)
                except tomllib.TOMLDecodeError:
                    logger.debug("Skipping unparsable {path}", path=pyproject)
                    continue
            if "pipectl" in data.get("tool", {}):
                return pyproject

        raise FileNotFoundError(
            "No configuration file found. Provide a kind: Config YAML path, "
            "set PIPECTL_CONFIG_PATH, or add [tool.pipectl] to pyproject.toml"
        )

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively replace ``${VAR}`` with environment values.

        Unknown variables keep their placeholder.
        """
        if isinstance(data, str):

            def replacer(match: re.Match[str]) -> str:
                var_name = match.group(1)
                value = os.environ.get(var_name)
                if value is None:
                    logger.debug(
                        "Environment variable ${{{var_name}}} not found, keeping placeholder",
                        var_name=var_name,
                    )
                    return match.group(0)
                return value

            return self.ENV_VAR_PATTERN.sub(replacer, data)

        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}

        if isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]

        return data

    def _parse_config(self, data: dict[str, Any]) -> PipectlConfig:
        config = PipectlConfig()
        config.logging = self._parse_logging_config(_section(data, "logging"))

        reconciler = _section(data, "reconciler")
        try:
            config.reconciler = ReconcilerConfig(
                poll_interval=float(reconciler.get("poll_interval", 1.0)),
                max_interval_factor=float(reconciler.get("max_interval_factor", 10.0)),
                operation_timeout=float(reconciler.get("operation_timeout", 120.0)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError("reconciler", str(e)) from e

        config.connection = self._parse_connection_config(_section(data, "connection"))

        if "state_file" in data:
            config.state_file = str(data["state_file"])

        return config

    def _parse_connection_config(self, connection_data: dict[str, Any]) -> ConnectionConfig:
        auth_token = connection_data.get("auth_token")
        if env_token := os.getenv("PIPECTL_AUTH_TOKEN"):
            auth_token = env_token
            logger.debug("Using auth token from PIPECTL_AUTH_TOKEN")
        try:
            request_timeout = float(connection_data.get("request_timeout", 30.0))
        except (TypeError, ValueError) as e:
            raise ConfigurationError("connection.request_timeout", str(e)) from e
        return ConnectionConfig(
            auth_token=auth_token,
            control_plane_url=connection_data.get("control_plane_url", DEFAULT_CONTROL_PLANE_URL),
            request_timeout=request_timeout,
        )

    def _parse_logging_config(self, logging_data: dict[str, Any]) -> LoggingConfig:
        """Parse logging configuration with environment variable overrides.

        Environment variables take precedence over config file values:
        - PIPECTL_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        - PIPECTL_LOG_FORMAT: Output format (console, json, structured, rich)
        - PIPECTL_LOG_FILE: Optional file path for log output
        - PIPECTL_LOG_COLOR: Use color output (true/false)
        """
        level = str(logging_data.get("level", "INFO")).upper()
        format_type = str(logging_data.get("format", "structured")).lower()
        output_file = logging_data.get("output_file")
        use_color = logging_data.get("use_color", True)
        include_timestamp = logging_data.get("include_timestamp", True)

        if env_level := os.getenv("PIPECTL_LOG_LEVEL"):
            level = env_level.upper()
            logger.debug("Overriding log level from env: {}", level)

        if env_format := os.getenv("PIPECTL_LOG_FORMAT"):
            format_type = env_format.lower()
            logger.debug("Overriding log format from env: {}", format_type)

        if env_file := os.getenv("PIPECTL_LOG_FILE"):
            output_file = env_file
            logger.debug("Overriding log file from env: {}", output_file)

        if env_color := os.getenv("PIPECTL_LOG_COLOR"):
            try:
                use_color = _parse_bool_env(env_color)
                logger.debug("Overriding log color from env: {}", use_color)
            except ValueError as e:
                logger.warning("Invalid PIPECTL_LOG_COLOR value: {}", e)

        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError("logging.level", f"unknown level {level!r}")
        if format_type not in ("console", "json", "structured", "rich"):
            raise ConfigurationError("logging.format", f"unknown format {format_type!r}")

        return LoggingConfig(
            level=level,  # type: ignore[arg-type]
            format=format_type,  # type: ignore[arg-type]
            output_file=output_file,
            use_color=use_color,
            include_timestamp=include_timestamp,
        )


def load_config(path: str | Path | None = None) -> PipectlConfig:
    """Load configuration from file or return defaults.

    An explicit ``path`` that does not exist is an error; failing discovery
    is not.
    """
    loader = ConfigLoader()
    if path:
        return loader.load_config_file(path)
    try:
        return loader.load_config_file(None)
    except FileNotFoundError:
        logger.info("No configuration file found, using defaults")
        return get_default_config()


def get_default_config() -> PipectlConfig:
    """Default configuration, with ``PIPECTL_*`` env overrides applied."""
    loader = ConfigLoader()
    return loader._parse_config({})
