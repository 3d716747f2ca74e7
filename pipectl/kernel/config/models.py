"""Configuration data models for pipectl."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from pipectl.kernel.exceptions import ValidationError

DEFAULT_CONTROL_PLANE_URL = "https://api.redpanda.com"


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Logging configuration for pipectl.

    Attributes
    ----------
    level : str, default="INFO"
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    format : str, default="structured"
        Output format (console, json, structured, rich)
    output_file : str | None, default=None
        Optional file path to write logs to
    use_color : bool, default=True
        Use ANSI color codes (auto-disabled for non-TTY)
    include_timestamp : bool, default=True
        Include timestamp in log output

    Examples
    --------
    TOML configuration:

    ```toml
    [tool.pipectl.logging]
    level = "DEBUG"
    format = "rich"
    ```

    Environment variable overrides:

    ```bash
    export PIPECTL_LOG_LEVEL=DEBUG
    export PIPECTL_LOG_FORMAT=json
    export PIPECTL_LOG_FILE=/var/log/pipectl/pipectl.log
    ```
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "structured", "rich"] = "structured"
    output_file: str | None = None
    use_color: bool = True
    include_timestamp: bool = True


@dataclass(frozen=True, slots=True)
class ReconcilerConfig:
    """Convergence defaults.

    Attributes
    ----------
    poll_interval : float
        First sleep between state polls, in seconds
    max_interval_factor : float
        Poll interval cap as a multiple of ``poll_interval``
    operation_timeout : float
        Timeout for create / update / delete when the record sets none
    """

    poll_interval: float = 1.0
    max_interval_factor: float = 10.0
    operation_timeout: float = 120.0

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValidationError("poll_interval", "must be positive", self.poll_interval)
        if self.max_interval_factor < 1:
            raise ValidationError(
                "max_interval_factor", "must be at least 1", self.max_interval_factor
            )
        if self.operation_timeout <= 0:
            raise ValidationError("operation_timeout", "must be positive", self.operation_timeout)


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Remote endpoints and credentials.

    ``auth_token`` is normally supplied through ``PIPECTL_AUTH_TOKEN`` or a
    ``${VAR}`` placeholder rather than written into a config file.
    """

    auth_token: str | None = None
    control_plane_url: str = DEFAULT_CONTROL_PLANE_URL
    request_timeout: float = 30.0


@dataclass(slots=True)
class PipectlConfig:
    """Complete pipectl configuration.

    Examples
    --------
    ``kind: Config`` manifest:

    ```yaml
    kind: Config
    spec:
      state_file: .pipectl/state.json
      connection:
        auth_token: ${REDPANDA_TOKEN}
      reconciler:
        operation_timeout: 300
      logging:
        level: DEBUG
    ```
    """

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    reconciler: ReconcilerConfig = field(default_factory=ReconcilerConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    state_file: str = "pipectl.state.json"
