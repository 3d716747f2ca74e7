"""Domain models for a managed pipeline.

- :class:`PipelineSnapshot` is the remote API's (possibly partial) view.
- :class:`PipelineRecord` is what pipectl persists for a tracked pipeline.
- :class:`ContingentFields` groups the record fields the remote API never
  returns; they are merged back in on every refresh.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from pipectl.kernel.domain.pipeline_state import DEFAULT_DESIRED_STATE
from pipectl.kernel.exceptions import ValidationError

Operation = Literal["create", "update", "delete"]

# Shown in place of config_yaml and service-account secrets
SENSITIVE_VALUE = "(sensitive value)"

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str | int | float) -> float:
    """Parse a Go-style duration string into seconds.

    Plain numbers are taken as seconds.

    Examples
    --------
    >>> parse_duration("90s")
    90.0
    >>> parse_duration("1h30m")
    5400.0
    >>> parse_duration(45)
    45.0
    """
    if isinstance(value, bool):
        raise ValidationError("timeout", "must be a duration", value)
    if isinstance(value, (int, float)):
        return float(value)
    text = value.strip()
    if not text:
        raise ValidationError("timeout", "must not be empty")
    pos = 0
    total = 0.0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValidationError("timeout", "invalid duration, expected e.g. '90s' or '5m'", value)
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return total


@dataclass(frozen=True, slots=True)
class Resources:
    """Resource allocation for a pipeline (Kubernetes quantity strings)."""

    memory_shares: str | None = None
    cpu_shares: str | None = None


@dataclass(frozen=True, slots=True)
class ServiceAccount:
    """Service-account credentials; the secret fields are write-only remotely."""

    client_id: str | None = None
    client_secret: str | None = None
    secret_version: int | None = None


@dataclass(frozen=True, slots=True)
class Timeouts:
    """Per-operation timeouts in seconds; ``None`` falls back to the default."""

    create: float | None = None
    update: float | None = None
    delete: float | None = None

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> Timeouts:
        """Build timeouts from ``{"create": "5m", ...}`` style data."""
        if not data:
            return cls()
        unknown = set(data) - {"create", "update", "delete"}
        if unknown:
            raise ValidationError("timeouts", f"unknown keys {sorted(unknown)}")
        return cls(
            **{key: parse_duration(raw) for key, raw in data.items() if raw is not None}
        )

    def for_operation(self, operation: Operation, default: float) -> float:
        """Timeout for ``operation``, or ``default`` when unset."""
        value = getattr(self, operation)
        return default if value is None else value


@dataclass(frozen=True, slots=True)
class PipelineSnapshot:
    """The remote API's view of a pipeline at one instant.

    ``state`` is the raw wire value; decode it with
    :func:`pipectl.kernel.domain.pipeline_state.decode`.
    """

    id: str
    display_name: str = ""
    description: str = ""
    config_yaml: str = ""
    state: object = None
    url: str = ""
    resources: Resources | None = None
    service_account_id: str | None = None
    tags: dict[str, str] | None = None


@dataclass(slots=True)
class PipelineRecord:
    """Tracked state of a managed pipeline.

    ``cluster_api_url``, ``allow_deletion`` and ``timeouts`` are always
    locally supplied. ``state`` holds the desired run state on input and the
    damped observed state after a refresh.
    """

    id: str | None = None
    cluster_api_url: str | None = None
    display_name: str | None = None
    description: str | None = None
    config_yaml: str | None = None
    state: str | None = None
    url: str | None = None
    resources: Resources | None = None
    service_account: ServiceAccount | None = None
    tags: dict[str, str] | None = None
    allow_deletion: bool | None = None
    timeouts: Timeouts = field(default_factory=Timeouts)

    def to_dict(self, *, redact: bool = False) -> dict[str, Any]:
        """Serialize for the state store.

        With ``redact=True`` the pipeline definition and the service-account
        secret are masked; use that form for anything shown to a user.
        """
        data = asdict(self)
        if redact:
            if data["config_yaml"] is not None:
                data["config_yaml"] = SENSITIVE_VALUE
            account = data["service_account"]
            if account is not None and account["client_secret"] is not None:
                account["client_secret"] = SENSITIVE_VALUE
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PipelineRecord:
        """Rebuild a record written by :meth:`to_dict`."""
        resources = data.get("resources")
        service_account = data.get("service_account")
        timeouts = data.get("timeouts") or {}
        return cls(
            id=data.get("id"),
            cluster_api_url=data.get("cluster_api_url"),
            display_name=data.get("display_name"),
            description=data.get("description"),
            config_yaml=data.get("config_yaml"),
            state=data.get("state"),
            url=data.get("url"),
            resources=Resources(**resources) if resources is not None else None,
            service_account=(
                ServiceAccount(**service_account) if service_account is not None else None
            ),
            tags=dict(data["tags"]) if data.get("tags") is not None else None,
            allow_deletion=data.get("allow_deletion"),
            timeouts=Timeouts(**timeouts),
        )

    def contingent(self) -> ContingentFields:
        """Fields of this record that must survive a merge with a snapshot."""
        return ContingentFields(
            cluster_api_url=self.cluster_api_url,
            allow_deletion=self.allow_deletion,
            resources=self.resources,
            service_account=self.service_account,
            state=self.state,
            timeouts=self.timeouts,
        )

    def desired_state(self) -> str:
        """Desired run state, ``stopped`` when unset."""
        return self.state or DEFAULT_DESIRED_STATE.value

    def deletion_permitted(self) -> bool:
        """Whether drift (not-found / unreachable) may drop this record.

        An unset flag counts as permissive here; explicit deletion is gated
        separately by :meth:`deletion_blocked`.
        """
        return self.allow_deletion is None or self.allow_deletion

    def deletion_blocked(self) -> bool:
        """Whether an explicit delete must be refused."""
        return self.allow_deletion is False

    def to_request(self, *, for_update: bool = False) -> PipelineRequest:
        """Extract the create / update payload for the remote API."""
        resources = None
        if self.resources is not None:
            resources = Resources(
                memory_shares=self.resources.memory_shares,
                cpu_shares=self.resources.cpu_shares,
            )
        service_account = None
        if self.service_account is not None:
            # secret_version is local bookkeeping only
            service_account = ServiceAccount(
                client_id=self.service_account.client_id,
                client_secret=self.service_account.client_secret,
            )
        description = self.description
        if for_update and description is None:
            description = ""
        return PipelineRequest(
            display_name=self.display_name or "",
            config_yaml=self.config_yaml or "",
            description=description,
            resources=resources,
            tags=dict(self.tags) if self.tags is not None else None,
            service_account=service_account,
        )


@dataclass(frozen=True, slots=True)
class ContingentFields:
    """Record fields the remote API never echoes back.

    ``state`` is the previously recorded (or planned) run-state string used
    for damping.
    """

    cluster_api_url: str | None = None
    allow_deletion: bool | None = None
    resources: Resources | None = None
    service_account: ServiceAccount | None = None
    state: str | None = None
    timeouts: Timeouts = field(default_factory=Timeouts)


@dataclass(frozen=True, slots=True)
class PipelineRequest:
    """Payload for creating or updating a pipeline.

    ``None`` means "not sent"; ``description`` is always sent on update.
    """

    display_name: str
    config_yaml: str
    description: str | None = None
    resources: Resources | None = None
    tags: dict[str, str] | None = None
    service_account: ServiceAccount | None = None
