"""``kind: Pipeline`` manifest parsing.

Example manifest::

    kind: Pipeline
    metadata:
      name: ingest-orders
    spec:
      cluster_api_url: https://api-abc.cluster.example.com
      display_name: Ingest orders
      state: running
      allow_deletion: true
      config_yaml: |
        input:
          generate:
            mapping: root = "hello"
        output:
          drop: {}
      resources:
        cpu_shares: 200m
        memory_shares: 256Mi
      timeouts:
        create: 5m
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from pipectl.kernel.domain.pipeline_record import (
    PipelineRecord,
    Resources,
    ServiceAccount,
    Timeouts,
)
from pipectl.kernel.exceptions import ConfigurationError, ValidationError


class ResourcesSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    memory_shares: str | None = None
    cpu_shares: str | None = None


class ServiceAccountSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    client_id: str | None = None
    client_secret: str | None = None
    secret_version: int | None = None


class PipelineSpec(BaseModel):
    """Desired pipeline fields, as written by the user."""

    model_config = ConfigDict(extra="forbid")

    cluster_api_url: str
    display_name: str
    config_yaml: str
    description: str | None = None
    state: str | None = None
    resources: ResourcesSpec | None = None
    service_account: ServiceAccountSpec | None = None
    tags: dict[str, str] | None = None
    allow_deletion: bool | None = None
    timeouts: dict[str, str | int | float | None] | None = None


class ManifestMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)


class PipelineManifest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["Pipeline"]
    metadata: ManifestMetadata
    spec: PipelineSpec

    @property
    def name(self) -> str:
        return self.metadata.name

    def to_record(self) -> PipelineRecord:
        """Desired record for the lifecycle orchestrator."""
        spec = self.spec
        resources = None
        if spec.resources is not None:
            resources = Resources(**spec.resources.model_dump())
        service_account = None
        if spec.service_account is not None:
            service_account = ServiceAccount(**spec.service_account.model_dump())
        return PipelineRecord(
            cluster_api_url=spec.cluster_api_url,
            display_name=spec.display_name,
            description=spec.description,
            config_yaml=spec.config_yaml,
            state=spec.state,
            resources=resources,
            service_account=service_account,
            tags=dict(spec.tags) if spec.tags is not None else None,
            allow_deletion=spec.allow_deletion,
            timeouts=Timeouts.from_mapping(spec.timeouts),
        )


def load_manifest(path: str | Path) -> PipelineManifest:
    """Read and validate a pipeline manifest.

    Raises
    ------
    ConfigurationError
        If the file is not valid YAML or not a valid ``kind: Pipeline`` manifest
    """
    manifest_path = Path(path)
    try:
        data: Any = yaml.safe_load(manifest_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(manifest_path.name, f"invalid YAML: {e}") from e

    try:
        manifest = PipelineManifest.model_validate(data)
        # Parse durations eagerly so a bad timeout fails before any remote call
        manifest.to_record()
    except PydanticValidationError as e:
        raise ConfigurationError(manifest_path.name, str(e)) from e
    except ValidationError as e:
        raise ConfigurationError(manifest_path.name, str(e)) from e
    return manifest
