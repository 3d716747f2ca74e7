"""Cluster directory driver: control-plane cluster lookups over httpx."""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from pipectl.kernel.config.models import DEFAULT_CONTROL_PLANE_URL
from pipectl.kernel.exceptions import (
    ClusterUnreachableError,
    PermissionDeniedError,
    PipelineAPIError,
    PipelineNotFoundError,
)
from pipectl.kernel.logging import get_logger

logger = get_logger(__name__)


class DataplaneAPIWire(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str = ""


class ClusterWire(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    dataplane_api: DataplaneAPIWire | None = None


class ClusterEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cluster: ClusterWire


class HttpClusterDirectory:
    """ClusterDirectory driver for the control plane REST API.

    Parameters
    ----------
    control_plane_url : str
        Base URL of the control plane API
    auth_token : str | None
        Bearer token for the ``Authorization`` header
    timeout : float
        Request timeout in seconds
    """

    def __init__(
        self,
        control_plane_url: str = DEFAULT_CONTROL_PLANE_URL,
        auth_token: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = control_plane_url.rstrip("/")
        self._timeout = timeout
        self._headers = {"Accept": "application/json"}
        if auth_token:
            self._headers["Authorization"] = f"Bearer {auth_token}"
        self._client: httpx.AsyncClient | None = None
        # Hook for testing: inject a custom transport
        self._transport: httpx.AsyncBaseTransport | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            kwargs: dict[str, Any] = {
                "base_url": self._base_url,
                "timeout": self._timeout,
                "headers": self._headers,
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def _acluster_api_url(self, path: str) -> str | None:
        client = self._get_client()
        try:
            response = await client.get(path)
        except httpx.ConnectError as e:
            raise ClusterUnreachableError(f"control plane {self._base_url} is unreachable: {e}") from e
        except httpx.HTTPError as e:
            raise PipelineAPIError(f"GET {path} failed: {e}") from e

        status = response.status_code
        if status == 404:
            raise PipelineNotFoundError(f"cluster not found: {path}", status_code=status)
        if status == 403:
            raise PermissionDeniedError(f"forbidden: {path}", status_code=status)
        if not response.is_success:
            raise PipelineAPIError(
                f"GET {path} returned HTTP {status}", status_code=status, body=response.text
            )

        try:
            envelope = ClusterEnvelope.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise PipelineAPIError(f"unexpected response from GET {path}: {e}") from e

        api = envelope.cluster.dataplane_api
        if api is None or not api.url:
            logger.debug("cluster at {path} exposes no cluster API", path=path)
            return None
        return api.url

    async def adedicated_cluster_api_url(self, cluster_id: str) -> str | None:
        return await self._acluster_api_url(f"/v1/clusters/{cluster_id}")

    async def aserverless_cluster_api_url(self, cluster_id: str) -> str | None:
        return await self._acluster_api_url(f"/v1/serverless/clusters/{cluster_id}")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
