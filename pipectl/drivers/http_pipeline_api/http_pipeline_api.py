"""Pipeline API driver using httpx.AsyncClient.

This driver implements the :class:`~pipectl.kernel.ports.pipeline_api.PipelineAPI`
protocol against a cluster's REST API (``/v1/redpanda-connect/pipelines``).
Responses are validated with pydantic wire models and converted to
:class:`~pipectl.kernel.domain.pipeline_record.PipelineSnapshot`.

Failures are mapped onto the pipectl exception hierarchy:

- HTTP 404 -> :class:`PipelineNotFoundError`
- HTTP 403 -> :class:`PermissionDeniedError`
- connect / DNS errors -> :class:`ClusterUnreachableError`
- anything else non-2xx -> :class:`PipelineAPIError`
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from pipectl.kernel.domain.pipeline_record import (
    PipelineRequest,
    PipelineSnapshot,
    Resources,
)
from pipectl.kernel.exceptions import (
    ClientCreationError,
    ClusterUnreachableError,
    PermissionDeniedError,
    PipelineAPIError,
    PipelineNotFoundError,
)
from pipectl.kernel.logging import get_logger

logger = get_logger(__name__)

PIPELINES_PATH = "/v1/redpanda-connect/pipelines"


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class ResourcesWire(BaseModel):
    model_config = ConfigDict(extra="ignore")

    memory_shares: str | None = None
    cpu_shares: str | None = None


class ServiceAccountWire(BaseModel):
    model_config = ConfigDict(extra="ignore")

    client_id: str | None = None
    client_secret: str | None = None


class PipelineWire(BaseModel):
    """Pipeline object as returned by the cluster API."""

    model_config = ConfigDict(extra="ignore")

    id: str
    display_name: str = ""
    description: str = ""
    config_yaml: str = ""
    state: str | int | None = None
    url: str = ""
    resources: ResourcesWire | None = None
    service_account: ServiceAccountWire | None = None
    tags: dict[str, str] = Field(default_factory=dict)

    def to_snapshot(self) -> PipelineSnapshot:
        resources = None
        if self.resources is not None:
            resources = Resources(
                memory_shares=self.resources.memory_shares,
                cpu_shares=self.resources.cpu_shares,
            )
        return PipelineSnapshot(
            id=self.id,
            display_name=self.display_name,
            description=self.description,
            config_yaml=self.config_yaml,
            state=self.state,
            url=self.url,
            resources=resources,
            service_account_id=(
                self.service_account.client_id if self.service_account is not None else None
            ),
            tags=dict(self.tags),
        )


class PipelineEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    pipeline: PipelineWire


def request_body(request: PipelineRequest) -> dict[str, Any]:
    """Serialize a :class:`PipelineRequest`; unset fields are not sent."""
    body: dict[str, Any] = {
        "display_name": request.display_name,
        "config_yaml": request.config_yaml,
    }
    if request.description is not None:
        body["description"] = request.description
    if request.resources is not None:
        resources = {
            key: value
            for key, value in (
                ("memory_shares", request.resources.memory_shares),
                ("cpu_shares", request.resources.cpu_shares),
            )
            if value is not None
        }
        body["resources"] = resources
    if request.tags is not None:
        body["tags"] = dict(request.tags)
    if request.service_account is not None:
        account = {
            key: value
            for key, value in (
                ("client_id", request.service_account.client_id),
                ("client_secret", request.service_account.client_secret),
            )
            if value is not None
        }
        body["service_account"] = account
    return body


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


class HttpPipelineAPI:
    """PipelineAPI driver using httpx.AsyncClient.

    Parameters
    ----------
    cluster_api_url : str
        Base URL of the cluster API
    auth_token : str | None
        Bearer token for the ``Authorization`` header
    timeout : float
        Request timeout in seconds (default: 30.0)

    Examples
    --------
    Basic usage::

        api = HttpPipelineAPI("https://api-1234.cluster.example.com", auth_token="...")
        try:
            snapshot = await api.aget_pipeline("d0abc")
        finally:
            await api.aclose()
    """

    def __init__(
        self,
        cluster_api_url: str,
        auth_token: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not cluster_api_url:
            raise ClientCreationError(
                cluster_api_url, "unable to create client with empty target cluster API URL"
            )
        self._base_url = cluster_api_url.rstrip("/")
        self._timeout = timeout
        self._headers = {"Accept": "application/json"}
        if auth_token:
            self._headers["Authorization"] = f"Bearer {auth_token}"
        self._client: httpx.AsyncClient | None = None
        # Hook for testing: inject a custom transport
        self._transport: httpx.AsyncBaseTransport | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily create the httpx client on first use."""
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

    async def _arequest(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> httpx.Response:
        client = self._get_client()
        try:
            response = await client.request(method, path, json=json)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise ClusterUnreachableError(
                f"cluster API {self._base_url} is unreachable: {e}"
            ) from e
        except httpx.HTTPError as e:
            raise PipelineAPIError(f"{method} {path} failed: {e}") from e

        logger.debug(
            "{method} {path} -> {status}", method=method, path=path, status=response.status_code
        )
        if response.is_success:
            return response

        body = _response_body(response)
        message = _error_message(body) or f"HTTP {response.status_code}"
        status = response.status_code
        if status == 404:
            raise PipelineNotFoundError(message, status_code=status, body=body)
        if status == 403:
            raise PermissionDeniedError(message, status_code=status, body=body)
        raise PipelineAPIError(message, status_code=status, body=body)

    async def _apipeline(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> PipelineSnapshot:
        response = await self._arequest(method, path, json=json)
        try:
            envelope = PipelineEnvelope.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise PipelineAPIError(
                f"unexpected response from {method} {path}: {e}",
                status_code=response.status_code,
            ) from e
        return envelope.pipeline.to_snapshot()

    async def acreate_pipeline(self, request: PipelineRequest) -> PipelineSnapshot:
        return await self._apipeline("POST", PIPELINES_PATH, json=request_body(request))

    async def aget_pipeline(self, pipeline_id: str) -> PipelineSnapshot:
        return await self._apipeline("GET", f"{PIPELINES_PATH}/{pipeline_id}")

    async def aupdate_pipeline(self, pipeline_id: str, request: PipelineRequest) -> PipelineSnapshot:
        return await self._apipeline(
            "PUT", f"{PIPELINES_PATH}/{pipeline_id}", json=request_body(request)
        )

    async def adelete_pipeline(self, pipeline_id: str) -> None:
        await self._arequest("DELETE", f"{PIPELINES_PATH}/{pipeline_id}")

    async def astart_pipeline(self, pipeline_id: str) -> None:
        await self._arequest("PUT", f"{PIPELINES_PATH}/{pipeline_id}/start")

    async def astop_pipeline(self, pipeline_id: str) -> None:
        await self._arequest("PUT", f"{PIPELINES_PATH}/{pipeline_id}/stop")

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _response_body(response: httpx.Response) -> Any:
    if "application/json" in response.headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


def _error_message(body: Any) -> str:
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or "")
    return str(body or "")


class HttpClientFactory:
    """:class:`~pipectl.kernel.ports.pipeline_api.ClientFactory` for :class:`HttpPipelineAPI`."""

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout

    def __call__(self, cluster_api_url: str, auth_token: str | None) -> HttpPipelineAPI:
        return HttpPipelineAPI(cluster_api_url, auth_token=auth_token, timeout=self._timeout)
