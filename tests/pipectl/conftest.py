"""Shared fixtures for pipectl tests.

- fake_api: in-memory PipelineAPI whose state transitions are scripted
- clock: fake monotonic clock with an async sleep that advances it
- client_factory: ClientFactory handing out ``fake_api``
- cluster_directory: scripted ClusterDirectory
"""

from __future__ import annotations

import dataclasses

import pytest

from pipectl.kernel.domain.pipeline_record import PipelineRequest, PipelineSnapshot
from pipectl.kernel.exceptions import PipelineNotFoundError


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is awaited."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


class FakePipelineAPI:
    """In-memory PipelineAPI.

    Attributes
    ----------
    create_state : object
        Wire state a freshly created pipeline reports
    start_state, stop_state : object
        Wire state the pipeline moves to after a start / stop command;
        set ``stop_state = "STATE_STOPPING"`` to simulate a stop that never
        completes
    errors : dict[str, BaseException]
        Method name -> exception raised on every call of that method
    get_errors : dict[int, BaseException]
        1-based ``aget_pipeline`` call number -> exception raised on that call
    calls : list[tuple[str, ...]]
        Every call, in order
    """

    def __init__(self) -> None:
        self.pipelines: dict[str, PipelineSnapshot] = {}
        self.create_state: object = "STATE_STOPPED"
        self.start_state: object = "STATE_RUNNING"
        self.stop_state: object = "STATE_STOPPED"
        self.errors: dict[str, BaseException] = {}
        self.get_errors: dict[int, BaseException] = {}
        self.calls: list[tuple[str, ...]] = []
        self.requests: list[PipelineRequest] = []
        self.get_count = 0
        self.closed = 0
        self._next_id = 1

    def seed(
        self, pipeline_id: str = "pl-1", state: object = "STATE_STOPPED", **fields: object
    ) -> PipelineSnapshot:
        snapshot = PipelineSnapshot(
            id=pipeline_id,
            display_name=str(fields.pop("display_name", "seeded")),
            config_yaml=str(fields.pop("config_yaml", "input: {}")),
            state=state,
            url=f"https://pipelines.example.com/{pipeline_id}",
            **fields,  # type: ignore[arg-type]
        )
        self.pipelines[pipeline_id] = snapshot
        return snapshot

    def method_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def _maybe_fail(self, method: str) -> None:
        if method in self.errors:
            raise self.errors[method]

    def _existing(self, pipeline_id: str) -> PipelineSnapshot:
        if pipeline_id not in self.pipelines:
            raise PipelineNotFoundError(f"pipeline {pipeline_id} not found", status_code=404)
        return self.pipelines[pipeline_id]

    def _set_state(self, pipeline_id: str, state: object) -> None:
        self.pipelines[pipeline_id] = dataclasses.replace(self._existing(pipeline_id), state=state)

    async def acreate_pipeline(self, request: PipelineRequest) -> PipelineSnapshot:
        self.calls.append(("acreate_pipeline",))
        self.requests.append(request)
        self._maybe_fail("acreate_pipeline")
        pipeline_id = f"pl-{self._next_id}"
        self._next_id += 1
        snapshot = PipelineSnapshot(
            id=pipeline_id,
            display_name=request.display_name,
            description=request.description or "",
            config_yaml=request.config_yaml,
            state=self.create_state,
            url=f"https://pipelines.example.com/{pipeline_id}",
            resources=request.resources,
            service_account_id=(
                request.service_account.client_id if request.service_account else None
            ),
            tags=dict(request.tags) if request.tags else {},
        )
        self.pipelines[pipeline_id] = snapshot
        return snapshot

    async def aget_pipeline(self, pipeline_id: str) -> PipelineSnapshot:
        self.calls.append(("aget_pipeline", pipeline_id))
        self.get_count += 1
        if self.get_count in self.get_errors:
            raise self.get_errors[self.get_count]
        self._maybe_fail("aget_pipeline")
        return self._existing(pipeline_id)

    async def aupdate_pipeline(self, pipeline_id: str, request: PipelineRequest) -> PipelineSnapshot:
        self.calls.append(("aupdate_pipeline", pipeline_id))
        self.requests.append(request)
        self._maybe_fail("aupdate_pipeline")
        current = self._existing(pipeline_id)
        updated = dataclasses.replace(
            current,
            display_name=request.display_name,
            description=request.description or "",
            config_yaml=request.config_yaml,
            resources=request.resources,
            tags=dict(request.tags) if request.tags else {},
        )
        self.pipelines[pipeline_id] = updated
        return updated

    async def adelete_pipeline(self, pipeline_id: str) -> None:
        self.calls.append(("adelete_pipeline", pipeline_id))
        self._maybe_fail("adelete_pipeline")
        self._existing(pipeline_id)
        del self.pipelines[pipeline_id]

    async def astart_pipeline(self, pipeline_id: str) -> None:
        self.calls.append(("astart_pipeline", pipeline_id))
        self._maybe_fail("astart_pipeline")
        self._set_state(pipeline_id, self.start_state)

    async def astop_pipeline(self, pipeline_id: str) -> None:
        self.calls.append(("astop_pipeline", pipeline_id))
        self._maybe_fail("astop_pipeline")
        self._set_state(pipeline_id, self.stop_state)

    async def aclose(self) -> None:
        self.closed += 1


class RecordingClientFactory:
    """ClientFactory returning one shared FakePipelineAPI."""

    def __init__(self, api: FakePipelineAPI) -> None:
        self.api = api
        self.calls: list[tuple[str, str | None]] = []
        self.error: BaseException | None = None

    def __call__(self, cluster_api_url: str, auth_token: str | None) -> FakePipelineAPI:
        self.calls.append((cluster_api_url, auth_token))
        if self.error is not None:
            raise self.error
        return self.api


class FakeClusterDirectory:
    """ClusterDirectory with per-kind URL or exception."""

    def __init__(self) -> None:
        self.dedicated: dict[str, str | None | BaseException] = {}
        self.serverless: dict[str, str | None | BaseException] = {}
        self.calls: list[tuple[str, str]] = []

    async def _lookup(self, table: dict, kind: str, cluster_id: str) -> str | None:
        self.calls.append((kind, cluster_id))
        result = table.get(cluster_id, PipelineNotFoundError(f"cluster {cluster_id} not found"))
        if isinstance(result, BaseException):
            raise result
        return result

    async def adedicated_cluster_api_url(self, cluster_id: str) -> str | None:
        return await self._lookup(self.dedicated, "dedicated", cluster_id)

    async def aserverless_cluster_api_url(self, cluster_id: str) -> str | None:
        return await self._lookup(self.serverless, "serverless", cluster_id)


@pytest.fixture
def fake_api() -> FakePipelineAPI:
    return FakePipelineAPI()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client_factory(fake_api: FakePipelineAPI) -> RecordingClientFactory:
    return RecordingClientFactory(fake_api)


@pytest.fixture
def cluster_directory() -> FakeClusterDirectory:
    return FakeClusterDirectory()
