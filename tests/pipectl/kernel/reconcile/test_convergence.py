"""Tests for the convergence driver (start/stop and wait-for-state)."""

from __future__ import annotations

import asyncio
import math

import pytest

from pipectl.kernel.domain.pipeline_state import DesiredRunState, LifecycleState
from pipectl.kernel.exceptions import PipelineAPIError
from pipectl.kernel.reconcile.convergence import BackoffPolicy, ConvergenceDriver, WaitStatus


def _driver(api, clock, **kwargs) -> ConvergenceDriver:
    return ConvergenceDriver(api, clock=clock, sleep=clock.sleep, **kwargs)


# ---------------------------------------------------------------------------
# Backoff
# ---------------------------------------------------------------------------


class TestBackoffPolicy:
    def test_doubles_and_caps(self) -> None:
        policy = BackoffPolicy(base_interval=1.0, max_factor=10.0)
        assert [policy.compute_delay(n) for n in range(1, 7)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    def test_custom_base(self) -> None:
        policy = BackoffPolicy(base_interval=0.5, max_factor=4.0)
        assert policy.max_interval == 2.0
        assert [policy.compute_delay(n) for n in range(1, 5)] == [0.5, 1.0, 2.0, 2.0]


# ---------------------------------------------------------------------------
# Wait loop
# ---------------------------------------------------------------------------


class TestAwaitState:
    @pytest.mark.asyncio
    async def test_reached_on_first_poll(self, fake_api, clock) -> None:
        fake_api.seed("pl-1", state="STATE_RUNNING")
        outcome = await _driver(fake_api, clock).await_state("pl-1", LifecycleState.RUNNING, 30)
        assert outcome.status is WaitStatus.REACHED
        assert outcome.polls == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_timeout_with_bounded_polls(self, fake_api, clock) -> None:
        fake_api.seed("pl-1", state="STATE_STOPPING")
        timeout = 30.0
        outcome = await _driver(fake_api, clock).await_state("pl-1", LifecycleState.STOPPED, timeout)

        assert outcome.status is WaitStatus.TIMED_OUT
        assert outcome.reason == "timeout waiting for pipeline to reach state stopped"
        assert clock.sleeps == [1.0, 2.0, 4.0, 8.0, 10.0, 5.0]
        assert outcome.polls <= 4 + math.ceil(timeout / 10.0) + 1
        assert clock.now == pytest.approx(timeout)

    @pytest.mark.asyncio
    async def test_error_state_fails_fast(self, fake_api, clock) -> None:
        fake_api.seed("pl-1", state="STATE_ERROR")
        outcome = await _driver(fake_api, clock).await_state("pl-1", LifecycleState.RUNNING, 30)
        assert outcome.status is WaitStatus.FAILED
        assert outcome.reason == "pipeline entered error state"
        assert outcome.polls == 1

    @pytest.mark.asyncio
    async def test_fetch_error_fails(self, fake_api, clock) -> None:
        fake_api.seed("pl-1")
        fake_api.errors["aget_pipeline"] = PipelineAPIError("unavailable", status_code=503)
        outcome = await _driver(fake_api, clock).await_state("pl-1", LifecycleState.STOPPED, 30)
        assert outcome.status is WaitStatus.FAILED
        assert outcome.reason == "failed to get pipeline state: 503 : unavailable"

    @pytest.mark.asyncio
    async def test_cancellation(self, fake_api, clock) -> None:
        fake_api.seed("pl-1", state="STATE_STOPPING")
        cancel = asyncio.Event()
        cancel.set()
        outcome = await _driver(fake_api, clock, cancel_event=cancel).await_state(
            "pl-1", LifecycleState.STOPPED, 30
        )
        assert outcome.status is WaitStatus.FAILED
        assert outcome.reason == "operation cancelled"
        assert fake_api.calls == []

    @pytest.mark.asyncio
    async def test_zero_timeout_never_polls(self, fake_api, clock) -> None:
        fake_api.seed("pl-1", state="STATE_RUNNING")
        outcome = await _driver(fake_api, clock).await_state("pl-1", LifecycleState.RUNNING, 0)
        assert outcome.status is WaitStatus.TIMED_OUT
        assert outcome.polls == 0


# ---------------------------------------------------------------------------
# Start / stop
# ---------------------------------------------------------------------------


class TestStartStop:
    @pytest.mark.asyncio
    async def test_start_returns_fresh_snapshot(self, fake_api, clock) -> None:
        fake_api.seed("pl-1", state="STATE_STOPPED")
        result = await _driver(fake_api, clock).astart("pl-1", 30)

        assert result.succeeded
        assert result.warning == ""
        assert result.snapshot is not None
        assert result.snapshot.state == "STATE_RUNNING"
        assert fake_api.method_names() == ["astart_pipeline", "aget_pipeline", "aget_pipeline"]

    @pytest.mark.asyncio
    async def test_stop_command_failure(self, fake_api, clock) -> None:
        fake_api.seed("pl-1", state="STATE_RUNNING")
        fake_api.errors["astop_pipeline"] = PipelineAPIError("rejected", status_code=400)
        result = await _driver(fake_api, clock).astop("pl-1", 30)

        assert not result.succeeded
        assert result.snapshot is None
        assert result.warning == "failed to stop pipeline: 400 : rejected"

    @pytest.mark.asyncio
    async def test_stop_timeout(self, fake_api, clock) -> None:
        fake_api.seed("pl-1", state="STATE_RUNNING")
        fake_api.stop_state = "STATE_STOPPING"
        result = await _driver(fake_api, clock).astop("pl-1", 5)

        assert not result.succeeded
        assert result.warning.startswith("pipeline did not reach stopped state: timeout")

    @pytest.mark.asyncio
    async def test_reached_but_refresh_failed(self, fake_api, clock) -> None:
        fake_api.seed("pl-1", state="STATE_STOPPED")
        fake_api.get_errors[2] = PipelineAPIError("flaky")
        result = await _driver(fake_api, clock).aconverge("pl-1", DesiredRunState.RUNNING, 30)

        assert result.succeeded
        assert result.snapshot is None
        assert result.warning == ""
