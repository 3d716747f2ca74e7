"""Convergence driver: start/stop a pipeline and wait for the target state.

The wait loop is an explicit state machine::

    POLLING --(observed == target)--> REACHED
    POLLING --(observed == error)---> FAILED("pipeline entered error state")
    POLLING --(fetch raised)--------> FAILED("failed to get pipeline state: ...")
    POLLING --(cancel signal set)---> FAILED("operation cancelled")
    POLLING --(deadline passed)-----> TIMED_OUT

Between ticks it sleeps with exponential backoff (doubling, capped at
``max_factor`` times the base interval). The clock and the sleep function are
injectable so tests never wait on the wall clock.

The driver never raises for remote failures: :meth:`ConvergenceDriver.astart`
and :meth:`ConvergenceDriver.astop` return a :class:`ConvergenceResult` and
the lifecycle orchestrator decides whether that is a warning or an error.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from pipectl.kernel.domain.pipeline_state import DesiredRunState, LifecycleState, decode
from pipectl.kernel.exceptions import PipelineAPIError, describe_error
from pipectl.kernel.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pipectl.kernel.domain.pipeline_record import PipelineSnapshot
    from pipectl.kernel.ports.pipeline_api import PipelineAPI

logger = get_logger(__name__)

DEFAULT_OPERATION_TIMEOUT = 120.0
DEFAULT_POLL_INTERVAL = 1.0

_TARGETS: dict[DesiredRunState, LifecycleState] = {
    DesiredRunState.RUNNING: LifecycleState.RUNNING,
    DesiredRunState.STOPPED: LifecycleState.STOPPED,
}


class WaitStatus(StrEnum):
    """States of the wait-for-state machine."""

    POLLING = "polling"
    REACHED = "reached"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True, slots=True)
class WaitOutcome:
    """Terminal result of a wait loop."""

    status: WaitStatus
    reason: str = ""
    polls: int = 0

    @property
    def reached(self) -> bool:
        return self.status is WaitStatus.REACHED


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Exponential backoff between polls.

    Parameters
    ----------
    base_interval : float
        First sleep, in seconds.
    max_factor : float
        The interval is capped at ``base_interval * max_factor``.
    multiplier : float
        Growth factor applied after every unsuccessful tick.

    Examples
    --------
    >>> policy = BackoffPolicy(base_interval=1.0)
    >>> [policy.compute_delay(n) for n in range(1, 7)]
    [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]
    """

    base_interval: float = DEFAULT_POLL_INTERVAL
    max_factor: float = 10.0
    multiplier: float = 2.0

    @property
    def max_interval(self) -> float:
        return self.base_interval * self.max_factor

    def compute_delay(self, tick: int) -> float:
        """Delay after the ``tick``-th unsuccessful poll (1-indexed)."""
        return min(self.base_interval * (self.multiplier ** (tick - 1)), self.max_interval)


@dataclass(frozen=True, slots=True)
class ConvergenceResult:
    """Outcome of a start/stop convergence.

    ``succeeded`` with ``snapshot is None`` means the target state was
    confirmed but the final refresh failed; callers should fall back to the
    last snapshot they hold.
    """

    snapshot: PipelineSnapshot | None
    warning: str
    succeeded: bool


class ConvergenceDriver:
    """Drives one pipeline to ``running`` or ``stopped`` within a timeout.

    Parameters
    ----------
    api : PipelineAPI
        Client for the pipeline's cluster
    backoff : BackoffPolicy | None
        Poll interval policy (default: 1s base, capped at 10s)
    clock : Callable[[], float]
        Monotonic clock in seconds
    sleep : Callable[[float], Awaitable[None]]
        Sleep function used between ticks
    cancel_event : asyncio.Event | None
        When set, the wait loop stops at its next tick
    """

    def __init__(
        self,
        api: PipelineAPI,
        *,
        backoff: BackoffPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._api = api
        self._backoff = backoff or BackoffPolicy()
        self._clock = clock
        self._sleep = sleep
        self._cancel_event = cancel_event

    async def await_state(
        self, pipeline_id: str, target: LifecycleState, timeout: float
    ) -> WaitOutcome:
        """Poll until ``target`` is observed, the error state shows up, or time runs out."""
        deadline = self._clock() + timeout
        polls = 0

        while self._clock() < deadline:
            if self._cancel_event is not None and self._cancel_event.is_set():
                return WaitOutcome(WaitStatus.FAILED, "operation cancelled", polls)

            try:
                snapshot = await self._api.aget_pipeline(pipeline_id)
            except PipelineAPIError as e:
                return WaitOutcome(
                    WaitStatus.FAILED, f"failed to get pipeline state: {describe_error(e)}", polls
                )
            polls += 1

            observed = decode(snapshot.state)
            logger.debug(
                "pipeline {pipeline_id} is {observed}, waiting for {target} (poll {polls})",
                pipeline_id=pipeline_id,
                observed=observed.value,
                target=target.value,
                polls=polls,
            )
            if observed is target:
                return WaitOutcome(WaitStatus.REACHED, "", polls)
            if observed is LifecycleState.ERROR:
                return WaitOutcome(WaitStatus.FAILED, "pipeline entered error state", polls)

            remaining = deadline - self._clock()
            if remaining > 0:
                await self._sleep(min(self._backoff.compute_delay(polls), remaining))

        return WaitOutcome(
            WaitStatus.TIMED_OUT,
            f"timeout waiting for pipeline to reach state {target.value}",
            polls,
        )

    async def astart(self, pipeline_id: str, timeout: float) -> ConvergenceResult:
        """Start the pipeline and wait until it is running."""
        return await self._aconverge(pipeline_id, DesiredRunState.RUNNING, timeout)

    async def astop(self, pipeline_id: str, timeout: float) -> ConvergenceResult:
        """Stop the pipeline and wait until it is stopped."""
        return await self._aconverge(pipeline_id, DesiredRunState.STOPPED, timeout)

    async def aconverge(
        self, pipeline_id: str, desired: DesiredRunState, timeout: float
    ) -> ConvergenceResult:
        """Start or stop, whichever reaches ``desired``."""
        return await self._aconverge(pipeline_id, desired, timeout)

    async def _aconverge(
        self, pipeline_id: str, desired: DesiredRunState, timeout: float
    ) -> ConvergenceResult:
        verb = "start" if desired is DesiredRunState.RUNNING else "stop"
        target = _TARGETS[desired]

        logger.info("requesting {verb} of pipeline {pipeline_id}", verb=verb, pipeline_id=pipeline_id)
        try:
            if desired is DesiredRunState.RUNNING:
                await self._api.astart_pipeline(pipeline_id)
            else:
                await self._api.astop_pipeline(pipeline_id)
        except PipelineAPIError as e:
            return ConvergenceResult(None, f"failed to {verb} pipeline: {describe_error(e)}", False)

        outcome = await self.await_state(pipeline_id, target, timeout)
        if not outcome.reached:
            logger.warning(
                "pipeline {pipeline_id} did not reach {target}: {reason}",
                pipeline_id=pipeline_id,
                target=target.value,
                reason=outcome.reason,
            )
            return ConvergenceResult(
                None,
                f"pipeline did not reach {target.value} state: {outcome.reason}",
                False,
            )

        logger.info(
            "pipeline {pipeline_id} reached {target} after {polls} polls",
            pipeline_id=pipeline_id,
            target=target.value,
            polls=outcome.polls,
        )
        try:
            snapshot = await self._api.aget_pipeline(pipeline_id)
        except PipelineAPIError as e:
            logger.warning(
                "pipeline {pipeline_id} reached {target} but refresh failed: {error}",
                pipeline_id=pipeline_id,
                target=target.value,
                error=describe_error(e),
            )
            return ConvergenceResult(None, "", True)
        return ConvergenceResult(snapshot, "", True)
