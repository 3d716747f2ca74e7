"""Lifecycle orchestrator for a managed pipeline.

Each entry point (:meth:`PipelineLifecycle.acreate`, ``aread``, ``aupdate``,
``adelete``, ``aimport``) returns an :class:`OperationResult` instead of
raising:

- the primary mutating call failing (create / update / delete, client
  construction, policy refusal) is an **error** and nothing is persisted;
- start / stop / wait failures are **warnings**; the record is still
  persisted so a later run can retry the transition;
- not-found and unreachable during read / delete lead to **removal** only
  when ``allow_deletion`` permits it.

A pipeline API client is opened per operation and closed on every exit path.
Operations on the same pipeline are not serialized here; callers run at most
one operation per pipeline at a time.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from pipectl.kernel.domain.diagnostics import Diagnostics, OperationResult
from pipectl.kernel.domain.pipeline_record import PipelineRecord
from pipectl.kernel.domain.pipeline_state import (
    DesiredRunState,
    LifecycleState,
    decode,
    encode,
    is_running_family,
)
from pipectl.kernel.exceptions import (
    ClientCreationError,
    ImportIdentifierError,
    PipectlError,
    PipelineAPIError,
    describe_error,
    is_cluster_unreachable,
    is_not_found,
    is_permission_denied,
)
from pipectl.kernel.logging import get_logger, reset_correlation_id, set_correlation_id
from pipectl.kernel.reconcile.convergence import (
    DEFAULT_OPERATION_TIMEOUT,
    BackoffPolicy,
    ConvergenceDriver,
)
from pipectl.kernel.reconcile.merge import merge
from pipectl.kernel.reconcile.validation import validate_plan

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

    from pipectl.kernel.domain.pipeline_record import PipelineSnapshot
    from pipectl.kernel.ports.cluster_directory import ClusterDirectory
    from pipectl.kernel.ports.pipeline_api import ClientFactory, PipelineAPI

logger = get_logger(__name__)


@contextmanager
def _operation(name: str, subject: str | None) -> Iterator[None]:
    token = set_correlation_id(f"{name}:{subject or '-'}")
    try:
        yield
    finally:
        reset_correlation_id(token)


def _add_api_error(
    diags: Diagnostics, summary: str, pipeline_id: str | None, err: BaseException
) -> None:
    """Record a failed remote call; ACL failures get their own summary."""
    if is_permission_denied(err):
        diags.add_error(
            f"permission denied for pipeline {pipeline_id}",
            f"{describe_error(err)}. Check that the credentials carry the required ACLs.",
        )
        return
    diags.add_error(summary, describe_error(err))


class PipelineLifecycle:
    """Create, read, update, delete and import managed pipelines.

    Parameters
    ----------
    client_factory : ClientFactory
        Builds a :class:`PipelineAPI` for a cluster API URL
    auth_token : str | None
        Token handed to the client factory
    cluster_directory : ClusterDirectory | None
        Control-plane lookups, required only for :meth:`aimport`
    backoff : BackoffPolicy | None
        Poll interval policy for start/stop convergence
    default_timeout : float
        Convergence timeout when the record sets none (seconds)
    clock, sleep, cancel_event
        Passed to :class:`ConvergenceDriver`
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        *,
        auth_token: str | None = None,
        cluster_directory: ClusterDirectory | None = None,
        backoff: BackoffPolicy | None = None,
        default_timeout: float = DEFAULT_OPERATION_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._client_factory = client_factory
        self._auth_token = auth_token
        self._cluster_directory = cluster_directory
        self._backoff = backoff or BackoffPolicy()
        self._default_timeout = default_timeout
        self._clock = clock
        self._sleep = sleep
        self._cancel_event = cancel_event

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_client(self, cluster_api_url: str | None) -> PipelineAPI:
        if not cluster_api_url:
            raise ClientCreationError(
                "", "unable to create client with empty target cluster API URL"
            )
        return self._client_factory(cluster_api_url, self._auth_token)

    def _driver(self, api: PipelineAPI) -> ConvergenceDriver:
        return ConvergenceDriver(
            api,
            backoff=self._backoff,
            clock=self._clock,
            sleep=self._sleep,
            cancel_event=self._cancel_event,
        )

    async def _aconverge(
        self,
        api: PipelineAPI,
        snapshot: PipelineSnapshot,
        desired: DesiredRunState,
        timeout: float,
        diags: Diagnostics,
        done: str,
    ) -> PipelineSnapshot:
        """Drive to ``desired``; return the snapshot to merge.

        Failure becomes a warning and the given snapshot is kept. When the
        target was confirmed but the refresh failed, the given snapshot is
        kept with its state set to the confirmed target.
        """
        result = await self._driver(api).aconverge(snapshot.id, desired, timeout)
        verb = "start" if desired is DesiredRunState.RUNNING else "stop"
        if not result.succeeded:
            diags.add_warning(
                "pipeline failed to reach desired state",
                f"Pipeline {snapshot.id} was {done} but failed to {verb} within the timeout. "
                f"Run the operation again to retry: {result.warning}",
            )
            return snapshot
        if result.snapshot is None:
            target = LifecycleState(desired.value)
            diags.add_warning(
                "pipeline state refresh failed",
                f"Pipeline {snapshot.id} reached {target.value} but could not be read back; "
                "recording the confirmed state.",
            )
            return dataclasses.replace(snapshot, state=encode(target))
        return result.snapshot

    def _drift_removal(
        self, prior: PipelineRecord, summary: str, detail: str, reason: str
    ) -> OperationResult:
        """Remove on drift when permitted, otherwise keep the record and warn."""
        if prior.deletion_permitted():
            logger.info(
                "pipeline {pipeline_id} {reason}, removing from state since allow_deletion permits it",
                pipeline_id=prior.id,
                reason=reason,
            )
            return OperationResult(removed=True)
        logger.warning(
            "pipeline {pipeline_id} {reason}, keeping in state since allow_deletion is false",
            pipeline_id=prior.id,
            reason=reason,
        )
        diags = Diagnostics()
        diags.add_warning(summary, detail)
        return OperationResult(record=prior, diagnostics=diags)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def acreate(self, plan: PipelineRecord) -> OperationResult:
        """Create the pipeline, then drive it to the desired run state once."""
        with _operation("create", plan.display_name):
            diags = validate_plan(plan)
            if diags.has_error:
                return OperationResult(diagnostics=diags)

            try:
                api = self._open_client(plan.cluster_api_url)
            except PipectlError as e:
                diags.add_error("failed to create pipeline client", describe_error(e))
                return OperationResult(diagnostics=diags)

            try:
                try:
                    snapshot = await api.acreate_pipeline(plan.to_request())
                except PipelineAPIError as e:
                    diags.add_error("failed to create pipeline", describe_error(e))
                    return OperationResult(diagnostics=diags)
                logger.info("created pipeline {pipeline_id}", pipeline_id=snapshot.id)

                desired = DesiredRunState(plan.desired_state())
                timeout = plan.timeouts.for_operation("create", self._default_timeout)
                running = is_running_family(decode(snapshot.state))
                if (desired is DesiredRunState.RUNNING) != running:
                    snapshot = await self._aconverge(
                        api, snapshot, desired, timeout, diags, done="created"
                    )

                contingent = dataclasses.replace(plan.contingent(), state=desired.value)
                return OperationResult(record=merge(snapshot, contingent), diagnostics=diags)
            finally:
                await api.aclose()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def aread(self, prior: PipelineRecord) -> OperationResult:
        """Refresh a tracked record from the remote side."""
        with _operation("read", prior.id):
            if not prior.cluster_api_url:
                return self._drift_removal(
                    prior,
                    "Missing Cluster API URL",
                    f"Pipeline {prior.id} has no cluster API URL configured. "
                    "Resource will remain in state because allow_deletion is false.",
                    "has no cluster API URL",
                )

            if not prior.id:
                diags = Diagnostics()
                diags.add_error("missing pipeline ID", "The tracked record has no pipeline ID.")
                return OperationResult(diagnostics=diags)

            try:
                api = self._open_client(prior.cluster_api_url)
            except PipectlError as e:
                if is_cluster_unreachable(e):
                    return self._drift_removal(
                        prior,
                        "Cluster Unreachable",
                        f"Unable to reach cluster for pipeline {prior.id}. Resource will remain "
                        f"in state because allow_deletion is false. Error: {describe_error(e)}",
                        "cluster unreachable",
                    )
                diags = Diagnostics()
                diags.add_error("failed to create pipeline client", describe_error(e))
                return OperationResult(diagnostics=diags)

            try:
                snapshot = await api.aget_pipeline(prior.id)
            except PipelineAPIError as e:
                if is_not_found(e):
                    return self._drift_removal(
                        prior,
                        "Pipeline Not Found",
                        f"Pipeline {prior.id} was not found on the cluster. Resource will "
                        "remain in state because allow_deletion is false.",
                        "not found",
                    )
                if is_cluster_unreachable(e):
                    return self._drift_removal(
                        prior,
                        "Cluster Unreachable",
                        f"Unable to reach cluster for pipeline {prior.id}. Resource will remain "
                        f"in state because allow_deletion is false. Error: {describe_error(e)}",
                        "cluster unreachable",
                    )
                diags = Diagnostics()
                _add_api_error(diags, f"failed to get pipeline {prior.id}", prior.id, e)
                return OperationResult(diagnostics=diags)
            finally:
                await api.aclose()

            return OperationResult(record=merge(snapshot, prior.contingent()))

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def aupdate(self, plan: PipelineRecord, prior: PipelineRecord) -> OperationResult:
        """Stop if running, submit the new definition, then start if desired."""
        pipeline_id = prior.id or ""
        with _operation("update", pipeline_id):
            diags = validate_plan(plan)
            if diags.has_error:
                return OperationResult(diagnostics=diags)

            try:
                api = self._open_client(plan.cluster_api_url)
            except PipectlError as e:
                diags.add_error("failed to create pipeline client", describe_error(e))
                return OperationResult(diagnostics=diags)

            try:
                try:
                    current = await api.aget_pipeline(pipeline_id)
                except PipelineAPIError as e:
                    _add_api_error(diags, f"failed to get pipeline {pipeline_id}", pipeline_id, e)
                    return OperationResult(diagnostics=diags)

                timeout = plan.timeouts.for_operation("update", self._default_timeout)

                # Definitions cannot change while the pipeline runs
                if is_running_family(decode(current.state)):
                    logger.info("stopping pipeline {pipeline_id} before update", pipeline_id=pipeline_id)
                    stopped = await self._driver(api).astop(pipeline_id, timeout)
                    if not stopped.succeeded:
                        diags.add_warning(
                            "pipeline may not have fully stopped",
                            f"Could not stop pipeline {pipeline_id} before update: {stopped.warning}",
                        )

                try:
                    snapshot = await api.aupdate_pipeline(
                        pipeline_id, plan.to_request(for_update=True)
                    )
                except PipelineAPIError as e:
                    _add_api_error(diags, f"failed to update pipeline {pipeline_id}", pipeline_id, e)
                    return OperationResult(diagnostics=diags)
                logger.info("updated pipeline {pipeline_id}", pipeline_id=pipeline_id)

                desired = DesiredRunState(plan.desired_state())
                if desired is DesiredRunState.RUNNING:
                    snapshot = await self._aconverge(
                        api, snapshot, desired, timeout, diags, done="updated"
                    )

                contingent = dataclasses.replace(plan.contingent(), state=desired.value)
                return OperationResult(record=merge(snapshot, contingent), diagnostics=diags)
            finally:
                await api.aclose()

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def adelete(self, prior: PipelineRecord) -> OperationResult:
        """Stop (if running) and delete the pipeline."""
        pipeline_id = prior.id or ""
        with _operation("delete", pipeline_id):
            diags = Diagnostics()
            if prior.deletion_blocked():
                diags.add_error(
                    "Deletion Not Allowed",
                    f"Pipeline {pipeline_id} cannot be deleted because allow_deletion is set to "
                    "false. Set allow_deletion = true to delete this resource.",
                )
                return OperationResult(record=prior, diagnostics=diags)

            try:
                api = self._open_client(prior.cluster_api_url)
            except PipectlError as e:
                if is_cluster_unreachable(e):
                    logger.warning(
                        "cluster unreachable for pipeline {pipeline_id}, considering deleted",
                        pipeline_id=pipeline_id,
                    )
                    return OperationResult(removed=True, diagnostics=diags)
                diags.add_error("failed to create pipeline client", describe_error(e))
                return OperationResult(record=prior, diagnostics=diags)

            try:
                try:
                    current = await api.aget_pipeline(pipeline_id)
                except PipelineAPIError as e:
                    if is_not_found(e):
                        logger.info("pipeline {pipeline_id} already deleted", pipeline_id=pipeline_id)
                        return OperationResult(removed=True, diagnostics=diags)
                    _add_api_error(
                        diags, f"failed to get pipeline {pipeline_id} before deletion", pipeline_id, e
                    )
                    return OperationResult(record=prior, diagnostics=diags)

                timeout = prior.timeouts.for_operation("delete", self._default_timeout)
                if is_running_family(decode(current.state)):
                    stopped = await self._driver(api).astop(pipeline_id, timeout)
                    if not stopped.succeeded:
                        diags.add_warning(
                            "failed to stop pipeline before deletion",
                            f"Pipeline {pipeline_id} could not be stopped before deletion: "
                            f"{stopped.warning}. Attempting to delete anyway.",
                        )

                try:
                    await api.adelete_pipeline(pipeline_id)
                except PipelineAPIError as e:
                    if is_not_found(e):
                        logger.info("pipeline {pipeline_id} already deleted", pipeline_id=pipeline_id)
                        return OperationResult(removed=True, diagnostics=diags)
                    _add_api_error(diags, f"failed to delete pipeline {pipeline_id}", pipeline_id, e)
                    return OperationResult(record=prior, diagnostics=diags)
            finally:
                await api.aclose()

            logger.info("successfully deleted pipeline {pipeline_id}", pipeline_id=pipeline_id)
            return OperationResult(removed=True, diagnostics=diags)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    async def aimport(self, import_id: str) -> OperationResult:
        """Seed a record from ``<pipeline_id>,<cluster_id>``.

        The seeded record has ``allow_deletion = False``; follow with
        :meth:`aread` to populate the remaining fields.
        """
        with _operation("import", import_id):
            diags = Diagnostics()
            parts = import_id.split(",", 1)
            if len(parts) != 2 or not parts[0] or not parts[1]:
                err = ImportIdentifierError(import_id)
                diags.add_error(f"wrong import ID format: {import_id}", str(err))
                return OperationResult(diagnostics=diags)
            pipeline_id, cluster_id = parts

            if self._cluster_directory is None:
                diags.add_error(
                    "cluster lookup unavailable",
                    "No cluster directory is configured; set a control plane URL.",
                )
                return OperationResult(diagnostics=diags)

            dedicated_error: PipelineAPIError | None = None
            serverless_error: PipelineAPIError | None = None
            cluster_api_url: str | None = None
            try:
                cluster_api_url = await self._cluster_directory.adedicated_cluster_api_url(
                    cluster_id
                )
            except PipelineAPIError as e:
                dedicated_error = e

            if not cluster_api_url:
                try:
                    cluster_api_url = await self._cluster_directory.aserverless_cluster_api_url(
                        cluster_id
                    )
                except PipelineAPIError as e:
                    serverless_error = e

            if not cluster_api_url:
                causes = [describe_error(e) for e in (dedicated_error, serverless_error) if e]
                diags.add_error(
                    f"failed to find cluster with ID {cluster_id!r}; make sure import ID "
                    "format is <pipeline_id>,<cluster_id>",
                    "; ".join(causes),
                )
                return OperationResult(diagnostics=diags)

            logger.info(
                "importing pipeline {pipeline_id} from cluster {cluster_id}",
                pipeline_id=pipeline_id,
                cluster_id=cluster_id,
            )
            record = PipelineRecord(
                id=pipeline_id, cluster_api_url=cluster_api_url, allow_deletion=False
            )
            return OperationResult(record=record, diagnostics=diags)
