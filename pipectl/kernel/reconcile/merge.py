"""Record merge: rebuild a complete :class:`PipelineRecord` from a snapshot.

Per-field sources:

=================  ==========================================================
Field              Source
=================  ==========================================================
id, display_name,  snapshot, verbatim (empty strings included)
description,
config_yaml, url
state              prior state if equivalent to the observed one, else the
                   normalized observed state
resources          planned value if set, else snapshot, else unset
service_account    planned value if set, else ``client_id`` from snapshot
                   with secret fields unset, else unset
tags               snapshot when non-empty, else unset
cluster_api_url,   contingent fields, verbatim
allow_deletion,
timeouts
=================  ==========================================================
"""

from __future__ import annotations

from pipectl.kernel.domain.pipeline_record import (
    ContingentFields,
    PipelineRecord,
    PipelineSnapshot,
    Resources,
    ServiceAccount,
)
from pipectl.kernel.domain.pipeline_state import decode, equivalent, normalize


def merge_state(prior: str | None, wire_state: object) -> str:
    """Pick the run-state string to record.

    Keeps ``prior`` when it is still equivalent to the observed state so that
    ``starting``/``running`` churn is not reported as drift.
    """
    observed = decode(wire_state)
    if prior and equivalent(prior, observed):
        return prior
    return normalize(observed).value


def merge_resources(snapshot: PipelineSnapshot, planned: Resources | None) -> Resources | None:
    if planned is not None:
        # The API may echo rounded values; keep what the user wrote
        return planned
    if snapshot.resources is not None:
        return Resources(
            memory_shares=snapshot.resources.memory_shares or "",
            cpu_shares=snapshot.resources.cpu_shares or "",
        )
    return None


def merge_service_account(
    snapshot: PipelineSnapshot, planned: ServiceAccount | None
) -> ServiceAccount | None:
    # client_secret and secret_version are never returned by the API
    if planned is not None:
        return planned
    if snapshot.service_account_id is not None:
        return ServiceAccount(client_id=snapshot.service_account_id)
    return None


def merge_tags(snapshot: PipelineSnapshot) -> dict[str, str] | None:
    if snapshot.tags:
        return dict(snapshot.tags)
    return None


def merge(snapshot: PipelineSnapshot, contingent: ContingentFields) -> PipelineRecord:
    """Build the record to persist from a snapshot plus contingent fields."""
    return PipelineRecord(
        id=snapshot.id,
        cluster_api_url=contingent.cluster_api_url,
        display_name=snapshot.display_name,
        description=snapshot.description,
        config_yaml=snapshot.config_yaml,
        state=merge_state(contingent.state, snapshot.state),
        url=snapshot.url,
        resources=merge_resources(snapshot, contingent.resources),
        service_account=merge_service_account(snapshot, contingent.service_account),
        tags=merge_tags(snapshot),
        allow_deletion=contingent.allow_deletion,
        timeouts=contingent.timeouts,
    )


def changed_fields(plan: PipelineRecord, current: PipelineRecord) -> list[str]:
    """Names of the user-settable fields where ``plan`` differs from ``current``.

    ``current`` is a refreshed record. Resources and service account are only
    compared when the plan sets them; the run state is compared by bucket, so
    a ``starting`` pipeline already satisfies ``running``.
    """
    changed: list[str] = []
    if plan.display_name != current.display_name:
        changed.append("display_name")
    if (plan.description or "") != (current.description or ""):
        changed.append("description")
    if plan.config_yaml != current.config_yaml:
        changed.append("config_yaml")
    if normalize(decode(current.state)).value != plan.desired_state():
        changed.append("state")
    if plan.resources is not None and plan.resources != current.resources:
        changed.append("resources")
    if plan.service_account is not None and plan.service_account != current.service_account:
        changed.append("service_account")
    if (plan.tags or {}) != (current.tags or {}):
        changed.append("tags")
    return changed
