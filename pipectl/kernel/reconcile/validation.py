"""Plan validation run before any remote call on create and update."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pipectl.kernel.domain.diagnostics import Diagnostics
from pipectl.kernel.domain.pipeline_state import DesiredRunState
from pipectl.kernel.domain.quantities import check_cpu_shares, check_memory_shares

if TYPE_CHECKING:
    from pipectl.kernel.domain.pipeline_record import PipelineRecord

_DESIRED_STATES = frozenset(state.value for state in DesiredRunState)


def validate_plan(plan: PipelineRecord) -> Diagnostics:
    """Check a desired record; every problem becomes an error diagnostic."""
    diags = Diagnostics()

    if not plan.display_name:
        diags.add_error("Invalid display_name", "display_name must be at least 1 character long.")
    if plan.config_yaml is None:
        diags.add_error("Missing config_yaml", "config_yaml is required.")
    if plan.state is not None and plan.state not in _DESIRED_STATES:
        diags.add_error(
            "Invalid state",
            f"state must be one of {sorted(_DESIRED_STATES)}, got {plan.state!r}.",
        )

    if plan.resources is not None:
        if plan.resources.cpu_shares is not None:
            reason = check_cpu_shares(plan.resources.cpu_shares)
            if reason:
                diags.add_error("Invalid cpu_shares", reason)
        if plan.resources.memory_shares is not None:
            reason = check_memory_shares(plan.resources.memory_shares)
            if reason:
                diags.add_error("Invalid memory_shares", reason)

    return diags
