"""Pipeline run-state vocabulary and state equivalence.

Two representations are kept side by side:

- :class:`LifecycleState` is the fine-grained state reported by the remote
  API (``starting``, ``running``, ``stopping``, ...).
- :class:`DesiredRunState` is the coarse bucket a user asks for
  (``running`` or ``stopped``).

:func:`equivalent` compares a previously recorded state string with a freshly
observed one so that micro-transitions such as ``starting`` -> ``running`` do
not show up as drift.
"""

from __future__ import annotations

from enum import StrEnum


class LifecycleState(StrEnum):
    """Remote lifecycle state of a pipeline."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    COMPLETED = "completed"
    ERROR = "error"
    UNKNOWN = "unknown"


class DesiredRunState(StrEnum):
    """Run state a caller can ask for."""

    RUNNING = "running"
    STOPPED = "stopped"


DEFAULT_DESIRED_STATE = DesiredRunState.STOPPED

RUNNING_FAMILY: frozenset[str] = frozenset({LifecycleState.STARTING, LifecycleState.RUNNING})
STOPPED_FAMILY: frozenset[str] = frozenset(
    {LifecycleState.STOPPING, LifecycleState.STOPPED, LifecycleState.COMPLETED}
)

# Wire enum names and their numeric codes
_WIRE_NAMES: dict[str, LifecycleState] = {
    "STATE_STARTING": LifecycleState.STARTING,
    "STATE_RUNNING": LifecycleState.RUNNING,
    "STATE_STOPPING": LifecycleState.STOPPING,
    "STATE_STOPPED": LifecycleState.STOPPED,
    "STATE_ERROR": LifecycleState.ERROR,
    "STATE_COMPLETED": LifecycleState.COMPLETED,
}
_WIRE_CODES: dict[int, LifecycleState] = {
    1: LifecycleState.STARTING,
    2: LifecycleState.RUNNING,
    3: LifecycleState.STOPPING,
    4: LifecycleState.STOPPED,
    5: LifecycleState.ERROR,
    6: LifecycleState.COMPLETED,
}
_WIRE_BY_STATE: dict[LifecycleState, str] = {state: name for name, state in _WIRE_NAMES.items()}


def decode(wire_state: object) -> LifecycleState:
    """Decode a wire state into a :class:`LifecycleState`.

    Accepts the enum name (``"STATE_RUNNING"``), its numeric code (``2``) or
    the lowercase vocabulary value (``"running"``). Anything else, including
    ``STATE_UNSPECIFIED``, decodes to :attr:`LifecycleState.UNKNOWN`.

    Examples
    --------
    >>> decode("STATE_RUNNING")
    <LifecycleState.RUNNING: 'running'>
    >>> decode(6)
    <LifecycleState.COMPLETED: 'completed'>
    >>> decode("STATE_PAUSED")
    <LifecycleState.UNKNOWN: 'unknown'>
    """
    if isinstance(wire_state, LifecycleState):
        return wire_state
    if isinstance(wire_state, bool):
        return LifecycleState.UNKNOWN
    if isinstance(wire_state, int):
        return _WIRE_CODES.get(wire_state, LifecycleState.UNKNOWN)
    if isinstance(wire_state, str):
        if wire_state in _WIRE_NAMES:
            return _WIRE_NAMES[wire_state]
        try:
            return LifecycleState(wire_state)
        except ValueError:
            return LifecycleState.UNKNOWN
    return LifecycleState.UNKNOWN


def encode(state: LifecycleState) -> str:
    """Return the wire enum name for a lifecycle state."""
    return _WIRE_BY_STATE.get(state, "STATE_UNSPECIFIED")


def normalize(observed: LifecycleState) -> DesiredRunState:
    """Collapse an observed state into the desired-state bucket.

    Only ``starting`` and ``running`` count as running; a failed, finished or
    unrecognized pipeline is never reported as one that should be running.
    """
    if observed in RUNNING_FAMILY:
        return DesiredRunState.RUNNING
    return DesiredRunState.STOPPED


def is_running_family(state: LifecycleState | str) -> bool:
    """Check whether a state is ``starting`` or ``running``."""
    return state in RUNNING_FAMILY


def equivalent(prior: str, observed: str) -> bool:
    """Check whether a recorded state and an observed state mean the same thing.

    Both in the running family, or both in the stopped family, are
    equivalent; otherwise only identical strings are. ``error`` is never
    equivalent to anything, itself included, so a stale error is always
    re-derived from the fresh observation.

    Examples
    --------
    >>> equivalent("running", "starting")
    True
    >>> equivalent("stopped", "completed")
    True
    >>> equivalent("error", "error")
    False
    """
    if prior == LifecycleState.ERROR or observed == LifecycleState.ERROR:
        return False
    if prior in RUNNING_FAMILY and observed in RUNNING_FAMILY:
        return True
    if prior in STOPPED_FAMILY and observed in STOPPED_FAMILY:
        return True
    return prior == observed
