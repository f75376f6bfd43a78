"""
Assessment session lifecycle states.

UNINITIALIZED -> ACTIVE -> (RESTARTING -> ACTIVE)* -> CLOSED

RESTARTING also covers "no usable engine": a failed engine open leaves the
session there until the next reference change retries.
CLOSED is terminal.
"""
from enum import Enum


class LifecycleState(Enum):
    """Where a session is relative to its recognition engine."""
    UNINITIALIZED = "UNINITIALIZED"  # Connection open, no engine yet
    ACTIVE = "ACTIVE"                # Engine live, audio and events routed
    RESTARTING = "RESTARTING"        # Reference changing, audio and events dropped
    CLOSED = "CLOSED"                # Torn down


_ALLOWED: dict[LifecycleState, frozenset[LifecycleState]] = {
    LifecycleState.UNINITIALIZED: frozenset({
        LifecycleState.ACTIVE,
        LifecycleState.RESTARTING,
        LifecycleState.CLOSED,
    }),
    LifecycleState.ACTIVE: frozenset({
        LifecycleState.RESTARTING,
        LifecycleState.CLOSED,
    }),
    LifecycleState.RESTARTING: frozenset({
        LifecycleState.ACTIVE,
        LifecycleState.RESTARTING,
        LifecycleState.CLOSED,
    }),
    LifecycleState.CLOSED: frozenset(),
}


class InvalidTransition(Exception):
    """Raised when a lifecycle transition is not in the allowed table."""


def check_transition(src: LifecycleState, dst: LifecycleState) -> None:
    if dst not in _ALLOWED[src]:
        raise InvalidTransition(f"{src.value} -> {dst.value}")
