"""Binary lifecycle transition rules.

The registry stores the state; this module decides which changes the client
may request. ``UPLOADABLE -> HASHABLE -> HASHING -> SIGNABLE -> SIGNED`` with no
skipping, resets to UPLOADABLE from any non-signed state, and DESTROYED
reachable from any non-signed state.
"""

from __future__ import annotations

from binforge.errors import InvalidTransitionError
from binforge.models.binaries import VALID_TRANSITIONS, BinaryState


def can_transition(current: BinaryState, target: BinaryState) -> bool:
    return target in VALID_TRANSITIONS.get(current, set())


def check_transition(current: BinaryState, target: BinaryState) -> None:
    """Raise ``InvalidTransitionError`` unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        allowed = sorted(s.value for s in VALID_TRANSITIONS.get(current, set()))
        raise InvalidTransitionError(
            f"Cannot transition binary from {current.value} to {target.value}. "
            f"Allowed: {allowed}"
        )


def is_immutable(state: BinaryState) -> bool:
    """Signed binaries never change hash or size."""
    return state == BinaryState.SIGNED
