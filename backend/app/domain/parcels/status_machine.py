"""
Parcel Status Machine.

The delivery workflow as an explicit finite-state machine value:
each status maps to the set of statuses it may move to next.
"""

from typing import Dict, FrozenSet, Iterator, Tuple

from backend.app.core.exceptions import InvalidTransitionError
from backend.app.models.parcel_enums import ParcelStatus


PARCEL_TRANSITIONS: Dict[ParcelStatus, FrozenSet[ParcelStatus]] = {
    ParcelStatus.PENDING: frozenset({ParcelStatus.PICKED_UP, ParcelStatus.FAILED}),
    ParcelStatus.PICKED_UP: frozenset({ParcelStatus.IN_TRANSIT, ParcelStatus.FAILED}),
    ParcelStatus.IN_TRANSIT: frozenset({ParcelStatus.DELIVERED, ParcelStatus.FAILED}),
    ParcelStatus.DELIVERED: frozenset(),
    ParcelStatus.FAILED: frozenset({ParcelStatus.PENDING}),
}

# Agents cannot be (re)assigned once a parcel reaches one of these
UNASSIGNABLE_STATUSES: FrozenSet[ParcelStatus] = frozenset({ParcelStatus.DELIVERED, ParcelStatus.FAILED})


def is_transition_allowed(current: ParcelStatus, requested: ParcelStatus) -> bool:
    """Return True if the table lists `requested` as a next state of `current`."""
    return requested in PARCEL_TRANSITIONS.get(current, frozenset())


def validate_transition(current: ParcelStatus, requested: ParcelStatus) -> None:
    """
    Validate a status change against the transition table.

    Same-status updates are rejected too: no status lists itself.

    Raises:
        InvalidTransitionError: carrying both statuses
    """
    if not is_transition_allowed(current, requested):
        raise InvalidTransitionError(current, requested)


def allowed_transitions() -> Iterator[Tuple[ParcelStatus, ParcelStatus]]:
    """Iterate every permitted (from, to) pair."""
    for current, targets in PARCEL_TRANSITIONS.items():
        for target in sorted(targets, key=lambda s: s.value):
            yield current, target


def is_terminal(status: ParcelStatus) -> bool:
    return not PARCEL_TRANSITIONS.get(status)
