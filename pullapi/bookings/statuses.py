"""Reservation and guest status handling.

Status IDs live in venue-configurable tables (``reservation_statuses`` and
``guest_statuses``), so the numeric values are always looked up by name. The
canonical lifecycle states get their special behaviour from the enums below;
any other name in the table is a venue-specific status with no special
behaviour.

Lifecycle::

    pending -> confirmed -> cancelled | completed
            -> rejected | cancelled
    confirmed -> modified -> confirmed   (guest change requests only)
"""

from enum import Enum
from typing import Dict, List, Optional, Type

from sqlalchemy.orm import Session

from pullapi.errors import InternalError, InvalidBookingStatusError


class ReservationState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    COMPLETED = "completed"
    MODIFIED = "modified"

    @classmethod
    def parse(cls, name: Optional[str]) -> Optional["ReservationState"]:
        """Canonical state for a status name, None for venue-specific names"""
        try:
            return cls(name)
        except ValueError:
            return None


class GuestState(str, Enum):
    CONFIRMED = "confirmed"
    PENDING_ADD = "pending_add"
    PENDING_REMOVE = "pending_remove"
    REMOVED = "removed"


TERMINAL_STATES = {
    ReservationState.CANCELLED,
    ReservationState.REJECTED,
    ReservationState.COMPLETED,
}

# Transitions allowed through a staff status update
CANONICAL_TRANSITIONS = {
    ReservationState.PENDING: {
        ReservationState.CONFIRMED,
        ReservationState.REJECTED,
        ReservationState.CANCELLED,
    },
    ReservationState.CONFIRMED: {
        ReservationState.CANCELLED,
        ReservationState.COMPLETED,
    },
}

# Why a booking that is not confirmed cannot take guest changes
MODIFICATION_BLOCKED_MESSAGES = {
    ReservationState.PENDING: "pending approval",
    ReservationState.CANCELLED: "cancelled",
    ReservationState.REJECTED: "rejected",
    ReservationState.COMPLETED: "completed",
    ReservationState.MODIFIED: "already has pending modifications",
}


class StatusTable:
    """Name <-> id mapping loaded from a status table"""

    def __init__(self, rows: Dict[str, int]):
        self._ids_by_name = dict(rows)
        self._names_by_id = {status_id: name for name, status_id in rows.items()}

    @classmethod
    def load(cls, db: Session, model: Type) -> "StatusTable":
        return cls({row.name: row.id for row in db.query(model).all()})

    def names(self) -> List[str]:
        return sorted(self._ids_by_name, key=self._ids_by_name.get)

    def find(self, name: str) -> Optional[int]:
        return self._ids_by_name.get(name)

    def id_for(self, state: Enum) -> int:
        """ID of a canonical state; missing canonical rows are a configuration error"""
        status_id = self._ids_by_name.get(state.value)
        if status_id is None:
            raise InternalError("Could not load status configuration")
        return status_id

    def name_for(self, status_id: int) -> Optional[str]:
        return self._names_by_id.get(status_id)

    def state_of(self, status_id: int) -> Optional[ReservationState]:
        return ReservationState.parse(self.name_for(status_id))


def modification_blocked_message(status_name: Optional[str]) -> str:
    state = ReservationState.parse(status_name)
    if state in MODIFICATION_BLOCKED_MESSAGES:
        reason = MODIFICATION_BLOCKED_MESSAGES[state]
    else:
        reason = status_name or "unknown"
    return f"Cannot modify booking. Current status: {reason}"


def ensure_transition_allowed(current_name: Optional[str], target_name: str) -> None:
    """Raise InvalidBookingStatusError unless a staff update may move current -> target"""
    if current_name == target_name:
        raise InvalidBookingStatusError(f"Booking is already {target_name}")

    current = ReservationState.parse(current_name)
    target = ReservationState.parse(target_name)

    if current in TERMINAL_STATES:
        raise InvalidBookingStatusError(f"Booking is {current.value} and can no longer change status")
    if current == ReservationState.MODIFIED:
        raise InvalidBookingStatusError("Booking has pending guest modifications that must be processed first")
    if target == ReservationState.MODIFIED:
        raise InvalidBookingStatusError("Bookings only become modified through guest change requests")

    # Venue-specific statuses carry no lifecycle rules of their own
    if current is None or target is None:
        return

    if target not in CANONICAL_TRANSITIONS.get(current, set()):
        raise InvalidBookingStatusError(
            f"Cannot change booking status from {current.value} to {target.value}"
        )
