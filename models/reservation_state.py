"""
Reservation state management functions.
Handles the reservation status machine and its history.
"""

from enum import Enum

from database import get_db
from utils.exceptions import InvalidStateError


# =============================================================================
# CONSTANTS
# =============================================================================

class ReservationStatus(str, Enum):
    """Reservation lifecycle status."""

    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'


# Active moves exactly once to a terminal state; terminal states are final.
VALID_TRANSITIONS = {
    ReservationStatus.ACTIVE: {
        ReservationStatus.COMPLETED,
        ReservationStatus.CANCELLED,
        ReservationStatus.NO_SHOW,
    },
    ReservationStatus.COMPLETED: set(),
    ReservationStatus.CANCELLED: set(),
    ReservationStatus.NO_SHOW: set(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)


def is_terminal(status) -> bool:
    return ReservationStatus(status) in TERMINAL_STATUSES


def get_valid_transitions(status) -> set:
    """Statuses reachable from the given status."""
    return set(VALID_TRANSITIONS[ReservationStatus(status)])


# =============================================================================
# STATE TRANSITIONS
# =============================================================================

def apply_reservation_transition(
    cursor,
    reservation_id: int,
    old_status,
    new_status,
    changed_by: str = None,
    notes: str = '',
    **fields
) -> None:
    """
    Change reservation status inside the caller's transaction.

    The UPDATE is guarded on the expected old status. Extra column values
    (check_out_time, cancellation_reason, ...) are written in the same
    statement. Records the change in history.

    Args:
        cursor: Cursor of the open write transaction
        reservation_id: Reservation ID
        old_status: Status the row is expected to have
        new_status: Target status
        changed_by: User making the change
        notes: History notes
        **fields: Additional columns to set

    Raises:
        InvalidStateError: If the transition is not allowed or the row changed
    """
    old_status = ReservationStatus(old_status)
    new_status = ReservationStatus(new_status)

    if new_status not in VALID_TRANSITIONS[old_status]:
        raise InvalidStateError(
            f"Reservation {reservation_id} cannot change from {old_status.value} to {new_status.value}",
            current_state=old_status.value
        )

    assignments = ['status = ?', 'updated_at = CURRENT_TIMESTAMP']
    params = [new_status.value]
    for column, value in fields.items():
        assignments.append(f'{column} = ?')
        params.append(value)
    params.extend([reservation_id, old_status.value])

    cursor.execute(f'''
        UPDATE equipment_reservations
        SET {", ".join(assignments)}
        WHERE id = ? AND status = ?
    ''', params)

    if cursor.rowcount != 1:
        raise InvalidStateError(
            f"Reservation {reservation_id} is no longer {old_status.value}",
            current_state=None
        )

    record_reservation_history(cursor, reservation_id, old_status.value, new_status.value,
                               changed_by, notes)


def record_reservation_history(cursor, reservation_id: int, old_status, new_status: str,
                               changed_by: str = None, notes: str = '') -> None:
    """Insert a reservation status history row."""
    cursor.execute('''
        INSERT INTO reservation_status_history
        (reservation_id, old_status, new_status, changed_by, notes)
        VALUES (?, ?, ?, ?, ?)
    ''', (reservation_id, old_status, new_status, changed_by, notes))


def get_status_history(reservation_id: int) -> list:
    """
    Get state change history for reservation.

    Args:
        reservation_id: Reservation ID

    Returns:
        list: History entries, newest first
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM reservation_status_history
        WHERE reservation_id = ?
        ORDER BY id DESC
    ''', (reservation_id,))
    return [dict(r) for r in cursor.fetchall()]
