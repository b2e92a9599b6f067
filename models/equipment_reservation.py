"""
Bulk reservation coordinator.
Owns every reservation write and the unit status changes that go with it.
Each state-changing function runs in one BEGIN IMMEDIATE transaction, so a
booking either fully commits or leaves the ledger and unit statuses untouched.
"""

import logging
import sqlite3
from datetime import timedelta

from flask import current_app

from database import write_transaction
from models.equipment import EquipmentStatus, apply_unit_transition
from models.equipment_availability import check_availability
from models.facility_config import evaluate_window_rules, require_facility_config
from models.reservation_ledger import (
    find_overlapping_by_type,
    find_overlapping_reservations,
    get_reservation_by_id,
    peak_concurrent_count,
    to_conflict_entry,
)
from models.reservation_state import (
    ReservationStatus,
    apply_reservation_transition,
    record_reservation_history,
)
from models.time_window import TimeWindow, as_window
from utils.datetime_helpers import get_now, parse_datetime, to_db_datetime
from utils.exceptions import (
    BookingRuleViolationError,
    CapacityExceededError,
    InvalidStateError,
    NotFoundError,
    ReservationConflictError,
)
from utils.messages import get_message
from utils.validators import normalize_requirements, sanitize_input, validate_unit_ids

logger = logging.getLogger(__name__)

HELD_UNIT_STATUSES = (EquipmentStatus.RESERVED.value, EquipmentStatus.IN_USE.value)


# =============================================================================
# FEASIBILITY
# =============================================================================

def check_bulk_availability(requirements, facility_id: str, window, now=None) -> dict:
    """
    Check several equipment requirements for one facility and window.

    Requirements naming the same type are merged, keeping first-seen order.

    Args:
        requirements: [{'equipment_type', 'count'}] or {type: count}
        facility_id: Facility reference
        window: TimeWindow or (start, end)
        now: Reference time for advance-booking rules

    Returns:
        dict: {
            'can_accommodate': bool,
            'per_type': {type: {'requested', 'available', 'total_count',
                                'available_units', 'conflicts',
                                'constraint_violations'}},
            'shortfalls': [{'equipment_type', 'requested', 'available', 'shortfall'}],
            'constraint_violations': [{'equipment_type', 'rule', 'message'}]
        }

    Raises:
        ConfigurationMissingError: If any type has no config at the facility
    """
    window = as_window(window)

    merged = {}
    for requirement in normalize_requirements(requirements):
        merged[requirement['equipment_type']] = (
            merged.get(requirement['equipment_type'], 0) + requirement['count']
        )

    per_type = {}
    shortfalls = []
    violations = []

    for equipment_type, requested in merged.items():
        result = check_availability(equipment_type, facility_id, window,
                                    required_count=requested, now=now)
        per_type[equipment_type] = {
            'requested': requested,
            'available': result['available_count'],
            'total_count': result['total_count'],
            'available_units': result['available_units'],
            'conflicts': result['conflicts'],
            'constraint_violations': result['constraint_violations'],
        }

        if result['available_count'] < requested:
            shortfalls.append({
                'equipment_type': equipment_type,
                'requested': requested,
                'available': result['available_count'],
                'shortfall': requested - result['available_count'],
            })

        for violation in result['constraint_violations']:
            violations.append({'equipment_type': equipment_type, **violation})

    return {
        'can_accommodate': not shortfalls and not violations,
        'per_type': per_type,
        'shortfalls': shortfalls,
        'constraint_violations': violations,
    }


# =============================================================================
# RESERVE
# =============================================================================

def _player_for(player_assignments, unit_id, index):
    if not player_assignments:
        return None
    if isinstance(player_assignments, dict):
        return player_assignments.get(unit_id)
    if index < len(player_assignments):
        return player_assignments[index]
    return None


def _validate_capacity(cursor, units: list, window: TimeWindow) -> None:
    """Enforce per (facility, type) capacity and booking rules for the units being booked."""
    groups = {}
    for unit in units:
        groups.setdefault((unit['facility_id'], unit['equipment_type']), []).append(unit)

    violations = []
    for (facility_id, equipment_type), group in groups.items():
        config = require_facility_config(facility_id, equipment_type)

        if len(group) > config['total_count']:
            raise CapacityExceededError(equipment_type, facility_id, len(group), config['total_count'])

        existing = find_overlapping_by_type(facility_id, equipment_type, window, cursor=cursor)
        remaining = config['total_count'] - peak_concurrent_count(existing, window)
        if len(group) > remaining:
            raise ReservationConflictError(
                [unit['id'] for unit in group],
                [to_conflict_entry(r) for r in existing],
                message=get_message(
                    'capacity_exceeded', equipment_type=equipment_type, facility_id=facility_id,
                    requested=len(group), capacity=max(0, remaining)
                )
            )

        for violation in evaluate_window_rules(config, window):
            violations.append({'equipment_type': equipment_type, **violation})

    if violations:
        raise BookingRuleViolationError(violations)


def reserve_equipment(
    unit_ids: list,
    session_id: str,
    window,
    reserved_by: str,
    player_assignments=None,
    notes: str = None
) -> list:
    """
    Reserve specific units for one session, all or nothing.

    Inside one write transaction every unit is re-validated: it must exist,
    be Available and have no overlapping active reservation. If any unit
    fails, nothing is written and ReservationConflictError names every
    failing unit. On success one active reservation is created per unit and
    each unit moves to Reserved.

    Not safe to retry blindly after an ambiguous failure; re-run
    check_bulk_availability first.

    Args:
        unit_ids: Equipment unit IDs (no duplicates)
        session_id: Training session reference
        window: TimeWindow or (start, end)
        reserved_by: User making the booking
        player_assignments: {unit_id: player_id} or a list aligned with unit_ids
        notes: Notes stored on every reservation

    Returns:
        list: Created reservation dicts, in unit_ids order

    Raises:
        NotFoundError: If a unit does not exist
        ReservationConflictError: If any unit is not free for the window
        CapacityExceededError: If more units of a type are requested than configured
        ConfigurationMissingError: If a unit's (facility, type) has no config
        BookingRuleViolationError: If the window breaks a booking rule
        DatabaseBusyError: If another writer holds the lock past the busy timeout
    """
    unit_ids = validate_unit_ids(unit_ids)
    window = as_window(window)
    notes = sanitize_input(notes, 500) or None
    window_from, window_until = window.to_db()
    created_ids = []

    try:
        with write_transaction() as cursor:
            placeholders = ','.join('?' * len(unit_ids))
            cursor.execute(f'''
                SELECT * FROM equipment_units
                WHERE id IN ({placeholders}) AND active = 1
            ''', unit_ids)
            units_by_id = {row['id']: dict(row) for row in cursor.fetchall()}

            for unit_id in unit_ids:
                if unit_id not in units_by_id:
                    raise NotFoundError('Equipment unit', unit_id)

            overlapping = find_overlapping_reservations(unit_ids, window, cursor=cursor)
            overlapping_ids = {r['equipment_unit_id'] for r in overlapping}

            failed = [
                unit_id for unit_id in unit_ids
                if units_by_id[unit_id]['status'] != EquipmentStatus.AVAILABLE.value
                or unit_id in overlapping_ids
            ]
            if failed:
                conflicts = [to_conflict_entry(r) for r in overlapping]
                conflicts.extend(
                    {'equipment_unit_id': unit_id, 'unit_status': units_by_id[unit_id]['status']}
                    for unit_id in failed
                    if units_by_id[unit_id]['status'] != EquipmentStatus.AVAILABLE.value
                )
                raise ReservationConflictError(failed, conflicts)

            units = [units_by_id[unit_id] for unit_id in unit_ids]
            _validate_capacity(cursor, units, window)

            for index, unit_id in enumerate(unit_ids):
                try:
                    cursor.execute('''
                        INSERT INTO equipment_reservations
                        (equipment_unit_id, session_id, player_id, reserved_from,
                         reserved_until, status, reserved_by, notes)
                        VALUES (?, ?, ?, ?, ?, 'active', ?, ?)
                    ''', (
                        unit_id, session_id, _player_for(player_assignments, unit_id, index),
                        window_from, window_until, reserved_by, notes
                    ))
                except sqlite3.IntegrityError as e:
                    raise ReservationConflictError([unit_id]) from e

                reservation_id = cursor.lastrowid
                created_ids.append(reservation_id)

                record_reservation_history(cursor, reservation_id, None,
                                           ReservationStatus.ACTIVE.value, reserved_by,
                                           get_message('note_reserved', session_id=session_id))
                apply_unit_transition(
                    cursor, unit_id, EquipmentStatus.AVAILABLE, EquipmentStatus.RESERVED,
                    changed_by=reserved_by, reservation_id=reservation_id,
                    notes=get_message('note_reserved', session_id=session_id)
                )
    except (ReservationConflictError, CapacityExceededError) as e:
        logger.warning('Reservation rejected for session %s: %s', session_id, e)
        raise

    logger.info('Created %d equipment reservation(s) for session %s by %s',
                len(created_ids), session_id, reserved_by)

    return [get_reservation_by_id(reservation_id) for reservation_id in created_ids]


# =============================================================================
# LIFECYCLE
# =============================================================================

def _load_reservation(cursor, reservation_id: int) -> dict:
    reservation = get_reservation_by_id(reservation_id, cursor=cursor)
    if not reservation:
        raise NotFoundError('Reservation', reservation_id)
    return reservation


def _release_unit(cursor, reservation: dict, changed_by: str, notes: str) -> None:
    """Return the reservation's unit to Available if the reservation was holding it."""
    if reservation['unit_status'] in HELD_UNIT_STATUSES:
        apply_unit_transition(
            cursor, reservation['equipment_unit_id'], reservation['unit_status'],
            EquipmentStatus.AVAILABLE, changed_by=changed_by,
            reservation_id=reservation['id'], notes=notes
        )
    else:
        logger.warning('Unit %s was %s when reservation %s was released',
                       reservation['equipment_unit_id'], reservation['unit_status'], reservation['id'])


def check_in_reservation(reservation_id: int, user_id: str, timestamp=None, notes: str = None) -> dict:
    """
    Check in a reservation; its unit moves to InUse.

    Allowed only while the reservation is active, not yet checked in, and
    the check-in time falls in [reserved_from - buffer, reserved_until].

    Args:
        reservation_id: Reservation ID
        user_id: User performing the check-in
        timestamp: Check-in time (default: now)
        notes: Replaces the reservation notes when given

    Returns:
        dict: Updated reservation

    Raises:
        NotFoundError: If the reservation does not exist
        InvalidStateError: If check-in is not allowed now
    """
    check_in_at = parse_datetime(timestamp) if timestamp else get_now()
    buffer = timedelta(minutes=current_app.config.get('CHECK_IN_BUFFER_MINUTES', 15))

    with write_transaction() as cursor:
        reservation = _load_reservation(cursor, reservation_id)
        window = TimeWindow.from_row(reservation)

        reason = None
        if reservation['status'] != ReservationStatus.ACTIVE.value:
            reason = f"status is {reservation['status']}"
        elif reservation['check_in_time']:
            reason = 'already checked in'
        elif not (window.start - buffer <= check_in_at <= window.end):
            reason = 'outside the check-in window'

        if reason:
            raise InvalidStateError(
                get_message('cannot_check_in', reservation_id=reservation_id, reason=reason),
                current_state=reservation['status']
            )

        cursor.execute('''
            UPDATE equipment_reservations
            SET check_in_time = ?, checked_in_by = ?, notes = COALESCE(?, notes),
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = 'active' AND check_in_time IS NULL
        ''', (to_db_datetime(check_in_at), user_id, notes, reservation_id))

        apply_unit_transition(
            cursor, reservation['equipment_unit_id'], reservation['unit_status'],
            EquipmentStatus.IN_USE, changed_by=user_id, reservation_id=reservation_id,
            notes=get_message('note_checked_in')
        )

    logger.info('Equipment checked in: reservation %s by %s at %s', reservation_id, user_id, check_in_at)
    return get_reservation_by_id(reservation_id)


def check_out_reservation(reservation_id: int, user_id: str, timestamp=None, notes: str = None) -> dict:
    """
    Check out a reservation; it becomes Completed and its unit Available.

    Raises:
        NotFoundError: If the reservation does not exist
        InvalidStateError: If it was never checked in or is already checked out
    """
    check_out_at = parse_datetime(timestamp) if timestamp else get_now()

    with write_transaction() as cursor:
        reservation = _load_reservation(cursor, reservation_id)

        reason = None
        if not reservation['check_in_time']:
            reason = 'not checked in'
        elif reservation['check_out_time']:
            reason = 'already checked out'
        elif reservation['status'] != ReservationStatus.ACTIVE.value:
            reason = f"status is {reservation['status']}"

        if reason:
            raise InvalidStateError(
                get_message('cannot_check_out', reservation_id=reservation_id, reason=reason),
                current_state=reservation['status']
            )

        fields = {'check_out_time': to_db_datetime(check_out_at), 'checked_out_by': user_id}
        if notes is not None:
            fields['notes'] = notes

        apply_reservation_transition(
            cursor, reservation_id, ReservationStatus.ACTIVE, ReservationStatus.COMPLETED,
            changed_by=user_id, notes=get_message('note_checked_out'), **fields
        )
        _release_unit(cursor, reservation, user_id, get_message('note_checked_out'))

    logger.info('Equipment checked out: reservation %s by %s at %s', reservation_id, user_id, check_out_at)
    return get_reservation_by_id(reservation_id)


def cancel_reservation(reservation_id: int, reason: str = None, cancelled_by: str = None) -> dict:
    """
    Cancel an active reservation; its unit becomes Available.

    Cancelling a reservation that is not active is an error, never a no-op.

    Raises:
        NotFoundError: If the reservation does not exist
        InvalidStateError: If the reservation is not active
    """
    reason = sanitize_input(reason, 500) or None

    with write_transaction() as cursor:
        reservation = _load_reservation(cursor, reservation_id)

        if reservation['status'] != ReservationStatus.ACTIVE.value:
            raise InvalidStateError(
                get_message('cannot_cancel', status=reservation['status']),
                current_state=reservation['status']
            )

        note = get_message('note_cancelled', reason=reason or 'No reason provided')
        apply_reservation_transition(
            cursor, reservation_id, ReservationStatus.ACTIVE, ReservationStatus.CANCELLED,
            changed_by=cancelled_by, notes=note, cancellation_reason=reason
        )
        _release_unit(cursor, reservation, cancelled_by, note)

    logger.info('Reservation cancelled: %s by %s (%s)', reservation_id, cancelled_by, reason)
    return get_reservation_by_id(reservation_id)


def complete_reservation(reservation_id: int, completed_by: str, notes: str = None) -> dict:
    """
    Explicitly complete an active reservation; its unit becomes Available.

    A checked-in reservation gets its check-out time set to now.

    Raises:
        NotFoundError: If the reservation does not exist
        InvalidStateError: If the reservation is not active
    """
    with write_transaction() as cursor:
        reservation = _load_reservation(cursor, reservation_id)

        if reservation['status'] != ReservationStatus.ACTIVE.value:
            raise InvalidStateError(
                get_message('cannot_complete', status=reservation['status']),
                current_state=reservation['status']
            )

        fields = {}
        if reservation['check_in_time'] and not reservation['check_out_time']:
            fields['check_out_time'] = to_db_datetime(get_now())
            fields['checked_out_by'] = completed_by
        if notes is not None:
            fields['notes'] = notes

        apply_reservation_transition(
            cursor, reservation_id, ReservationStatus.ACTIVE, ReservationStatus.COMPLETED,
            changed_by=completed_by, notes=get_message('note_completed'), **fields
        )
        _release_unit(cursor, reservation, completed_by, get_message('note_completed'))

    logger.info('Reservation completed: %s by %s', reservation_id, completed_by)
    return get_reservation_by_id(reservation_id)


def _mark_no_show(cursor, reservation: dict, marked_by: str) -> None:
    reason = None
    if reservation['status'] != ReservationStatus.ACTIVE.value:
        reason = f"status is {reservation['status']}"
    elif reservation['check_in_time']:
        reason = 'already checked in'

    if reason:
        raise InvalidStateError(
            get_message('cannot_mark_no_show', reservation_id=reservation['id'], reason=reason),
            current_state=reservation['status']
        )

    apply_reservation_transition(
        cursor, reservation['id'], ReservationStatus.ACTIVE, ReservationStatus.NO_SHOW,
        changed_by=marked_by, notes=get_message('note_no_show')
    )
    _release_unit(cursor, reservation, marked_by, get_message('note_no_show'))


def mark_no_show(reservation_id: int, marked_by: str) -> dict:
    """
    Mark an active, never checked-in reservation as NoShow; its unit becomes Available.

    Raises:
        NotFoundError: If the reservation does not exist
        InvalidStateError: If the reservation is not active or was checked in
    """
    with write_transaction() as cursor:
        reservation = _load_reservation(cursor, reservation_id)
        _mark_no_show(cursor, reservation, marked_by)

    logger.info('Reservation marked as no-show: %s by %s', reservation_id, marked_by)
    return get_reservation_by_id(reservation_id)


def release_overdue_no_shows(now=None, released_by: str = 'system') -> list:
    """
    Mark every active reservation whose window ended without a check-in as NoShow.

    Args:
        now: Reference time (default: get_now())
        released_by: Recorded as the user making the change

    Returns:
        list: IDs of reservations marked as no-show
    """
    now = parse_datetime(now) if now else get_now()
    released = []

    with write_transaction() as cursor:
        cursor.execute('''
            SELECT id FROM equipment_reservations
            WHERE status = 'active'
              AND check_in_time IS NULL
              AND reserved_until <= ?
            ORDER BY id
        ''', (to_db_datetime(now),))
        overdue_ids = [row['id'] for row in cursor.fetchall()]

        for reservation_id in overdue_ids:
            _mark_no_show(cursor, _load_reservation(cursor, reservation_id), released_by)
            released.append(reservation_id)

    if released:
        logger.info('Released %d overdue reservation(s) as no-show', len(released))
    return released
