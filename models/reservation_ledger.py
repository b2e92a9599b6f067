"""
Reservation ledger queries.
The ledger is the single source of truth for booked intervals per unit;
units never hold a reservation collection, callers query by unit id here.
"""

import logging
from typing import Optional

from database import get_db
from models.equipment import normalize_equipment_type
from models.reservation_state import ReservationStatus
from models.time_window import TimeWindow
from utils.datetime_helpers import get_now, parse_datetime, to_db_datetime

logger = logging.getLogger(__name__)

RESERVATION_SELECT = '''
    SELECT r.*,
           u.name as equipment_name,
           u.equipment_type,
           u.facility_id,
           u.status as unit_status
    FROM equipment_reservations r
    JOIN equipment_units u ON r.equipment_unit_id = u.id
'''


def to_conflict_entry(row) -> dict:
    return {
        'reservation_id': row['id'],
        'equipment_unit_id': row['equipment_unit_id'],
        'equipment_name': row['equipment_name'],
        'conflict_start': row['reserved_from'],
        'conflict_end': row['reserved_until'],
        'session_id': row['session_id'],
        'player_id': row['player_id'],
        'reserved_by': row['reserved_by'],
    }


# =============================================================================
# SINGLE RESERVATION
# =============================================================================

def get_reservation_by_id(reservation_id: int, cursor=None) -> Optional[dict]:
    """
    Get reservation by ID with its unit's name, type and facility.

    Args:
        reservation_id: Reservation ID
        cursor: Optional cursor of an open transaction

    Returns:
        dict or None
    """
    cur = cursor or get_db().cursor()
    cur.execute(RESERVATION_SELECT + ' WHERE r.id = ?', (reservation_id,))
    row = cur.fetchone()
    return dict(row) if row else None


# =============================================================================
# OVERLAP QUERIES
# =============================================================================

def find_overlapping_reservations(
    unit_ids: list,
    window: TimeWindow,
    exclude_reservation_id: int = None,
    cursor=None
) -> list:
    """
    Find active reservations on the given units whose window overlaps.

    Args:
        unit_ids: Equipment unit IDs
        window: Window to test
        exclude_reservation_id: Reservation to ignore
        cursor: Optional cursor of an open transaction

    Returns:
        list: Reservation dicts ordered by unit then start
    """
    if not unit_ids:
        return []

    cur = cursor or get_db().cursor()
    window_from, window_until = window.to_db()
    placeholders = ','.join('?' * len(unit_ids))

    query = RESERVATION_SELECT + f'''
        WHERE r.equipment_unit_id IN ({placeholders})
          AND r.status = ?
          AND r.reserved_from < ?
          AND r.reserved_until > ?
    '''
    params = list(unit_ids) + [ReservationStatus.ACTIVE.value, window_until, window_from]

    if exclude_reservation_id:
        query += ' AND r.id != ?'
        params.append(exclude_reservation_id)

    query += ' ORDER BY r.equipment_unit_id, r.reserved_from'

    cur.execute(query, params)
    return [dict(row) for row in cur.fetchall()]


def find_overlapping_by_type(
    facility_id: str,
    equipment_type,
    window: TimeWindow,
    cursor=None
) -> list:
    """
    Find active reservations on any unit of a (facility, type) overlapping a window.

    Includes units in any status, including soft-deleted ones, so the
    result reflects every claim counted against the facility capacity.

    Returns:
        list: Reservation dicts ordered by start
    """
    cur = cursor or get_db().cursor()
    window_from, window_until = window.to_db()

    cur.execute(RESERVATION_SELECT + '''
        WHERE u.facility_id = ?
          AND u.equipment_type = ?
          AND r.status = ?
          AND r.reserved_from < ?
          AND r.reserved_until > ?
        ORDER BY r.reserved_from, r.equipment_unit_id
    ''', (
        facility_id, normalize_equipment_type(equipment_type).value,
        ReservationStatus.ACTIVE.value, window_until, window_from
    ))
    return [dict(row) for row in cur.fetchall()]


def peak_concurrent_count(reservations: list, window: TimeWindow) -> int:
    """
    Highest number of the given reservations covering one instant of the window.

    Sweep over start/end events clipped to the window. Ends sort before starts
    at the same instant, so touching reservations are not counted together.
    """
    events = []
    for reservation in reservations:
        res_window = TimeWindow.from_row(reservation)
        if not res_window.overlaps(window):
            continue
        events.append((max(res_window.start, window.start), 1))
        events.append((min(res_window.end, window.end), -1))

    events.sort(key=lambda e: (e[0], e[1]))

    peak = current = 0
    for _, delta in events:
        current += delta
        peak = max(peak, current)
    return peak


def check_conflicts(unit_id: int, window: TimeWindow, exclude_reservation_id: int = None) -> dict:
    """
    Check one unit for overlapping active reservations.

    Returns:
        dict: {'has_conflicts': bool, 'conflicts': [conflict entries]}
    """
    rows = find_overlapping_reservations([unit_id], window, exclude_reservation_id)
    conflicts = [to_conflict_entry(row) for row in rows]

    logger.debug('Conflict check for unit %s %s: %d conflict(s)',
                 unit_id, window.to_dict(), len(conflicts))

    return {'has_conflicts': bool(conflicts), 'conflicts': conflicts}


# =============================================================================
# LOOKUPS
# =============================================================================

def get_reservations_by_session(session_id: str) -> list:
    """Get every reservation of a session, ordered by start."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute(RESERVATION_SELECT + '''
        WHERE r.session_id = ?
        ORDER BY r.reserved_from, r.id
    ''', (session_id,))
    return [dict(row) for row in cursor.fetchall()]


def get_reservations_by_player(player_id: str, start=None, end=None) -> list:
    """
    Get a player's reservations, newest first.

    Args:
        player_id: Player reference
        start: Only reservations starting at or after this datetime
        end: Only reservations ending at or before this datetime
    """
    db = get_db()
    cursor = db.cursor()

    query = RESERVATION_SELECT + ' WHERE r.player_id = ?'
    params = [player_id]

    if start:
        query += ' AND r.reserved_from >= ?'
        params.append(to_db_datetime(parse_datetime(start)))

    if end:
        query += ' AND r.reserved_until <= ?'
        params.append(to_db_datetime(parse_datetime(end)))

    query += ' ORDER BY r.reserved_from DESC'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def get_active_reservations(facility_id: str = None, now=None) -> list:
    """
    Get active reservations that have not ended yet.

    Args:
        facility_id: Optional facility filter
        now: Reference time (default: get_now())
    """
    now = parse_datetime(now) if now else get_now()
    db = get_db()
    cursor = db.cursor()

    query = RESERVATION_SELECT + ' WHERE r.status = ? AND r.reserved_until > ?'
    params = [ReservationStatus.ACTIVE.value, to_db_datetime(now)]

    if facility_id:
        query += ' AND u.facility_id = ?'
        params.append(facility_id)

    query += ' ORDER BY r.reserved_from, r.id'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def get_reservations_covering(facility_id: str, instant) -> list:
    """Active reservations of a facility whose window contains the instant."""
    instant_str = to_db_datetime(parse_datetime(instant))
    db = get_db()
    cursor = db.cursor()
    cursor.execute(RESERVATION_SELECT + '''
        WHERE u.facility_id = ?
          AND r.status = ?
          AND r.reserved_from <= ?
          AND r.reserved_until > ?
        ORDER BY u.equipment_type, r.equipment_unit_id
    ''', (facility_id, ReservationStatus.ACTIVE.value, instant_str, instant_str))
    return [dict(row) for row in cursor.fetchall()]
