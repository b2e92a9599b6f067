"""
Equipment catalog data access functions.
Handles equipment unit CRUD, the unit status state machine, and inventory summaries.
"""

import json
import logging
from enum import Enum
from typing import Optional

from database import get_db, write_transaction
from utils.datetime_helpers import get_today
from utils.exceptions import InvalidStateError, NotFoundError
from utils.messages import get_message

logger = logging.getLogger(__name__)


# =============================================================================
# TYPES AND STATUSES
# =============================================================================

class EquipmentType(str, Enum):
    """Physical machine kinds that can be reserved."""

    ROWER = 'rower'
    SKIERG = 'skierg'
    BIKE_ERG = 'bike_erg'
    WATTBIKE = 'wattbike'
    AIRBIKE = 'airbike'
    TREADMILL = 'treadmill'


class EquipmentStatus(str, Enum):
    """Unit status; a projection of reservation state plus manual service states."""

    AVAILABLE = 'available'
    RESERVED = 'reserved'
    IN_USE = 'in_use'
    MAINTENANCE = 'maintenance'
    OUT_OF_ORDER = 'out_of_order'


# Allowed unit status changes. Reserved/InUse are entered and left only through
# reservation lifecycle operations; maintenance states only manually.
UNIT_STATUS_TRANSITIONS = {
    EquipmentStatus.AVAILABLE: {
        EquipmentStatus.RESERVED,
        EquipmentStatus.MAINTENANCE,
        EquipmentStatus.OUT_OF_ORDER,
    },
    EquipmentStatus.RESERVED: {EquipmentStatus.IN_USE, EquipmentStatus.AVAILABLE},
    EquipmentStatus.IN_USE: {EquipmentStatus.AVAILABLE},
    EquipmentStatus.MAINTENANCE: {EquipmentStatus.AVAILABLE, EquipmentStatus.OUT_OF_ORDER},
    EquipmentStatus.OUT_OF_ORDER: {EquipmentStatus.AVAILABLE, EquipmentStatus.MAINTENANCE},
}

MANUAL_STATUSES = frozenset({
    EquipmentStatus.AVAILABLE,
    EquipmentStatus.MAINTENANCE,
    EquipmentStatus.OUT_OF_ORDER,
})

UPDATABLE_UNIT_FIELDS = (
    'name', 'location', 'serial_number', 'last_maintenance',
    'next_maintenance', 'specifications', 'notes',
)


def normalize_equipment_type(value) -> EquipmentType:
    """
    Coerce a type code into EquipmentType.

    Raises:
        ValueError: If the code is not a known equipment type
    """
    if isinstance(value, EquipmentType):
        return value
    try:
        return EquipmentType(str(value).strip().lower())
    except ValueError:
        raise ValueError(get_message('invalid_equipment_type', value=value)) from None


def can_transition(old_status, new_status) -> bool:
    """Check the unit status transition matrix."""
    return EquipmentStatus(new_status) in UNIT_STATUS_TRANSITIONS[EquipmentStatus(old_status)]


def apply_unit_transition(
    cursor,
    unit_id: int,
    old_status,
    new_status,
    changed_by: str = None,
    reservation_id: int = None,
    notes: str = None
) -> None:
    """
    Move a unit between statuses inside the caller's transaction.

    The UPDATE is guarded on the expected old status so a stale read cannot
    overwrite a concurrent change. Records the change in history.

    Raises:
        InvalidStateError: If the transition is not allowed or the unit
            no longer has the expected status
    """
    old_status = EquipmentStatus(old_status)
    new_status = EquipmentStatus(new_status)

    if not can_transition(old_status, new_status):
        raise InvalidStateError(
            get_message('invalid_unit_transition', unit_id=unit_id,
                        old_status=old_status.value, new_status=new_status.value),
            current_state=old_status.value
        )

    cursor.execute('''
        UPDATE equipment_units
        SET status = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ? AND status = ?
    ''', (new_status.value, unit_id, old_status.value))

    if cursor.rowcount != 1:
        raise InvalidStateError(
            get_message('invalid_unit_transition', unit_id=unit_id,
                        old_status=old_status.value, new_status=new_status.value),
            current_state=None
        )

    cursor.execute('''
        INSERT INTO equipment_status_history
        (unit_id, old_status, new_status, changed_by, reservation_id, notes)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', (unit_id, old_status.value, new_status.value, changed_by, reservation_id, notes))


# =============================================================================
# READ
# =============================================================================

def _row_to_unit(row) -> dict:
    unit = dict(row)
    try:
        unit['specifications'] = json.loads(unit.get('specifications') or '{}')
    except (TypeError, ValueError):
        unit['specifications'] = {}
    return unit


def get_equipment_unit_by_id(unit_id: int) -> Optional[dict]:
    """
    Get equipment unit by ID.

    Args:
        unit_id: Equipment unit ID

    Returns:
        Unit dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM equipment_units WHERE id = ?', (unit_id,))
    row = cursor.fetchone()
    return _row_to_unit(row) if row else None


def get_equipment_units(
    facility_id: str = None,
    equipment_type=None,
    status=None,
    active_only: bool = True
) -> list:
    """
    Get equipment units with optional filters.

    Args:
        facility_id: Filter by facility
        equipment_type: Filter by type code
        status: Filter by unit status
        active_only: If True, skip soft-deleted units

    Returns:
        List of unit dicts ordered by facility, type and id
    """
    db = get_db()
    cursor = db.cursor()

    query = 'SELECT * FROM equipment_units WHERE 1=1'
    params = []

    if facility_id:
        query += ' AND facility_id = ?'
        params.append(facility_id)

    if equipment_type:
        query += ' AND equipment_type = ?'
        params.append(normalize_equipment_type(equipment_type).value)

    if status:
        query += ' AND status = ?'
        params.append(EquipmentStatus(status).value)

    if active_only:
        query += ' AND active = 1'

    query += ' ORDER BY facility_id, equipment_type, id'

    cursor.execute(query, params)
    return [_row_to_unit(row) for row in cursor.fetchall()]


def get_unit_status_history(unit_id: int) -> list:
    """
    Get status change history for a unit.

    Returns:
        list: History entries, newest first
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM equipment_status_history
        WHERE unit_id = ?
        ORDER BY id DESC
    ''', (unit_id,))
    return [dict(r) for r in cursor.fetchall()]


def get_equipment_summary(facility_id: str) -> dict:
    """
    Count active units per type and status for a facility.

    Returns:
        dict: {
            'facility_id': str,
            'total': int,
            'by_type': {type_code: {'total': int, status_code: int, ...}}
        }
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT equipment_type, status, COUNT(*) as unit_count
        FROM equipment_units
        WHERE facility_id = ? AND active = 1
        GROUP BY equipment_type, status
    ''', (facility_id,))

    by_type = {}
    total = 0
    for row in cursor.fetchall():
        bucket = by_type.setdefault(
            row['equipment_type'],
            {'total': 0, **{s.value: 0 for s in EquipmentStatus}}
        )
        bucket[row['status']] = row['unit_count']
        bucket['total'] += row['unit_count']
        total += row['unit_count']

    return {'facility_id': facility_id, 'total': total, 'by_type': by_type}


# =============================================================================
# CREATE / UPDATE / DELETE
# =============================================================================

def create_equipment_unit(
    equipment_type,
    name: str,
    facility_id: str,
    location: str = None,
    serial_number: str = None,
    specifications: dict = None,
    last_maintenance: str = None,
    next_maintenance: str = None,
    notes: str = None
) -> int:
    """
    Create a new equipment unit in Available status.

    Args:
        equipment_type: Type code (see EquipmentType)
        name: Display name
        facility_id: Owning facility reference
        location: Free-form location inside the facility
        serial_number: Manufacturer serial (unique when set)
        specifications: Free-form specs dict
        last_maintenance: Date of last service (YYYY-MM-DD)
        next_maintenance: Date of next scheduled service (YYYY-MM-DD)
        notes: Additional notes

    Returns:
        int: New unit ID

    Raises:
        ValueError: If type, name or facility are invalid
    """
    equipment_type = normalize_equipment_type(equipment_type)
    if not name or not facility_id:
        raise ValueError("Equipment name and facility are required")

    db = get_db()
    cursor = db.cursor()

    try:
        cursor.execute('''
            INSERT INTO equipment_units
            (equipment_type, name, facility_id, location, status, serial_number,
             last_maintenance, next_maintenance, specifications, notes)
            VALUES (?, ?, ?, ?, 'available', ?, ?, ?, ?, ?)
        ''', (
            equipment_type.value, name, facility_id, location, serial_number,
            last_maintenance, next_maintenance, json.dumps(specifications or {}), notes
        ))
        unit_id = cursor.lastrowid
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info('Created equipment unit %s (%s) at %s', unit_id, equipment_type.value, facility_id)
    return unit_id


def update_equipment_unit(unit_id: int, **kwargs) -> bool:
    """
    Update descriptive fields of a unit. Status is never updated here.

    Args:
        unit_id: Equipment unit ID
        **kwargs: Fields to update (see UPDATABLE_UNIT_FIELDS)

    Returns:
        bool: True if a field was updated

    Raises:
        NotFoundError: If the unit does not exist
    """
    if not get_equipment_unit_by_id(unit_id):
        raise NotFoundError('Equipment unit', unit_id)

    updates = []
    params = []
    for field in UPDATABLE_UNIT_FIELDS:
        if field in kwargs:
            value = kwargs[field]
            if field == 'specifications':
                value = json.dumps(value or {})
            updates.append(f'{field} = ?')
            params.append(value)

    if not updates:
        return False

    updates.append('updated_at = CURRENT_TIMESTAMP')
    params.append(unit_id)

    db = get_db()
    try:
        db.execute(f'UPDATE equipment_units SET {", ".join(updates)} WHERE id = ?', params)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return True


def delete_equipment_unit(unit_id: int, deleted_by: str = None) -> bool:
    """
    Soft delete a unit (set active = 0).

    Raises:
        NotFoundError: If the unit does not exist
        InvalidStateError: If the unit is reserved or in use
    """
    with write_transaction() as cursor:
        cursor.execute('SELECT status FROM equipment_units WHERE id = ? AND active = 1', (unit_id,))
        row = cursor.fetchone()
        if not row:
            raise NotFoundError('Equipment unit', unit_id)

        if row['status'] in (EquipmentStatus.RESERVED.value, EquipmentStatus.IN_USE.value):
            raise InvalidStateError(
                get_message('unit_has_active_reservation', unit_id=unit_id),
                current_state=row['status']
            )

        cursor.execute('''
            UPDATE equipment_units
            SET active = 0, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (unit_id,))

    logger.info('Equipment unit %s deactivated by %s', unit_id, deleted_by)
    return True


def set_equipment_status(unit_id: int, new_status, changed_by: str, notes: str = None) -> dict:
    """
    Manually move a unit between Available, Maintenance and OutOfOrder.

    Reserved and InUse belong to the reservation lifecycle and cannot be set
    or left through this function.

    Args:
        unit_id: Equipment unit ID
        new_status: Target status (available, maintenance, out_of_order)
        changed_by: User making the change
        notes: Reason for the change

    Returns:
        dict: Updated unit

    Raises:
        NotFoundError: If the unit does not exist
        InvalidStateError: If the change is not a manual transition
    """
    new_status = EquipmentStatus(new_status)

    with write_transaction() as cursor:
        cursor.execute('SELECT status FROM equipment_units WHERE id = ? AND active = 1', (unit_id,))
        row = cursor.fetchone()
        if not row:
            raise NotFoundError('Equipment unit', unit_id)

        old_status = EquipmentStatus(row['status'])
        if old_status not in MANUAL_STATUSES or new_status not in MANUAL_STATUSES:
            raise InvalidStateError(
                get_message('invalid_unit_transition', unit_id=unit_id,
                            old_status=old_status.value, new_status=new_status.value),
                current_state=old_status.value
            )

        if old_status != new_status:
            apply_unit_transition(cursor, unit_id, old_status, new_status,
                                  changed_by=changed_by, notes=notes)

            if new_status == EquipmentStatus.MAINTENANCE:
                cursor.execute(
                    'UPDATE equipment_units SET last_maintenance = ? WHERE id = ?',
                    (get_today().isoformat(), unit_id)
                )

    logger.info('Equipment unit %s status %s -> %s by %s',
                unit_id, old_status.value, new_status.value, changed_by)
    return get_equipment_unit_by_id(unit_id)
