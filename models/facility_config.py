"""
Facility equipment configuration.
Per (facility, equipment type) capacity, operating hours and booking-window rules.
"""

import json
import sqlite3
from datetime import timedelta
from typing import Optional

from database import get_db
from models.equipment import normalize_equipment_type
from models.time_window import TimeWindow
from utils.datetime_helpers import get_now, parse_time_of_day
from utils.exceptions import ConfigurationMissingError, NotFoundError
from utils.messages import get_message
from utils.validators import validate_operating_hours

WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

UPDATABLE_CONFIG_FIELDS = (
    'total_count', 'operating_hours', 'max_session_minutes',
    'min_advance_minutes', 'max_advance_days', 'restrictions', 'notes',
)

JSON_CONFIG_FIELDS = ('operating_hours', 'restrictions')


def _row_to_config(row) -> dict:
    config = dict(row)
    for field in JSON_CONFIG_FIELDS:
        raw = config.get(field)
        config[field] = json.loads(raw) if raw else None
    return config


# =============================================================================
# READ
# =============================================================================

def get_facility_config(facility_id: str, equipment_type) -> Optional[dict]:
    """
    Get the config for a (facility, type) pair.

    Returns:
        Config dict with operating_hours/restrictions decoded, or None
    """
    equipment_type = normalize_equipment_type(equipment_type)
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM facility_equipment_configs
        WHERE facility_id = ? AND equipment_type = ?
    ''', (facility_id, equipment_type.value))
    row = cursor.fetchone()
    return _row_to_config(row) if row else None


def require_facility_config(facility_id: str, equipment_type) -> dict:
    """
    Get the config for a (facility, type) pair or fail.

    Raises:
        ConfigurationMissingError: If no config exists
    """
    config = get_facility_config(facility_id, equipment_type)
    if config is None:
        raise ConfigurationMissingError(normalize_equipment_type(equipment_type).value, facility_id)
    return config


def get_facility_configs(facility_id: str) -> list:
    """Get every config of a facility, ordered by type."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM facility_equipment_configs
        WHERE facility_id = ?
        ORDER BY equipment_type
    ''', (facility_id,))
    return [_row_to_config(row) for row in cursor.fetchall()]


# =============================================================================
# CREATE / UPDATE / DELETE
# =============================================================================

def _validate_config_values(values: dict) -> None:
    total_count = values.get('total_count')
    if total_count is not None and (not isinstance(total_count, int) or total_count < 0):
        raise ValueError("total_count must be a non-negative integer")

    for field in ('max_session_minutes', 'min_advance_minutes', 'max_advance_days'):
        value = values.get(field)
        if value is not None and (not isinstance(value, int) or value < 0):
            raise ValueError(f"{field} must be a non-negative integer")

    if values.get('operating_hours') is not None:
        validate_operating_hours(values['operating_hours'])


def create_facility_config(
    facility_id: str,
    equipment_type,
    total_count: int,
    operating_hours: dict = None,
    max_session_minutes: int = None,
    min_advance_minutes: int = None,
    max_advance_days: int = None,
    restrictions: dict = None,
    notes: str = None
) -> int:
    """
    Create the config for a (facility, type) pair.

    Args:
        facility_id: Facility reference
        equipment_type: Type code
        total_count: Max concurrently reserved units of this type
        operating_hours: {weekday: ['HH:MM', 'HH:MM'] | None}; None = no limit,
            a missing or null weekday = closed that day
        max_session_minutes: Longest bookable window (None = no limit)
        min_advance_minutes: Minimum lead time before the window starts
        max_advance_days: Furthest ahead a window may start
        restrictions: Free-form restrictions passed through to callers
        notes: Additional notes

    Returns:
        int: Config ID

    Raises:
        ValueError: If values are invalid or the pair already has a config
    """
    equipment_type = normalize_equipment_type(equipment_type)
    _validate_config_values({
        'total_count': total_count,
        'operating_hours': operating_hours,
        'max_session_minutes': max_session_minutes,
        'min_advance_minutes': min_advance_minutes,
        'max_advance_days': max_advance_days,
    })

    db = get_db()
    cursor = db.cursor()

    try:
        cursor.execute('''
            INSERT INTO facility_equipment_configs
            (facility_id, equipment_type, total_count, operating_hours,
             max_session_minutes, min_advance_minutes, max_advance_days,
             restrictions, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            facility_id, equipment_type.value, total_count,
            json.dumps(operating_hours) if operating_hours is not None else None,
            max_session_minutes, min_advance_minutes, max_advance_days,
            json.dumps(restrictions or {}), notes
        ))
        config_id = cursor.lastrowid
        db.commit()
        return config_id
    except sqlite3.IntegrityError:
        db.rollback()
        raise ValueError(
            f"Configuration already exists for {equipment_type.value} at facility {facility_id}"
        ) from None
    except Exception:
        db.rollback()
        raise


def update_facility_config(facility_id: str, equipment_type, **kwargs) -> dict:
    """
    Update a (facility, type) config.

    Returns:
        dict: Updated config

    Raises:
        ConfigurationMissingError: If no config exists
    """
    config = require_facility_config(facility_id, equipment_type)
    _validate_config_values(kwargs)

    updates = []
    params = []
    for field in UPDATABLE_CONFIG_FIELDS:
        if field in kwargs:
            value = kwargs[field]
            if field in JSON_CONFIG_FIELDS and value is not None:
                value = json.dumps(value)
            updates.append(f'{field} = ?')
            params.append(value)

    if not updates:
        return config

    updates.append('updated_at = CURRENT_TIMESTAMP')
    params.append(config['id'])

    db = get_db()
    try:
        db.execute(f'UPDATE facility_equipment_configs SET {", ".join(updates)} WHERE id = ?', params)
        db.commit()
    except Exception:
        db.rollback()
        raise

    return get_facility_config(facility_id, equipment_type)


def delete_facility_config(facility_id: str, equipment_type) -> bool:
    """
    Delete a (facility, type) config.

    Raises:
        NotFoundError: If no config exists
    """
    equipment_type = normalize_equipment_type(equipment_type)
    db = get_db()
    try:
        cursor = db.execute('''
            DELETE FROM facility_equipment_configs
            WHERE facility_id = ? AND equipment_type = ?
        ''', (facility_id, equipment_type.value))
        db.commit()
    except Exception:
        db.rollback()
        raise

    if cursor.rowcount == 0:
        raise NotFoundError('Facility equipment config', f'{facility_id}/{equipment_type.value}')
    return True


# =============================================================================
# WINDOW RULES
# =============================================================================

def evaluate_window_rules(config: dict, window: TimeWindow, now=None) -> list:
    """
    Check a window against the config's booking rules.

    Rules: operating hours for the weekday, max session duration, and
    advance-booking bounds relative to now.

    Args:
        config: Facility config dict
        window: Requested window
        now: Reference time for advance-booking rules (default: get_now())

    Returns:
        list: Violations as {'rule': str, 'message': str}; empty if the
        window is bookable
    """
    violations = []
    equipment_type = config['equipment_type']

    operating_hours = config.get('operating_hours')
    if operating_hours is not None:
        weekday = WEEKDAY_NAMES[window.start.weekday()]
        hours = operating_hours.get(weekday)
        if window.start.date() != window.end.date():
            violations.append({
                'rule': 'operating_hours',
                'message': get_message('spans_multiple_days')
            })
        elif not hours:
            violations.append({
                'rule': 'operating_hours',
                'message': get_message('closed_on_day', equipment_type=equipment_type, weekday=weekday)
            })
        else:
            opens = parse_time_of_day(hours[0])
            closes = parse_time_of_day(hours[1])
            if window.start.time() < opens or window.end.time() > closes:
                violations.append({
                    'rule': 'operating_hours',
                    'message': get_message('outside_operating_hours',
                                           equipment_type=equipment_type, weekday=weekday)
                })

    max_minutes = config.get('max_session_minutes')
    if max_minutes is not None and window.duration_minutes > max_minutes:
        violations.append({
            'rule': 'max_session_duration',
            'message': get_message('exceeds_max_duration', minutes=window.duration_minutes,
                                   max_minutes=max_minutes, equipment_type=equipment_type)
        })

    min_advance = config.get('min_advance_minutes')
    max_advance_days = config.get('max_advance_days')
    if min_advance is not None or max_advance_days is not None:
        now = now or get_now()
        if min_advance is not None and window.start < now + timedelta(minutes=min_advance):
            violations.append({
                'rule': 'min_advance',
                'message': get_message('too_late_to_book', equipment_type=equipment_type,
                                       minutes=min_advance)
            })
        if max_advance_days is not None and window.start > now + timedelta(days=max_advance_days):
            violations.append({
                'rule': 'max_advance',
                'message': get_message('too_far_ahead', equipment_type=equipment_type,
                                       days=max_advance_days)
            })

    return violations
