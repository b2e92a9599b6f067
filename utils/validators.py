"""
Input validation helper functions.
Validates scheduling inputs before they reach the engine.
"""

import re

from utils.messages import get_message

TIME_OF_DAY_PATTERN = re.compile(r'^([01][0-9]|2[0-3]):[0-5][0-9]$')


def validate_time_of_day(value: str) -> bool:
    """
    Validate 'HH:MM' 24-hour format.

    Args:
        value: Time string to validate

    Returns:
        True if valid format
    """
    if not value or not isinstance(value, str):
        return False
    return bool(TIME_OF_DAY_PATTERN.match(value))


def validate_operating_hours(operating_hours: dict) -> None:
    """
    Validate an operating-hours mapping.

    Expected shape: {weekday: ['HH:MM', 'HH:MM'] | None}.

    Raises:
        ValueError: If the mapping is malformed
    """
    if not isinstance(operating_hours, dict):
        raise ValueError("operating_hours must be a mapping of weekday to [open, close]")

    for weekday, hours in operating_hours.items():
        if hours is None:
            continue
        if not isinstance(hours, (list, tuple)) or len(hours) != 2:
            raise ValueError(f"operating_hours[{weekday}] must be [open, close]")
        opens, closes = hours
        for value in (opens, closes):
            if not validate_time_of_day(value):
                raise ValueError(get_message('invalid_time', value=value))
        if opens >= closes:
            raise ValueError(f"operating_hours[{weekday}] must open before it closes")


def normalize_requirements(requirements) -> list:
    """
    Normalize equipment requirements into [{'equipment_type', 'count'}].

    Accepts a list of dicts with 'equipment_type' (or 'type') and 'count',
    or a mapping of type to count. Input order is preserved.

    Raises:
        ValueError: If a type is unknown or a count is not a positive integer
    """
    from models.equipment import normalize_equipment_type

    if isinstance(requirements, dict):
        items = [{'equipment_type': k, 'count': v} for k, v in requirements.items()]
    else:
        items = list(requirements or [])

    normalized = []
    for item in items:
        equipment_type = item.get('equipment_type', item.get('type'))
        count = item.get('count', 1)
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ValueError(get_message('invalid_count'))
        normalized.append({
            'equipment_type': normalize_equipment_type(equipment_type).value,
            'count': count
        })
    return normalized


def validate_unit_ids(unit_ids) -> list:
    """
    Validate a list of unit IDs for a reservation.

    Raises:
        ValueError: If empty or containing duplicates
    """
    unit_ids = list(unit_ids or [])
    if not unit_ids:
        raise ValueError(get_message('no_units'))
    if len(set(unit_ids)) != len(unit_ids):
        raise ValueError(get_message('duplicate_units'))
    return unit_ids


def sanitize_input(text: str, max_length: int = None) -> str:
    """
    Sanitize text input by trimming and limiting length.

    Args:
        text: Text to sanitize
        max_length: Maximum length (optional)

    Returns:
        Sanitized text
    """
    if not text:
        return ''

    sanitized = text.strip()

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
