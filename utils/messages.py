"""
Centralized messages.
All caller-facing error and status text in one place for consistency.
"""

MESSAGES = {
    # Lookup errors
    'not_found': '{entity} not found: {entity_id}',

    # Reservation errors
    'units_unavailable': 'Equipment not available for the requested window: {unit_ids}',
    'duplicate_units': 'Each equipment unit may only appear once per reservation',
    'no_units': 'At least one equipment unit is required',
    'capacity_exceeded': (
        'Facility {facility_id} cannot provide {requested} x {equipment_type} '
        '(capacity {capacity})'
    ),
    'configuration_missing': 'No equipment configuration for {equipment_type} at facility {facility_id}',
    'database_busy': 'Another booking is being written; try again shortly',

    # Lifecycle errors
    'cannot_check_in': 'Reservation {reservation_id} cannot be checked in: {reason}',
    'cannot_check_out': 'Reservation {reservation_id} cannot be checked out: {reason}',
    'cannot_cancel': 'Cannot cancel reservation with status: {status}',
    'cannot_complete': 'Cannot complete reservation with status: {status}',
    'cannot_mark_no_show': 'Reservation {reservation_id} cannot be marked as no-show: {reason}',
    'invalid_unit_transition': 'Equipment {unit_id} cannot change from {old_status} to {new_status}',
    'unit_has_active_reservation': 'Equipment {unit_id} has an active reservation',

    # Booking rule violations
    'outside_operating_hours': 'Window is outside operating hours for {equipment_type} on {weekday}',
    'closed_on_day': '{equipment_type} is not bookable on {weekday}',
    'exceeds_max_duration': 'Session of {minutes} min exceeds the {max_minutes} min limit for {equipment_type}',
    'too_late_to_book': 'Reservations for {equipment_type} must be made at least {minutes} min in advance',
    'too_far_ahead': 'Reservations for {equipment_type} can be made at most {days} days in advance',
    'spans_multiple_days': 'Window must start and end on the same day',

    # Validation messages
    'invalid_window': 'Window start must be before its end',
    'invalid_time': 'Invalid time of day: {value}',
    'invalid_equipment_type': 'Unknown equipment type: {value}',
    'invalid_count': 'Requested count must be a positive integer',

    # Status change notes
    'note_reserved': 'Reserved for session {session_id}',
    'note_checked_in': 'Equipment checked in',
    'note_checked_out': 'Equipment checked out',
    'note_cancelled': 'Reservation cancelled: {reason}',
    'note_completed': 'Reservation completed',
    'note_no_show': 'Reservation marked as no-show',
}


def get_message(key: str, **kwargs) -> str:
    """
    Get message with optional formatting.

    Args:
        key: Message key
        **kwargs: Format parameters

    Returns:
        Formatted message or key if not found
    """
    message = MESSAGES.get(key, key)
    if kwargs:
        return message.format(**kwargs)
    return message
