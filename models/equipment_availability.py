"""
Equipment availability engine.
Answers which units of a type are free at a facility for a time window.
"""

import logging

from models.equipment import EquipmentStatus, get_equipment_units, normalize_equipment_type
from models.facility_config import evaluate_window_rules, require_facility_config
from models.reservation_ledger import (
    find_overlapping_by_type,
    peak_concurrent_count,
    to_conflict_entry,
)
from models.time_window import as_window

logger = logging.getLogger(__name__)


def check_availability(
    equipment_type,
    facility_id: str,
    window,
    required_count: int = 1,
    now=None
) -> dict:
    """
    Check availability of one equipment type at a facility.

    A unit is available when its status is Available and no active
    reservation on it overlaps the window. The number of units offered is
    also capped by the facility's total_count minus the peak number of
    active reservations of the type inside the window.

    Booking-rule violations (operating hours, max duration, advance
    bounds) do not remove units from the result; they are reported in
    'constraint_violations' and make 'can_accommodate' False.

    Args:
        equipment_type: Type code
        facility_id: Facility reference
        window: TimeWindow or (start, end)
        required_count: Units the caller needs
        now: Reference time for advance-booking rules

    Returns:
        dict: {
            'equipment_type': str,
            'facility_id': str,
            'window': dict,
            'required_count': int,
            'total_count': int,
            'available_units': [unit dict],
            'available_count': int,
            'capacity_remaining': int,
            'conflicts': [conflict entry],
            'constraint_violations': [{'rule': str, 'message': str}],
            'can_accommodate': bool
        }

    Raises:
        ConfigurationMissingError: If the (facility, type) has no config
    """
    equipment_type = normalize_equipment_type(equipment_type)
    window = as_window(window)
    config = require_facility_config(facility_id, equipment_type)

    units = get_equipment_units(facility_id=facility_id, equipment_type=equipment_type)
    overlapping = find_overlapping_by_type(facility_id, equipment_type, window)

    busy_unit_ids = {r['equipment_unit_id'] for r in overlapping}
    free_units = [
        unit for unit in units
        if unit['status'] == EquipmentStatus.AVAILABLE.value and unit['id'] not in busy_unit_ids
    ]

    capacity_remaining = max(0, config['total_count'] - peak_concurrent_count(overlapping, window))
    available_units = free_units[:capacity_remaining]

    violations = evaluate_window_rules(config, window, now=now)

    result = {
        'equipment_type': equipment_type.value,
        'facility_id': facility_id,
        'window': window.to_dict(),
        'required_count': required_count,
        'total_count': config['total_count'],
        'available_units': available_units,
        'available_count': len(available_units),
        'capacity_remaining': capacity_remaining,
        'conflicts': [to_conflict_entry(r) for r in overlapping],
        'constraint_violations': violations,
        'can_accommodate': len(available_units) >= required_count and not violations,
    }

    logger.debug(
        'Availability %s at %s %s: %d free of %d configured, %d conflict(s), %d violation(s)',
        equipment_type.value, facility_id, window.to_dict(), len(available_units),
        config['total_count'], len(overlapping), len(violations)
    )

    return result
