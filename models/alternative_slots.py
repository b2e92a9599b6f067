"""
Alternative slot search.
First-fit scan of one day for start times that can host every requirement.
"""

import logging
from datetime import datetime, timedelta

from flask import current_app

from models.equipment_reservation import check_bulk_availability
from models.time_window import as_window
from utils.datetime_helpers import parse_time_of_day
from utils.validators import normalize_requirements

logger = logging.getLogger(__name__)


def find_alternative_slots(
    requirements,
    facility_id: str,
    original_window,
    day_start=None,
    day_end=None,
    step_minutes: int = None,
    max_results: int = None,
    now=None
) -> list:
    """
    Find feasible windows on the same day as a rejected one.

    The duration is fixed to the original window's length. Start times are
    scanned from day_start to day_end minus the duration in steps of
    step_minutes, skipping the original start. The scan stops as soon as
    max_results feasible slots have been found, so results are the earliest
    ones in chronological order. This is a heuristic, not an optimum.

    Args:
        requirements: [{'equipment_type', 'count'}] or {type: count}
        facility_id: Facility reference
        original_window: The window that could not be booked
        day_start: 'HH:MM' scan start (default ALTERNATIVE_SLOT_DAY_START)
        day_end: 'HH:MM' scan end (default ALTERNATIVE_SLOT_DAY_END)
        step_minutes: Scan granularity (default ALTERNATIVE_SLOT_STEP_MINUTES)
        max_results: Result cap (default ALTERNATIVE_SLOT_MAX_RESULTS)
        now: Reference time for advance-booking rules

    Returns:
        list: [{'start', 'end', 'duration_minutes', 'per_type': {type: available}}]

    Raises:
        ValueError: If step_minutes or max_results is not positive
        ConfigurationMissingError: If a type has no config at the facility
    """
    original_window = as_window(original_window)
    requirements = normalize_requirements(requirements)

    settings = current_app.config
    day_start = parse_time_of_day(day_start or settings.get('ALTERNATIVE_SLOT_DAY_START', '06:00'))
    day_end = parse_time_of_day(day_end or settings.get('ALTERNATIVE_SLOT_DAY_END', '22:00'))
    if step_minutes is None:
        step_minutes = settings.get('ALTERNATIVE_SLOT_STEP_MINUTES', 30)
    if max_results is None:
        max_results = settings.get('ALTERNATIVE_SLOT_MAX_RESULTS', 5)

    if step_minutes < 1 or max_results < 1:
        raise ValueError("step_minutes and max_results must be positive")

    day = original_window.start.date()
    candidate = datetime.combine(day, day_start)
    last_start = datetime.combine(day, day_end) - original_window.duration
    step = timedelta(minutes=step_minutes)

    slots = []
    checked = 0
    while candidate <= last_start and len(slots) < max_results:
        if candidate != original_window.start:
            window = original_window.shifted_to(candidate)
            checked += 1
            result = check_bulk_availability(requirements, facility_id, window, now=now)
            if result['can_accommodate']:
                slot = window.to_dict()
                slot['per_type'] = {
                    equipment_type: info['available']
                    for equipment_type, info in result['per_type'].items()
                }
                slots.append(slot)
        candidate += step

    logger.debug('Alternative slot search at %s on %s: %d candidate(s) checked, %d found',
                 facility_id, day, checked, len(slots))

    return slots
