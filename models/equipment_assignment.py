"""
Equipment assignment optimizer.
Greedy first-come matching of available units to players under shortage.
"""

import logging

from models.equipment_availability import check_availability
from models.equipment_reservation import reserve_equipment
from models.time_window import as_window
from utils.validators import normalize_requirements

logger = logging.getLogger(__name__)


def assign_equipment_to_players(requirements, facility_id: str, window, player_ids: list) -> dict:
    """
    Match available units to players, requirement by requirement.

    For each requirement in input order, min(count, available) units are
    taken and each one gets the next player from the front of the list.
    Once the players run out, remaining units are still assigned with
    player_id None. A unit picked for an earlier requirement is never
    offered again.

    Args:
        requirements: [{'equipment_type', 'count'}] or {type: count}
        facility_id: Facility reference
        window: TimeWindow or (start, end)
        player_ids: Players in priority order

    Returns:
        dict: {
            'is_optimal': bool,
            'assignments': [{'equipment_unit_id', 'equipment_name',
                             'equipment_type', 'player_id'}],
            'unassigned_players': [player_id],
            'shortfalls': [{'equipment_type', 'requested', 'available', 'shortfall'}]
        }

    Raises:
        ConfigurationMissingError: If a type has no config at the facility
    """
    window = as_window(window)
    queue = list(player_ids or [])
    taken_unit_ids = set()
    assignments = []
    shortfalls = []

    for requirement in normalize_requirements(requirements):
        equipment_type = requirement['equipment_type']
        requested = requirement['count']

        result = check_availability(equipment_type, facility_id, window, required_count=requested)
        candidates = [u for u in result['available_units'] if u['id'] not in taken_unit_ids]

        if len(candidates) < requested:
            shortfalls.append({
                'equipment_type': equipment_type,
                'requested': requested,
                'available': len(candidates),
                'shortfall': requested - len(candidates),
            })

        for unit in candidates[:requested]:
            taken_unit_ids.add(unit['id'])
            assignments.append({
                'equipment_unit_id': unit['id'],
                'equipment_name': unit['name'],
                'equipment_type': equipment_type,
                'player_id': queue.pop(0) if queue else None,
            })

    plan = {
        'is_optimal': not shortfalls,
        'assignments': assignments,
        'unassigned_players': queue,
        'shortfalls': shortfalls,
    }

    logger.debug('Assignment plan at %s %s: %d unit(s), %d unassigned player(s), optimal=%s',
                 facility_id, window.to_dict(), len(assignments), len(queue), plan['is_optimal'])

    return plan


def reserve_assignments(plan: dict, session_id: str, window, reserved_by: str, notes: str = None) -> list:
    """
    Book every unit of an assignment plan with its player mapping.

    Args:
        plan: Result of assign_equipment_to_players
        session_id: Training session reference
        window: Same window the plan was computed for
        reserved_by: User making the booking
        notes: Notes stored on every reservation

    Returns:
        list: Created reservations

    Raises:
        ValueError: If the plan assigns no units
        ReservationConflictError: If a unit was taken since the plan was made
    """
    assignments = plan.get('assignments') or []
    unit_ids = [a['equipment_unit_id'] for a in assignments]
    player_map = {a['equipment_unit_id']: a['player_id'] for a in assignments}

    return reserve_equipment(unit_ids, session_id, window, reserved_by,
                             player_assignments=player_map, notes=notes)
