"""
Scheduling error taxonomy.

Every failure the engine reports to its caller is one of these classes.
They derive from ValueError so callers that already treat model-layer
validation failures as ValueError keep working.
"""

from typing import Optional

from utils.messages import get_message


class SchedulingError(ValueError):
    """Base class for all scheduling outcomes that are not a success."""

    code = 'scheduling_error'

    def to_dict(self) -> dict:
        """Serializable representation for the calling service."""
        return {'error': self.code, 'message': str(self)}


class NotFoundError(SchedulingError):
    """Unit or reservation absent."""

    code = 'not_found'

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(get_message('not_found', entity=entity, entity_id=entity_id))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({'entity': self.entity, 'entity_id': self.entity_id})
        return data


class InvalidStateError(SchedulingError):
    """Operation not allowed in the current reservation or unit state."""

    code = 'invalid_state'

    def __init__(self, message: str, current_state: Optional[str] = None):
        self.current_state = current_state
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['current_state'] = self.current_state
        return data


class ReservationConflictError(SchedulingError):
    """One or more units failed re-validation for the requested window."""

    code = 'conflict'

    def __init__(self, unit_ids: list, conflicts: Optional[list] = None, message: Optional[str] = None):
        self.unit_ids = list(unit_ids)
        self.conflicts = list(conflicts or [])
        if message is None:
            message = get_message(
                'units_unavailable',
                unit_ids=', '.join(str(u) for u in self.unit_ids)
            )
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({'unit_ids': self.unit_ids, 'conflicts': self.conflicts})
        return data


class CapacityExceededError(SchedulingError):
    """The facility config cannot satisfy the requested count regardless of time."""

    code = 'capacity_exceeded'

    def __init__(self, equipment_type: str, facility_id: str, requested: int, capacity: int):
        self.equipment_type = equipment_type
        self.facility_id = facility_id
        self.requested = requested
        self.capacity = capacity
        super().__init__(get_message(
            'capacity_exceeded',
            equipment_type=equipment_type,
            facility_id=facility_id,
            requested=requested,
            capacity=capacity
        ))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            'equipment_type': self.equipment_type,
            'facility_id': self.facility_id,
            'requested': self.requested,
            'capacity': self.capacity,
        })
        return data


class ConfigurationMissingError(SchedulingError):
    """No facility config exists for the (facility, type) pair."""

    code = 'configuration_missing'

    def __init__(self, equipment_type: str, facility_id: str):
        self.equipment_type = equipment_type
        self.facility_id = facility_id
        super().__init__(get_message(
            'configuration_missing',
            equipment_type=equipment_type,
            facility_id=facility_id
        ))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({'equipment_type': self.equipment_type, 'facility_id': self.facility_id})
        return data


class BookingRuleViolationError(SchedulingError):
    """Window breaks operating hours, max session duration or advance-booking rules."""

    code = 'booking_rule_violation'

    def __init__(self, violations: list):
        self.violations = list(violations)
        super().__init__('; '.join(v['message'] for v in self.violations))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['violations'] = self.violations
        return data


class DatabaseBusyError(SchedulingError):
    """The write lock could not be taken within the busy timeout."""

    code = 'database_busy'

    def __init__(self):
        super().__init__(get_message('database_busy'))
