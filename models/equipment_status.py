"""
Real-time equipment status and reservation statistics.
Read-only aggregation over the catalog and the ledger.
"""

from database import get_db
from models.equipment import EquipmentStatus, get_equipment_units
from models.facility_config import get_facility_configs
from models.reservation_ledger import get_reservations_covering
from models.reservation_state import ReservationStatus
from utils.datetime_helpers import get_now, parse_datetime, to_db_datetime


def _utilization_rate(busy: int, total: int) -> float:
    if not total:
        return 0.0
    return round(busy / total * 100, 1)


def get_realtime_status(facility_id: str, now=None) -> dict:
    """
    Snapshot of a facility's equipment.

    Utilization is (in_use + reserved) / total * 100 per type, where total
    counts active units. Types configured at the facility but with no units
    appear with zero counts.

    Args:
        facility_id: Facility reference
        now: Snapshot time (default: get_now())

    Returns:
        dict: {
            'facility_id': str,
            'timestamp': str,
            'by_type': [{'equipment_type', 'total', 'available', 'reserved',
                         'in_use', 'maintenance', 'out_of_order',
                         'utilization_rate'}],
            'active_reservations_now': [reservation dict]
        }
    """
    now = parse_datetime(now) if now else get_now()

    counts = {}
    for config in get_facility_configs(facility_id):
        counts.setdefault(config['equipment_type'], {status.value: 0 for status in EquipmentStatus})

    for unit in get_equipment_units(facility_id=facility_id):
        type_counts = counts.setdefault(
            unit['equipment_type'], {status.value: 0 for status in EquipmentStatus}
        )
        type_counts[unit['status']] += 1

    by_type = []
    for equipment_type in sorted(counts):
        type_counts = counts[equipment_type]
        total = sum(type_counts.values())
        busy = type_counts[EquipmentStatus.IN_USE.value] + type_counts[EquipmentStatus.RESERVED.value]
        by_type.append({
            'equipment_type': equipment_type,
            'total': total,
            'available': type_counts[EquipmentStatus.AVAILABLE.value],
            'reserved': type_counts[EquipmentStatus.RESERVED.value],
            'in_use': type_counts[EquipmentStatus.IN_USE.value],
            'maintenance': type_counts[EquipmentStatus.MAINTENANCE.value],
            'out_of_order': type_counts[EquipmentStatus.OUT_OF_ORDER.value],
            'utilization_rate': _utilization_rate(busy, total),
        })

    return {
        'facility_id': facility_id,
        'timestamp': now.isoformat(sep=' '),
        'by_type': by_type,
        'active_reservations_now': get_reservations_covering(facility_id, now),
    }


def get_reservation_stats(facility_id: str, start, end) -> dict:
    """
    Reservation statistics for reservations starting in [start, end).

    Args:
        facility_id: Facility reference
        start: Period start
        end: Period end

    Returns:
        dict: {
            'total': int,
            'by_status': {status: count},
            'average_usage_minutes': float or None,
            'completion_rate': float
        }
    """
    start_str = to_db_datetime(parse_datetime(start))
    end_str = to_db_datetime(parse_datetime(end))

    db = get_db()
    cursor = db.cursor()

    cursor.execute('''
        SELECT r.status, COUNT(*) as count
        FROM equipment_reservations r
        JOIN equipment_units u ON r.equipment_unit_id = u.id
        WHERE u.facility_id = ?
          AND r.reserved_from >= ?
          AND r.reserved_from < ?
        GROUP BY r.status
    ''', (facility_id, start_str, end_str))

    by_status = {status.value: 0 for status in ReservationStatus}
    for row in cursor.fetchall():
        by_status[row['status']] = row['count']
    total = sum(by_status.values())

    cursor.execute('''
        SELECT AVG((julianday(r.check_out_time) - julianday(r.check_in_time)) * 1440) as avg_minutes
        FROM equipment_reservations r
        JOIN equipment_units u ON r.equipment_unit_id = u.id
        WHERE u.facility_id = ?
          AND r.reserved_from >= ?
          AND r.reserved_from < ?
          AND r.check_in_time IS NOT NULL
          AND r.check_out_time IS NOT NULL
    ''', (facility_id, start_str, end_str))
    avg_minutes = cursor.fetchone()['avg_minutes']

    return {
        'facility_id': facility_id,
        'period': {'start': start_str, 'end': end_str},
        'total': total,
        'by_status': by_status,
        'average_usage_minutes': round(avg_minutes, 1) if avg_minutes is not None else None,
        'completion_rate': _utilization_rate(by_status[ReservationStatus.COMPLETED.value], total),
    }
