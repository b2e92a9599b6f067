"""
Database seed data.
Demo facility inventory for fresh database installations.
"""

import json

WEEKDAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']

DEMO_FACILITY_ID = 'main-arena'


def seed_database(db):
    """Insert demo facility configs and equipment units."""

    operating_hours = json.dumps({day: ['06:00', '22:00'] for day in WEEKDAYS})

    # 1. Facility configs: (type, total_count, max_session_minutes)
    configs_data = [
        ('rower', 6, 120),
        ('skierg', 4, 120),
        ('bike_erg', 8, 120),
        ('wattbike', 6, 120),
        ('airbike', 4, 90),
        ('treadmill', 3, 90),
    ]

    for equipment_type, total_count, max_minutes in configs_data:
        db.execute('''
            INSERT INTO facility_equipment_configs
            (facility_id, equipment_type, total_count, operating_hours,
             max_session_minutes, min_advance_minutes, max_advance_days)
            VALUES (?, ?, ?, ?, ?, 0, 60)
        ''', (DEMO_FACILITY_ID, equipment_type, total_count, operating_hours, max_minutes))

    # 2. Equipment units, one per configured slot
    display_names = {
        'rower': 'Concept2 RowErg',
        'skierg': 'Concept2 SkiErg',
        'bike_erg': 'Concept2 BikeErg',
        'wattbike': 'Wattbike Atom',
        'airbike': 'Assault AirBike',
        'treadmill': 'Woodway Curve',
    }

    for equipment_type, total_count, _ in configs_data:
        for number in range(1, total_count + 1):
            db.execute('''
                INSERT INTO equipment_units
                (equipment_type, name, facility_id, location, status, specifications)
                VALUES (?, ?, ?, ?, 'available', ?)
            ''', (
                equipment_type,
                f'{display_names[equipment_type]} #{number}',
                DEMO_FACILITY_ID,
                'Conditioning Room',
                json.dumps({'station': number})
            ))
