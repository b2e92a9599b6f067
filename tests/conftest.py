"""
Pytest configuration and fixtures.
Every test gets its own SQLite file, so tests never share ledger state.
"""

import os
import pytest
from datetime import datetime

os.environ['FLASK_ENV'] = 'test'

FACILITY_ID = 'test-facility'

# 2030-01-07 is a Monday
TEST_DAY = datetime(2030, 1, 7)

OPEN_ALL_WEEK = {
    day: ['06:00', '22:00']
    for day in ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
}


def at(hour, minute=0, day=TEST_DAY):
    """Datetime on the test day."""
    return day.replace(hour=hour, minute=minute)


@pytest.fixture
def app(tmp_path):
    """Create test application with an isolated, empty database."""
    from app import create_app
    from database import init_db

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['DATABASE_PATH'] = str(tmp_path / 'equipment_test.db')

    with app.app_context():
        init_db(with_seed=False)
        yield app


@pytest.fixture
def make_config(app):
    """Factory creating a facility config with open hours and no advance limits."""
    from models.facility_config import create_facility_config

    def _make_config(equipment_type='rower', total_count=2, facility_id=FACILITY_ID, **kwargs):
        kwargs.setdefault('operating_hours', OPEN_ALL_WEEK)
        kwargs.setdefault('max_session_minutes', 120)
        return create_facility_config(facility_id, equipment_type, total_count, **kwargs)

    return _make_config


@pytest.fixture
def make_unit(app):
    """Factory creating an Available equipment unit."""
    from models.equipment import create_equipment_unit

    counter = {'n': 0}

    def _make_unit(equipment_type='rower', facility_id=FACILITY_ID, name=None, **kwargs):
        counter['n'] += 1
        return create_equipment_unit(
            equipment_type,
            name or f"{equipment_type} #{counter['n']}",
            facility_id,
            **kwargs
        )

    return _make_unit


@pytest.fixture
def rowers(make_config, make_unit):
    """Facility with two configured rowers; returns their unit IDs."""
    make_config('rower', total_count=2)
    return [make_unit('rower'), make_unit('rower')]
