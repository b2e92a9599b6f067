"""
Database tests.
Tests schema initialization, seed data and the write transaction helper.
"""

import sqlite3

import pytest

from database import close_db, get_db, init_db, write_transaction
from utils.exceptions import DatabaseBusyError, SchedulingError


def test_database_tables(app):
    """Test that all required tables exist."""
    db = get_db()
    cursor = db.cursor()

    cursor.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    tables = [row[0] for row in cursor.fetchall()]

    required_tables = [
        'equipment_units', 'facility_equipment_configs', 'equipment_reservations',
        'equipment_status_history', 'reservation_status_history',
    ]

    for table in required_tables:
        assert table in tables, f"Table {table} should exist"


def test_integrity_triggers(app):
    """Test that the overlap and terminal-state triggers exist."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute("SELECT name FROM sqlite_master WHERE type='trigger'")
    triggers = {row[0] for row in cursor.fetchall()}

    assert 'trg_reservation_no_overlap_insert' in triggers
    assert 'trg_reservation_terminal_immutable' in triggers


def test_seed_data(app):
    """Test that seed data creates one unit per configured slot."""
    init_db(with_seed=True)

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT c.equipment_type, c.total_count, COUNT(u.id) as unit_count
        FROM facility_equipment_configs c
        LEFT JOIN equipment_units u
          ON u.facility_id = c.facility_id AND u.equipment_type = c.equipment_type
        GROUP BY c.equipment_type, c.total_count
    ''')
    rows = cursor.fetchall()

    assert len(rows) == 6
    for row in rows:
        assert row['unit_count'] == row['total_count']


def test_write_transaction_rolls_back(app, make_unit):
    """A failure inside the block leaves no partial writes."""
    unit_id = make_unit('rower')

    with pytest.raises(RuntimeError):
        with write_transaction() as cursor:
            cursor.execute("UPDATE equipment_units SET name = 'Renamed' WHERE id = ?", (unit_id,))
            raise RuntimeError('boom')

    row = get_db().execute('SELECT name FROM equipment_units WHERE id = ?', (unit_id,)).fetchone()
    assert row['name'] != 'Renamed'


@pytest.fixture
def held_write_lock(app):
    """A second connection holding the write lock; the app connection waits briefly."""
    close_db()
    app.config['DATABASE_BUSY_TIMEOUT'] = 0.2

    other = sqlite3.connect(app.config['DATABASE_PATH'])
    other.execute('BEGIN IMMEDIATE')
    yield other
    other.rollback()
    other.close()


def test_write_transaction_busy_is_typed(app, held_write_lock):
    """A lock timeout surfaces as DatabaseBusyError, not a raw sqlite3 error."""
    with pytest.raises(DatabaseBusyError) as exc_info:
        with write_transaction():
            pass

    assert exc_info.value.to_dict()['error'] == 'database_busy'


def test_reserve_while_locked_writes_nothing(app, rowers, held_write_lock):
    """A booking blocked by another writer fails with a scheduling error and leaves no rows."""
    from conftest import at
    from models.equipment_reservation import reserve_equipment

    with pytest.raises(SchedulingError):
        reserve_equipment([rowers[0]], 'session-1', (at(10), at(11)), 'coach')

    held_write_lock.rollback()
    count = get_db().execute('SELECT COUNT(*) FROM equipment_reservations').fetchone()[0]
    assert count == 0
    status = get_db().execute('SELECT status FROM equipment_units WHERE id = ?', (rowers[0],)).fetchone()[0]
    assert status == 'available'
