"""
Database schema definitions.
Table creation, indexes, and integrity triggers.
"""


def drop_tables(db):
    """Drop all existing tables."""
    # Disable foreign key constraints before dropping
    db.execute('PRAGMA foreign_keys = OFF')

    tables = [
        'reservation_status_history',
        'equipment_status_history',
        'equipment_reservations',
        'facility_equipment_configs',
        'equipment_units',
    ]

    for table in tables:
        db.execute(f'DROP TABLE IF EXISTS {table}')

    # Re-enable foreign key constraints
    db.execute('PRAGMA foreign_keys = ON')


def create_tables(db):
    """Create all database tables."""

    # 1. Equipment Catalog
    db.execute('''
        CREATE TABLE equipment_units (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            equipment_type TEXT NOT NULL,
            name TEXT NOT NULL,
            facility_id TEXT NOT NULL,
            location TEXT,
            status TEXT NOT NULL DEFAULT 'available'
                CHECK (status IN ('available', 'reserved', 'in_use', 'maintenance', 'out_of_order')),
            serial_number TEXT UNIQUE,
            last_maintenance TEXT,
            next_maintenance TEXT,
            specifications TEXT DEFAULT '{}',
            notes TEXT,
            active INTEGER DEFAULT 1,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 2. Facility Capacity Config
    db.execute('''
        CREATE TABLE facility_equipment_configs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            facility_id TEXT NOT NULL,
            equipment_type TEXT NOT NULL,
            total_count INTEGER NOT NULL CHECK (total_count >= 0),
            operating_hours TEXT,
            max_session_minutes INTEGER,
            min_advance_minutes INTEGER,
            max_advance_days INTEGER,
            restrictions TEXT DEFAULT '{}',
            notes TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(facility_id, equipment_type)
        )
    ''')

    # 3. Reservation Ledger
    db.execute('''
        CREATE TABLE equipment_reservations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            equipment_unit_id INTEGER NOT NULL REFERENCES equipment_units(id),
            session_id TEXT NOT NULL,
            player_id TEXT,
            reserved_from TEXT NOT NULL,
            reserved_until TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'active'
                CHECK (status IN ('active', 'completed', 'cancelled', 'no_show')),
            reserved_by TEXT NOT NULL,
            check_in_time TEXT,
            check_out_time TEXT,
            checked_in_by TEXT,
            checked_out_by TEXT,
            cancellation_reason TEXT,
            notes TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
            CHECK (reserved_from < reserved_until)
        )
    ''')

    # 4. History
    db.execute('''
        CREATE TABLE equipment_status_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            unit_id INTEGER NOT NULL REFERENCES equipment_units(id),
            old_status TEXT,
            new_status TEXT NOT NULL,
            changed_by TEXT,
            reservation_id INTEGER REFERENCES equipment_reservations(id),
            notes TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE reservation_status_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            reservation_id INTEGER NOT NULL REFERENCES equipment_reservations(id),
            old_status TEXT,
            new_status TEXT NOT NULL,
            changed_by TEXT,
            notes TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    ''')


def create_indexes(db):
    """Create performance indexes."""
    # Catalog indexes
    db.execute('CREATE INDEX idx_units_facility_type ON equipment_units(facility_id, equipment_type)')
    db.execute('CREATE INDEX idx_units_status ON equipment_units(status)')

    # Ledger indexes
    db.execute('''
        CREATE INDEX idx_reservations_unit_window
        ON equipment_reservations(equipment_unit_id, status, reserved_from, reserved_until)
    ''')
    db.execute('CREATE INDEX idx_reservations_session ON equipment_reservations(session_id)')
    db.execute('CREATE INDEX idx_reservations_player ON equipment_reservations(player_id)')

    # History indexes
    db.execute('CREATE INDEX idx_unit_history_unit ON equipment_status_history(unit_id)')
    db.execute('CREATE INDEX idx_reservation_history ON reservation_status_history(reservation_id)')


def create_triggers(db):
    """
    Create integrity triggers.

    The overlap trigger rejects any active reservation whose half-open window
    intersects another active reservation on the same unit. It is the
    commit-time backstop behind the coordinator's re-validation.
    """
    db.execute('''
        CREATE TRIGGER trg_reservation_no_overlap_insert
        BEFORE INSERT ON equipment_reservations
        WHEN NEW.status = 'active'
        BEGIN
            SELECT RAISE(ABORT, 'reservation_overlap')
            WHERE EXISTS (
                SELECT 1 FROM equipment_reservations r
                WHERE r.equipment_unit_id = NEW.equipment_unit_id
                  AND r.status = 'active'
                  AND r.reserved_from < NEW.reserved_until
                  AND NEW.reserved_from < r.reserved_until
            );
        END
    ''')

    db.execute('''
        CREATE TRIGGER trg_reservation_terminal_immutable
        BEFORE UPDATE OF status ON equipment_reservations
        WHEN OLD.status != 'active' AND NEW.status != OLD.status
        BEGIN
            SELECT RAISE(ABORT, 'reservation_terminal');
        END
    ''')
