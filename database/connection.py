"""
Database connection management.
Handles per-context connections, write transactions, initialization, and teardown.
"""

import os
import sqlite3
from contextlib import contextmanager

from flask import g, current_app

from utils.exceptions import DatabaseBusyError


def is_lock_error(error: sqlite3.OperationalError) -> bool:
    """SQLITE_BUSY / SQLITE_LOCKED surface as 'database is locked' or 'database table is locked'."""
    message = str(error).lower()
    return 'locked' in message or 'busy' in message


def get_db():
    """
    Get the connection bound to the current app context.

    Returns:
        sqlite3.Connection: Database connection object
    """
    if 'db' not in g:
        db_path = current_app.config.get('DATABASE_PATH', 'instance/equipment.db')
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

        g.db = sqlite3.connect(
            db_path,
            timeout=current_app.config.get('DATABASE_BUSY_TIMEOUT', 5.0)
        )
        g.db.row_factory = sqlite3.Row
        # Enable foreign key constraints
        g.db.execute('PRAGMA foreign_keys = ON')
        # Enable WAL mode so readers are not blocked by the writer
        g.db.execute('PRAGMA journal_mode = WAL')
    return g.db


def close_db(e=None):
    """
    Close database connection.

    Args:
        e: Exception if any (from Flask teardown context)
    """
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def write_transaction():
    """
    Run a block inside a BEGIN IMMEDIATE transaction.

    The write lock is taken before the first statement, so every read made
    inside the block sees committed state that no other writer can change
    until this transaction ends. Commits on success, rolls back and re-raises
    on any exception.

    Yields:
        sqlite3.Cursor: Cursor bound to the transaction

    Raises:
        DatabaseBusyError: If another writer holds the lock past DATABASE_BUSY_TIMEOUT
    """
    db = get_db()
    cursor = db.cursor()
    try:
        cursor.execute('BEGIN IMMEDIATE')
    except sqlite3.OperationalError as e:
        if not is_lock_error(e):
            raise
        current_app.logger.warning('Write lock not acquired: %s', e)
        raise DatabaseBusyError() from e
    try:
        yield cursor
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db(with_seed: bool = True):
    """
    Initialize database: drop existing tables, create new schema, insert seed data.
    WARNING: This will delete all existing data!

    Args:
        with_seed: Insert the demo facility inventory after creating the schema
    """
    from database.schema import drop_tables, create_tables, create_indexes, create_triggers
    from database.seed import seed_database

    db = get_db()

    # Drop existing tables (in reverse order of dependencies)
    drop_tables(db)

    # Create all tables
    create_tables(db)

    # Create indexes and integrity triggers
    create_indexes(db)
    create_triggers(db)

    if with_seed:
        seed_database(db)

    db.commit()
    current_app.logger.info('Database initialized at %s', current_app.config.get('DATABASE_PATH'))
