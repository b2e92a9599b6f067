"""
Database package for the Equipment Scheduler.

This package provides modular database operations:
- connection: Connection management (get_db, close_db, init_db, write_transaction)
- schema: Table, index and trigger creation
- seed: Demo facility inventory

All public functions are re-exported from this module.
"""

from database.connection import get_db, close_db, init_db, write_transaction
from database.schema import drop_tables, create_tables, create_indexes, create_triggers
from database.seed import seed_database

__all__ = [
    # Connection
    'get_db',
    'close_db',
    'init_db',
    'write_transaction',
    # Schema
    'drop_tables',
    'create_tables',
    'create_indexes',
    'create_triggers',
    # Seed
    'seed_database',
]
