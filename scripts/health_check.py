#!/usr/bin/env python
"""
Equipment Scheduler Health Check.

Read-only integrity report over a scheduler database:
- Ledger integrity (overlapping active reservations on one unit)
- Status projection (unit status out of step with its reservations)
- Capacity (more active units than the facility config allows)

Usage:
    python scripts/health_check.py --db-path instance/equipment.db
"""

import argparse
import os
import sqlite3
import sys

ACTIVE = 'active'
HELD_STATUSES = ('reserved', 'in_use')


def get_connection(db_path: str) -> sqlite3.Connection:
    """Open a read-only connection to the SQLite database."""
    conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
    conn.row_factory = sqlite3.Row
    return conn


def issue(category: str, check: str, severity: str, count: int, details: list) -> dict:
    """Create a standardized issue dict."""
    return {
        'category': category,
        'check': check,
        'severity': severity,
        'count': count,
        'details': details[:20]  # Cap at 20 examples
    }


def check_ledger_integrity(conn: sqlite3.Connection) -> list:
    """
    Check that no unit has two overlapping active reservations.

    Returns list of issue dicts.
    """
    cur = conn.cursor()
    cur.execute('''
        SELECT a.equipment_unit_id, a.id as first_id, b.id as second_id,
               a.reserved_from as first_from, a.reserved_until as first_until,
               b.reserved_from as second_from, b.reserved_until as second_until
        FROM equipment_reservations a
        JOIN equipment_reservations b
          ON a.equipment_unit_id = b.equipment_unit_id
         AND a.id < b.id
        WHERE a.status = ? AND b.status = ?
          AND a.reserved_from < b.reserved_until
          AND b.reserved_from < a.reserved_until
    ''', (ACTIVE, ACTIVE))
    rows = cur.fetchall()

    return [issue(
        category='Ledger',
        check='Overlapping active reservations on one unit',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[
            f"unit_id={r['equipment_unit_id']}: reservation {r['first_id']} "
            f"[{r['first_from']}, {r['first_until']}) overlaps {r['second_id']} "
            f"[{r['second_from']}, {r['second_until']})"
            for r in rows
        ]
    )]


def check_status_projection(conn: sqlite3.Connection) -> list:
    """
    Check that unit status agrees with the ledger.

    A unit is Reserved or InUse exactly when it holds one active reservation,
    and InUse exactly when that reservation is checked in.
    """
    results = []
    cur = conn.cursor()
    held_placeholders = ','.join('?' * len(HELD_STATUSES))

    # --- 1. Held units without an active reservation ---
    cur.execute(f'''
        SELECT u.id, u.name, u.status
        FROM equipment_units u
        WHERE u.status IN ({held_placeholders})
          AND NOT EXISTS (
              SELECT 1 FROM equipment_reservations r
              WHERE r.equipment_unit_id = u.id AND r.status = ?
          )
    ''', HELD_STATUSES + (ACTIVE,))
    rows = cur.fetchall()
    results.append(issue(
        category='Status Projection',
        check='Reserved/in-use units without an active reservation',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[f"unit_id={r['id']} ({r['name']}) is {r['status']}" for r in rows]
    ))

    # --- 2. Active reservations on units that are not held ---
    cur.execute(f'''
        SELECT r.id, r.equipment_unit_id, u.status
        FROM equipment_reservations r
        JOIN equipment_units u ON r.equipment_unit_id = u.id
        WHERE r.status = ?
          AND u.status NOT IN ({held_placeholders})
    ''', (ACTIVE,) + HELD_STATUSES)
    rows = cur.fetchall()
    results.append(issue(
        category='Status Projection',
        check='Active reservations on units that are not reserved/in use',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[
            f"reservation {r['id']} on unit_id={r['equipment_unit_id']} ({r['status']})"
            for r in rows
        ]
    ))

    # --- 3. Check-in state disagrees with unit status ---
    cur.execute('''
        SELECT r.id, r.equipment_unit_id, u.status, r.check_in_time
        FROM equipment_reservations r
        JOIN equipment_units u ON r.equipment_unit_id = u.id
        WHERE r.status = ?
          AND ((r.check_in_time IS NOT NULL AND u.status != 'in_use')
            OR (r.check_in_time IS NULL AND u.status = 'in_use'))
    ''', (ACTIVE,))
    rows = cur.fetchall()
    results.append(issue(
        category='Status Projection',
        check='Check-in state out of step with unit status',
        severity='fail' if rows else 'ok',
        count=len(rows),
        details=[
            f"reservation {r['id']} on unit_id={r['equipment_unit_id']}: "
            f"check_in={r['check_in_time']}, unit {r['status']}"
            for r in rows
        ]
    ))

    return results


def check_capacity(conn: sqlite3.Connection) -> list:
    """Check unit counts against facility configs."""
    results = []
    cur = conn.cursor()

    # --- 1. More active units than configured ---
    cur.execute('''
        SELECT c.facility_id, c.equipment_type, c.total_count, COUNT(u.id) as unit_count
        FROM facility_equipment_configs c
        JOIN equipment_units u
          ON u.facility_id = c.facility_id
         AND u.equipment_type = c.equipment_type
         AND u.active = 1
        GROUP BY c.facility_id, c.equipment_type, c.total_count
        HAVING COUNT(u.id) > c.total_count
    ''')
    rows = cur.fetchall()
    results.append(issue(
        category='Capacity',
        check='Active units above configured total_count',
        severity='warn' if rows else 'ok',
        count=len(rows),
        details=[
            f"{r['facility_id']}/{r['equipment_type']}: {r['unit_count']} units, "
            f"total_count={r['total_count']}"
            for r in rows
        ]
    ))

    # --- 2. Units with no facility config ---
    cur.execute('''
        SELECT u.id, u.name, u.facility_id, u.equipment_type
        FROM equipment_units u
        LEFT JOIN facility_equipment_configs c
          ON u.facility_id = c.facility_id
         AND u.equipment_type = c.equipment_type
        WHERE u.active = 1 AND c.id IS NULL
    ''')
    rows = cur.fetchall()
    results.append(issue(
        category='Capacity',
        check='Units without a facility configuration',
        severity='warn' if rows else 'ok',
        count=len(rows),
        details=[
            f"unit_id={r['id']} ({r['name']}) at {r['facility_id']}/{r['equipment_type']}"
            for r in rows
        ]
    ))

    return results


def run_checks(conn: sqlite3.Connection) -> list:
    """Run every check and return the combined issue list."""
    results = check_ledger_integrity(conn)
    results += check_status_projection(conn)
    results += check_capacity(conn)
    return results


def main():
    parser = argparse.ArgumentParser(
        description='Run integrity checks on an equipment scheduler database'
    )
    parser.add_argument('--db-path', type=str, required=True,
                        help='Path to SQLite database file')
    args = parser.parse_args()

    if not os.path.exists(args.db_path):
        print(f"Error: Database not found: {args.db_path}")
        sys.exit(1)

    conn = get_connection(args.db_path)
    results = run_checks(conn)
    conn.close()

    for r in results:
        icon = {'ok': '[OK]', 'warn': '[WARN]', 'fail': '[FAIL]'}.get(r['severity'], '[?]')
        print(f"{icon} {r['check']} ({r['count']} issues)")
        for d in r['details'][:3]:
            print(f"    -> {d}")

    if any(r['severity'] == 'fail' for r in results):
        sys.exit(1)


if __name__ == '__main__':
    main()
