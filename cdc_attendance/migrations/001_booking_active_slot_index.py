"""
Restrict lab slot uniqueness to active bookings.

Replaces any unique index over bookings (workstation_id, date, time_slot)
with the partial index uq_bookings_active_slot, so freed and cancelled rows
no longer block re-booking the seat.
"""
import logging

from sqlalchemy import text

from cdc_attendance import db
from cdc_attendance.migrations import drop_index, drop_unique_constraint, unique_indexes_on

logger = logging.getLogger(__name__)

TABLE = 'bookings'
COLUMNS = ('workstation_id', 'date', 'time_slot')
INDEX_NAME = 'uq_bookings_active_slot'
LEGACY_INDEX_NAME = 'uq_bookings_workstation_date_slot'


def up():
    duplicates = db.session.execute(text(
        "SELECT workstation_id, date, time_slot, COUNT(*) FROM bookings "
        "WHERE status = 'active' GROUP BY workstation_id, date, time_slot HAVING COUNT(*) > 1"
    )).fetchall()
    if duplicates:
        raise RuntimeError(f"Cannot create {INDEX_NAME}: {len(duplicates)} slots hold more than one "
                           f"active booking, resolve them first: {duplicates[:10]}")

    indexes, constraints = unique_indexes_on(TABLE, COLUMNS)
    for name in indexes:
        if name != INDEX_NAME:
            drop_index(name)
            logger.info(f"Dropped index {name}")
    for name in constraints:
        drop_unique_constraint(TABLE, name)

    db.session.execute(text(
        f"CREATE UNIQUE INDEX IF NOT EXISTS {INDEX_NAME} "
        f"ON {TABLE} (workstation_id, date, time_slot) WHERE status = 'active'"
    ))
    db.session.commit()
    logger.info(f"Created partial unique index {INDEX_NAME}")


def down():
    drop_index(INDEX_NAME)
    db.session.execute(text(
        f"CREATE UNIQUE INDEX IF NOT EXISTS {LEGACY_INDEX_NAME} "
        f"ON {TABLE} (workstation_id, date, time_slot)"
    ))
    db.session.commit()
    logger.info(f"Restored global unique index {LEGACY_INDEX_NAME}")
