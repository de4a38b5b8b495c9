"""
Make roll numbers unique per batch instead of globally.
"""
import logging

from sqlalchemy import text

from cdc_attendance import db
from cdc_attendance.migrations import drop_index, drop_unique_constraint, unique_indexes_on

logger = logging.getLogger(__name__)

TABLE = 'students'
INDEX_NAME = 'uq_students_batch_roll_no'
LEGACY_INDEX_NAME = 'uq_students_roll_no'


def up():
    duplicates = db.session.execute(text(
        "SELECT batch_id, roll_no, COUNT(*) FROM students WHERE roll_no IS NOT NULL "
        "GROUP BY batch_id, roll_no HAVING COUNT(*) > 1"
    )).fetchall()
    if duplicates:
        raise RuntimeError(f"Cannot create {INDEX_NAME}: duplicate roll numbers within a batch: "
                           f"{duplicates[:10]}")

    indexes, constraints = unique_indexes_on(TABLE, ('roll_no',))
    for name in indexes:
        drop_index(name)
        logger.info(f"Dropped global roll number index {name}")
    for name in constraints:
        drop_unique_constraint(TABLE, name)

    db.session.execute(text(
        f"CREATE UNIQUE INDEX IF NOT EXISTS {INDEX_NAME} ON {TABLE} (batch_id, roll_no)"
    ))
    db.session.commit()
    logger.info(f"Created compound unique index {INDEX_NAME}")


def down():
    duplicates = db.session.execute(text(
        "SELECT roll_no, COUNT(*) FROM students WHERE roll_no IS NOT NULL "
        "GROUP BY roll_no HAVING COUNT(*) > 1"
    )).fetchall()
    if duplicates:
        raise RuntimeError(f"Cannot restore {LEGACY_INDEX_NAME}: roll numbers repeat across batches")
    drop_index(INDEX_NAME)
    db.session.execute(text(f"CREATE UNIQUE INDEX IF NOT EXISTS {LEGACY_INDEX_NAME} ON {TABLE} (roll_no)"))
    db.session.commit()
    logger.info(f"Restored global unique index {LEGACY_INDEX_NAME}")
