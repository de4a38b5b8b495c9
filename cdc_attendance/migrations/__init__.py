"""
Named data/index migrations run with `scripts/run_migration.py up|down <name>`
or `flask run-migration up|down <name>`.

Each module exposes up() and down(); both run inside an app context and
own their transaction. Schema revisions live with Flask-Migrate (`flask db`).
"""
import importlib
import logging

from sqlalchemy import inspect, text

from cdc_attendance import db

logger = logging.getLogger(__name__)

MIGRATIONS = ('001_booking_active_slot_index', '002_student_batch_roll_index')


def load(name):
    if name not in MIGRATIONS:
        raise ValueError(f"Unknown migration '{name}'. Available: {', '.join(MIGRATIONS)}")
    return importlib.import_module(f'{__name__}.{name}')


def run_migration(name, direction):
    module = load(name)
    step = getattr(module, direction)
    logger.info(f"Running migration {name} {direction}")
    step()
    logger.info(f"Migration {name} {direction} completed")


def unique_indexes_on(table, columns):
    """Names of unique indexes and unique constraints covering exactly `columns`"""
    inspector = inspect(db.engine)
    wanted = list(columns)
    indexes = [
        ix['name'] for ix in inspector.get_indexes(table)
        if ix.get('unique') and list(ix['column_names']) == wanted
    ]
    constraints = [
        uc['name'] for uc in inspector.get_unique_constraints(table)
        if uc['name'] and list(uc['column_names']) == wanted
    ]
    return indexes, constraints


def drop_index(name):
    db.session.execute(text(f'DROP INDEX IF EXISTS {name}'))


def drop_unique_constraint(table, name):
    if db.engine.dialect.name == 'sqlite':
        # SQLite cannot drop table constraints without rebuilding the table
        logger.warning(f"Skipping constraint {name} on {table}: not droppable on SQLite")
        return
    db.session.execute(text(f'ALTER TABLE {table} DROP CONSTRAINT IF EXISTS {name}'))
