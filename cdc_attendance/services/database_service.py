"""
Database Service Layer for transactional boundaries shared by the services
Provides transient-fault retries, per-date serialization and lookups
"""
import logging
import random
import threading
import time
import weakref
from contextlib import contextmanager
from functools import wraps
from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, DisconnectionError

from cdc_attendance import db
from cdc_attendance.services.error_service import NotFoundError, StoreUnavailable

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (OperationalError, DisconnectionError)

# Namespace for PostgreSQL advisory lock keys taken per calendar day
_ADVISORY_NAMESPACE = 7_340_000_000


class _DateLock:
    __slots__ = ('lock', '__weakref__')

    def __init__(self):
        self.lock = threading.Lock()


_registry_lock = threading.Lock()
_date_locks = weakref.WeakValueDictionary()


def _lock_for(key):
    with _registry_lock:
        holder = _date_locks.get(key)
        if holder is None:
            holder = _DateLock()
            _date_locks[key] = holder
        return holder


@contextmanager
def advisory_lock(engine, key):
    """
    PostgreSQL session-level advisory lock held on its own connection.

    Unlike pg_advisory_xact_lock it survives commits made by the caller's
    session, so a unit of work that commits row by row stays serialized.
    """
    with engine.connect() as connection:
        connection.execute(text('SELECT pg_advisory_lock(:key)'), {'key': key})
        connection.commit()
        try:
            yield
        finally:
            connection.execute(text('SELECT pg_advisory_unlock(:key)'), {'key': key})
            connection.commit()


class DatabaseService:
    """Centralized database operations service"""

    @staticmethod
    def get_or_404(model_class, record_id, resource=None):
        record = db.session.get(model_class, record_id) if record_id is not None else None
        if record is None:
            raise NotFoundError(resource or model_class.__name__)
        return record

    @staticmethod
    @contextmanager
    def date_lock(day):
        """
        Serialize writers touching bookings or marks of one calendar day.

        Held across the whole unit of work, every commit included. Within a
        process a lock per day is used; on PostgreSQL a session-level advisory
        lock on a dedicated connection extends this across processes.
        """
        holder = _lock_for(day.isoformat())
        with holder.lock:
            if db.engine.dialect.name == 'postgresql':
                with advisory_lock(db.engine, _ADVISORY_NAMESPACE + day.toordinal()):
                    yield
            else:
                yield

    @staticmethod
    def commit():
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise


def with_store_retry(func):
    """
    Retry a unit of work on transient store faults.

    At most STORE_RETRY_ATTEMPTS retries with jittered exponential backoff;
    the session is rolled back before each retry. Exhaustion surfaces as
    StoreUnavailable (503).
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        retries = current_app.config.get('STORE_RETRY_ATTEMPTS', 2)
        backoff = current_app.config.get('STORE_RETRY_BACKOFF', 0.2)

        for attempt in range(retries + 1):
            try:
                result = func(*args, **kwargs)
                if attempt > 0:
                    logger.info(f"{func.__name__} succeeded on attempt {attempt + 1}")
                return result
            except TRANSIENT_ERRORS as e:
                db.session.rollback()
                logger.warning(f"{func.__name__} hit a transient store fault on attempt {attempt + 1}: {e}")
                if attempt < retries:
                    time.sleep(backoff * (2 ** attempt) * random.uniform(0.5, 1.5))
                    continue
                raise StoreUnavailable() from e

    return wrapper
