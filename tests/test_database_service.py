from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from cdc_attendance.services import database_service
from cdc_attendance.services.database_service import DatabaseService, advisory_lock, with_store_retry
from cdc_attendance.services.error_service import StoreUnavailable
from cdc_attendance.services.lab_service import LabService

from conftest import book, pc_at


def store_fault():
    return OperationalError('SELECT 1', {}, Exception('server closed the connection unexpectedly'))


class FlakyStep:
    """Raises a transient store fault for the first `failures` calls"""

    def __init__(self, failures):
        self.failures = failures
        self.calls = 0

    def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise store_fault()


class FakeConnection:
    def __init__(self, events):
        self.events = events

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.events.append('close')
        return False

    def execute(self, statement, params=None):
        self.events.append((str(statement), params['key']))

    def commit(self):
        pass


class FakeEngine:
    def __init__(self, dialect='postgresql'):
        self.events = []
        self.dialect = type('Dialect', (), {'name': dialect})()

    def connect(self):
        return FakeConnection(self.events)


def test_retry_recovers_after_two_faults(app):
    step = FlakyStep(failures=2)

    @with_store_retry
    def unit_of_work():
        step()
        return 'done'

    assert unit_of_work() == 'done'
    assert step.calls == 3


def test_retry_gives_up_after_two_retries(app):
    step = FlakyStep(failures=3)

    @with_store_retry
    def unit_of_work():
        step()

    with pytest.raises(StoreUnavailable) as excinfo:
        unit_of_work()
    assert step.calls == 3
    assert excinfo.value.status_code == 503


def test_booking_answers_503_when_the_store_stays_down(monkeypatch, teacher_client, seed):
    step = FlakyStep(failures=10)
    monkeypatch.setattr(LabService, '_check_slot_free', staticmethod(step))

    response = book(teacher_client, pc_at(1, 1), seed['students'][0], seed['batch'])
    assert response.status_code == 503
    assert response.get_json()['error'] == 'StoreUnavailable'
    assert step.calls == 3


def test_booking_survives_a_brief_store_outage(monkeypatch, teacher_client, seed):
    step = FlakyStep(failures=2)
    original = LabService._check_slot_free

    def check_slot_free(*args):
        step()
        return original(*args)

    monkeypatch.setattr(LabService, '_check_slot_free', staticmethod(check_slot_free))
    response = book(teacher_client, pc_at(1, 1), seed['students'][0], seed['batch'])
    assert response.status_code == 201
    assert step.calls == 3


def test_advisory_lock_outlives_commits_inside_the_block():
    engine = FakeEngine()
    with advisory_lock(engine, 42):
        engine.events.append('row 1 committed')
        engine.events.append('row 2 committed')

    assert engine.events == [
        ('SELECT pg_advisory_lock(:key)', 42),
        'row 1 committed',
        'row 2 committed',
        ('SELECT pg_advisory_unlock(:key)', 42),
        'close',
    ]


def test_advisory_lock_is_released_on_error():
    engine = FakeEngine()
    with pytest.raises(RuntimeError):
        with advisory_lock(engine, 7):
            raise RuntimeError('row failed')
    assert engine.events[-2:] == [('SELECT pg_advisory_unlock(:key)', 7), 'close']


def test_date_lock_takes_the_advisory_lock_on_postgres(monkeypatch):
    engine = FakeEngine()
    monkeypatch.setattr(database_service, 'db', type('FakeDb', (), {'engine': engine})())
    day = date(2024, 3, 14)

    with DatabaseService.date_lock(day):
        engine.events.append('work')

    key = database_service._ADVISORY_NAMESPACE + day.toordinal()
    assert engine.events == [
        ('SELECT pg_advisory_lock(:key)', key),
        'work',
        ('SELECT pg_advisory_unlock(:key)', key),
        'close',
    ]


def test_date_lock_skips_the_advisory_lock_elsewhere(monkeypatch):
    engine = FakeEngine(dialect='sqlite')
    monkeypatch.setattr(database_service, 'db', type('FakeDb', (), {'engine': engine})())
    with DatabaseService.date_lock(date(2024, 3, 14)):
        pass
    assert engine.events == []
