import threading
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from cdc_attendance import db
from cdc_attendance.models import Booking
from cdc_attendance.utils.constants import BOOKING_ACTIVE, BOOKING_CANCELLED, TIME_SLOTS

from conftest import (
    ADMIN_EMAIL, ADMIN_PASSWORD, DAY, LAB_TEACHER_EMAIL, LAB_TEACHER_PASSWORD, SLOT, TEACHER_EMAIL,
    TEACHER_PASSWORD,
    board, book, make_client, pc_at, slot_cells
)


def test_booking_shows_pending_cell_and_leaves_others_available(teacher_client, seed):
    pc = pc_at(2, 5)
    student = seed['students'][0]

    response = book(teacher_client, pc, student, seed['batch'])
    assert response.status_code == 201
    booking = response.get_json()['booking']
    assert booking['status'] == BOOKING_ACTIVE
    assert booking['pcId'] == pc.id
    assert booking['student']['name'] == 'Arjun'

    response = board(teacher_client)
    assert response.status_code == 200
    cells = slot_cells(response)
    assert len(cells) == 40
    assert cells[pc.id]['status'] == 'occupied-pending'
    assert cells[pc.id]['bookable'] is False
    assert cells[pc.id]['booking']['studentName'] == 'Arjun'
    assert cells[pc.id]['booking']['attendanceStatus'] == 'not-marked'
    assert all(cell['status'] == 'available' for pc_id, cell in cells.items() if pc_id != pc.id)


def test_availability_without_slot_covers_whole_day(teacher_client, seed):
    response = teacher_client.get(f'/api/lab/availability?date={DAY.isoformat()}')
    assert response.status_code == 200
    data = response.get_json()
    assert [slot['timeSlot'] for slot in data['slots']] == list(TIME_SLOTS)
    assert data['slots'][0]['summary'] == {'available': 40}


def test_second_booking_of_same_cell_is_slot_occupied(teacher_client, seed):
    pc = pc_at(1, 1)
    first, second = seed['students'][:2]
    assert book(teacher_client, pc, first, seed['batch']).status_code == 201

    response = book(teacher_client, pc, second, seed['batch'])
    assert response.status_code == 409
    body = response.get_json()
    assert body['success'] is False
    assert body['error'] == 'SlotOccupied'
    assert Booking.query.filter_by(workstation_id=pc.id, status=BOOKING_ACTIVE).count() == 1


def test_same_cell_other_slot_is_bookable(teacher_client, seed):
    pc = pc_at(1, 1)
    first, second = seed['students'][:2]
    assert book(teacher_client, pc, first, seed['batch']).status_code == 201
    assert book(teacher_client, pc, second, seed['batch'], time_slot=TIME_SLOTS[0]).status_code == 201


def test_student_cannot_hold_two_seats_in_one_slot(teacher_client, seed):
    student = seed['students'][0]
    assert book(teacher_client, pc_at(1, 1), student, seed['batch']).status_code == 201

    response = book(teacher_client, pc_at(1, 2), student, seed['batch'])
    assert response.status_code == 409
    assert response.get_json()['error'] == 'StudentAlreadyBooked'


def test_maintenance_pc_cannot_be_booked(teacher_client, seed):
    pc = pc_at(3, 3)
    response = teacher_client.put(f'/api/lab/pcs/{pc.id}', json={'status': 'maintenance'})
    assert response.status_code == 200
    assert response.get_json()['pc']['status'] == 'maintenance'

    response = book(teacher_client, pc, seed['students'][0], seed['batch'])
    assert response.status_code == 409
    body = response.get_json()
    assert body['error'] == 'WorkstationUnavailable'
    assert body['pcStatus'] == 'maintenance'

    cells = slot_cells(board(teacher_client, time_slot=None))
    assert cells[pc.id]['status'] == 'maintenance'
    assert cells[pc.id]['bookable'] is False


@pytest.mark.parametrize('time_slot', [
    SLOT + ' ',
    '10:30 am - 12:00 pm',
    '10:30 AM-12:00 PM',
    '01:30 PM - 02:00 PM',
])
def test_time_slot_must_match_exactly(teacher_client, seed, time_slot):
    response = book(teacher_client, pc_at(1, 1), seed['students'][0], seed['batch'], time_slot=time_slot)
    assert response.status_code == 400
    body = response.get_json()
    assert body['error'] == 'UnknownTimeSlot'
    assert body['timeSlot'] == time_slot
    assert Booking.query.count() == 0


def test_student_must_belong_to_batch(teacher_client, seed):
    response = book(teacher_client, pc_at(1, 1), seed['outsider'], seed['batch'])
    assert response.status_code == 400
    assert response.get_json()['error'] == 'StudentNotInBatch'


def test_missing_fields_are_validation_errors(teacher_client, seed):
    response = teacher_client.post('/api/lab/bookings', json={'pcId': pc_at(1, 1).id})
    assert response.status_code == 400
    body = response.get_json()
    assert body['error'] == 'ValidationError'
    fields = {error['field'] for error in body['errors']}
    assert {'date', 'timeSlot', 'studentId', 'batchId'} <= fields


@pytest.mark.parametrize('field, value', [
    ('studentId', True),
    ('pcId', 1.9),
    ('batchId', False),
])
def test_ids_must_be_json_integers(teacher_client, seed, field, value):
    response = book(teacher_client, pc_at(1, 1), seed['students'][0], seed['batch'], **{field: value})
    assert response.status_code == 400
    body = response.get_json()
    assert body['error'] == 'ValidationError'
    assert field in {error['field'] for error in body['errors']}
    assert Booking.query.count() == 0


def test_unknown_pc_is_not_found(teacher_client, seed):
    response = teacher_client.post('/api/lab/bookings', json={
        'pcId': 9999, 'date': DAY.isoformat(), 'timeSlot': SLOT,
        'studentId': seed['students'][0].id, 'batchId': seed['batch'].id,
    })
    assert response.status_code == 404
    assert response.get_json()['error'] == 'NotFound'


def test_lab_teacher_can_view_but_not_book(app, seed):
    client = make_client(app, LAB_TEACHER_EMAIL, LAB_TEACHER_PASSWORD)

    assert client.get(f'/api/lab/availability?date={DAY.isoformat()}').status_code == 200
    response = book(client, pc_at(1, 1), seed['students'][0], seed['batch'])
    assert response.status_code == 403
    assert response.get_json()['error'] == 'NotAuthorized'


def test_cancelled_booking_disappears_and_frees_the_cell(teacher_client, seed):
    pc = pc_at(2, 2)
    first, second = seed['students'][:2]
    booking_id = book(teacher_client, pc, first, seed['batch']).get_json()['booking']['id']

    response = teacher_client.delete(f'/api/lab/bookings/{booking_id}')
    assert response.status_code == 200
    assert response.get_json()['booking']['status'] == BOOKING_CANCELLED

    response = board(teacher_client)
    assert slot_cells(response)[pc.id]['status'] == 'available'
    assert response.get_json()['bookings'] == []

    listed = teacher_client.get(f'/api/lab/bookings?date={DAY.isoformat()}&includeCancelled=true').get_json()
    assert [b['id'] for b in listed['bookings']] == [booking_id]

    assert book(teacher_client, pc, second, seed['batch']).status_code == 201


def test_cancel_is_only_for_active_bookings(teacher_client, seed):
    booking_id = book(teacher_client, pc_at(2, 2), seed['students'][0], seed['batch']).get_json()['booking']['id']
    assert teacher_client.delete(f'/api/lab/bookings/{booking_id}').status_code == 200

    response = teacher_client.delete(f'/api/lab/bookings/{booking_id}')
    assert response.status_code == 409
    assert response.get_json()['error'] == 'BookingNotActive'


def test_update_moves_booking_and_rejects_occupied_target(teacher_client, seed):
    first, second = seed['students'][:2]
    moving = book(teacher_client, pc_at(1, 1), first, seed['batch']).get_json()['booking']['id']
    book(teacher_client, pc_at(1, 2), second, seed['batch'])

    response = teacher_client.put(f'/api/lab/bookings/{moving}', json={'pcId': pc_at(1, 2).id})
    assert response.status_code == 409
    assert response.get_json()['error'] == 'SlotOccupied'

    response = teacher_client.put(f'/api/lab/bookings/{moving}', json={'pcId': pc_at(1, 3).id, 'notes': 'Window seat'})
    assert response.status_code == 200
    booking = response.get_json()['booking']
    assert booking['pcId'] == pc_at(1, 3).id
    assert booking['notes'] == 'Window seat'

    response = teacher_client.put(f'/api/lab/bookings/{moving}', json={'timeSlot': 'lunch'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'UnknownTimeSlot'


def test_active_slot_index_rejects_second_active_row(app, seed):
    pc = pc_at(4, 4)
    first, second = seed['students'][:2]
    for student in (first, second):
        db.session.add(Booking(
            workstation_id=pc.id, date=DAY, time_slot=SLOT, student_id=student.id,
            batch_id=seed['batch'].id, booked_by=seed['teacher'].id, status=BOOKING_ACTIVE,
        ))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()

    # A cancelled row does not take the slot
    for student, status in ((first, BOOKING_CANCELLED), (second, BOOKING_ACTIVE)):
        db.session.add(Booking(
            workstation_id=pc.id, date=DAY, time_slot=SLOT, student_id=student.id,
            batch_id=seed['batch'].id, booked_by=seed['teacher'].id, status=status,
        ))
    db.session.commit()
    assert Booking.query.filter_by(workstation_id=pc.id).count() == 2


def test_concurrent_bookings_for_one_cell_have_one_winner(app, seed):
    pc = pc_at(2, 7)
    first, second = seed['students'][:2]
    clients = [
        make_client(app, TEACHER_EMAIL, TEACHER_PASSWORD),
        make_client(app, ADMIN_EMAIL, ADMIN_PASSWORD, ip='1.2.3.9'),
    ]
    pc_id, batch_id = pc.id, seed['batch'].id
    student_ids = [first.id, second.id]
    statuses = []
    start = threading.Barrier(len(clients))

    def attempt(client, student_id):
        start.wait()
        response = client.post('/api/lab/bookings', json={
            'pcId': pc_id, 'date': DAY.isoformat(), 'timeSlot': SLOT,
            'studentId': student_id, 'batchId': batch_id,
        })
        statuses.append((response.status_code, response.get_json()['success']))

    threads = [threading.Thread(target=attempt, args=pair) for pair in zip(clients, student_ids)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(code for code, _ in statuses) == [201, 409]
    db.session.expire_all()
    assert Booking.query.filter_by(workstation_id=pc_id, status=BOOKING_ACTIVE).count() == 1


def test_apply_previous_copies_latest_day_and_reports_failures(teacher_client, seed):
    first, second, third = seed['students'][:3]
    book(teacher_client, pc_at(1, 1), first, seed['batch'])
    book(teacher_client, pc_at(1, 2), second, seed['batch'], time_slot=TIME_SLOTS[2])
    cancelled = book(teacher_client, pc_at(1, 3), third, seed['batch']).get_json()['booking']['id']
    teacher_client.delete(f'/api/lab/bookings/{cancelled}')
    teacher_client.put(f'/api/lab/pcs/{pc_at(1, 2).id}', json={'status': 'maintenance'})

    target = DAY + timedelta(days=1)
    response = teacher_client.post('/api/lab/bookings/apply-previous', json={'targetDate': target.isoformat()})
    assert response.status_code == 200
    data = response.get_json()
    assert data['sourceDate'] == DAY.isoformat()
    assert [(b['pcId'], b['timeSlot'], b['studentId']) for b in data['created']] == [
        (pc_at(1, 1).id, SLOT, first.id)
    ]
    assert len(data['failed']) == 1
    assert data['failed'][0]['error'] == 'WorkstationUnavailable'
    assert data['failed'][0]['studentId'] == second.id

    # Copying again onto the same day conflicts on every row
    response = teacher_client.post('/api/lab/bookings/apply-previous', json={
        'targetDate': target.isoformat(), 'sourceDate': DAY.isoformat(),
    })
    failed = response.get_json()['failed']
    assert {f['error'] for f in failed} == {'SlotOccupied', 'WorkstationUnavailable'}
    assert response.get_json()['created'] == []


def test_apply_previous_chain_preserves_shape(teacher_client, seed):
    first, second = seed['students'][:2]
    book(teacher_client, pc_at(3, 1), first, seed['batch'])
    book(teacher_client, pc_at(3, 2), second, seed['batch'], time_slot=TIME_SLOTS[3])

    def shape(day):
        listed = teacher_client.get(f'/api/lab/bookings?date={day.isoformat()}').get_json()['bookings']
        return sorted((b['pcId'], b['timeSlot'], b['studentId'], b['batchId']) for b in listed)

    next_day, day_after = DAY + timedelta(days=1), DAY + timedelta(days=2)
    teacher_client.post('/api/lab/bookings/apply-previous', json={'targetDate': next_day.isoformat()})
    response = teacher_client.post('/api/lab/bookings/apply-previous', json={'targetDate': day_after.isoformat()})
    assert response.get_json()['sourceDate'] == next_day.isoformat()
    assert shape(DAY) == shape(next_day) == shape(day_after)


def test_apply_previous_without_history(teacher_client, seed):
    response = teacher_client.post('/api/lab/bookings/apply-previous', json={'targetDate': DAY.isoformat()})
    assert response.status_code == 200
    data = response.get_json()
    assert data['sourceDate'] is None
    assert data['created'] == [] and data['failed'] == []


def test_clear_bulk_cancels_matching_active_bookings(teacher_client, seed):
    first, second, third = seed['students'][:3]
    kept = book(teacher_client, pc_at(1, 1), first, seed['batch'], time_slot=TIME_SLOTS[0]).get_json()['booking']['id']
    cleared = [
        book(teacher_client, pc_at(1, 2), second, seed['batch']).get_json()['booking']['id'],
        book(teacher_client, pc_at(1, 3), third, seed['batch'], day=DAY + timedelta(days=1)).get_json()['booking']['id'],
    ]

    response = teacher_client.post('/api/lab/bookings/clear-bulk', json={
        'startDate': DAY.isoformat(),
        'endDate': (DAY + timedelta(days=1)).isoformat(),
        'timeSlot': SLOT,
    })
    assert response.status_code == 200
    data = response.get_json()
    assert data['cancelledCount'] == 2
    assert sorted(data['cancelledIds']) == sorted(cleared)
    assert db.session.get(Booking, kept).status == BOOKING_ACTIVE


def test_clear_bulk_rejects_malformed_pc_ids(teacher_client, seed):
    response = teacher_client.post('/api/lab/bookings/clear-bulk', json={
        'startDate': DAY.isoformat(), 'pcIds': 'all',
    })
    assert response.status_code == 400
    assert response.get_json()['errors'][0]['field'] == 'pcIds'


def test_grid_listing_by_row(teacher_client, seed):
    rows = teacher_client.get('/api/lab/pcs/by-row').get_json()['rows']
    assert [row['rowNumber'] for row in rows] == [1, 2, 3, 4]
    assert all([pc['pcNumber'] for pc in row['pcs']] == list(range(1, 11)) for row in rows)
    assert rows[1]['pcs'][4]['label'] == 'PC205'


def test_sample_grid_is_created_once(teacher_client, seed):
    response = teacher_client.post('/api/lab/pcs/sample')
    assert response.status_code == 200
    assert response.get_json()['created'] == 0


def test_duplicate_workstation_is_rejected(teacher_client, seed):
    response = teacher_client.post('/api/lab/pcs', json={'rowNumber': 1, 'pcNumber': 1})
    assert response.status_code == 409
    assert response.get_json()['error'] == 'DuplicateWorkstation'

    response = teacher_client.post('/api/lab/pcs', json={'rowNumber': 5, 'pcNumber': 1})
    assert response.status_code == 201
    assert response.get_json()['pc']['label'] == 'PC501'


def test_overview_counts(teacher_client, seed):
    book(teacher_client, pc_at(1, 1), seed['students'][0], seed['batch'])
    data = teacher_client.get(f'/api/lab/overview?date={DAY.isoformat()}').get_json()
    assert data['pcs']['total'] == 40
    assert data['bookings']['active'] == 1
    assert data['activeBySlot'][SLOT] == 1
    assert data['utilization'] == 0.5
