from datetime import timedelta

from cdc_attendance import db
from cdc_attendance.models import Attendance, Booking
from cdc_attendance.utils.constants import BOOKING_ACTIVE, BOOKING_FREED, SEAT_RELEASING_STATUSES
from cdc_attendance.utils.timezone_utils import get_local_date

from conftest import DAY, SLOT, board, book, mark_bulk, pc_at, slot_cells


def booking_status(booking_id):
    db.session.expire_all()
    return db.session.get(Booking, booking_id).status


def test_absent_mark_frees_the_seat(teacher_client, seed):
    arjun, bhavna = seed['students'][:2]
    pc = pc_at(2, 5)
    booking_id = book(teacher_client, pc, arjun, seed['batch']).get_json()['booking']['id']

    response = mark_bulk(teacher_client, seed['batch'], [(arjun, 'absent'), (bhavna, 'present')])
    assert response.status_code == 200
    data = response.get_json()
    assert data['summary']['absent'] == 1
    assert data['summary']['present'] == 1
    assert data['summary']['created'] == 2
    assert len(data['labBookingUpdates']) == 1
    update = data['labBookingUpdates'][0]
    assert update['bookingId'] == booking_id
    assert (update['from'], update['to']) == ('active', 'freed')
    assert update['reason'] == 'attendance:absent'
    assert data['notes'] == []

    assert booking_status(booking_id) == BOOKING_FREED
    cell = slot_cells(board(teacher_client))[pc.id]
    assert cell['status'] == 'recently-freed'
    assert cell['bookable'] is True
    assert cell['booking']['attendanceStatus'] == 'absent'
    assert cell['booking']['freedReason'] == 'attendance:absent'


def test_freed_seat_notifies_the_booker(teacher_client, seed):
    arjun = seed['students'][0]
    booking_id = book(teacher_client, pc_at(1, 4), arjun, seed['batch']).get_json()['booking']['id']
    mark_bulk(teacher_client, seed['batch'], [(arjun, 'absent')])

    data = teacher_client.get('/api/notifications').get_json()
    assert data['unreadCount'] == 1
    notification = data['notifications'][0]
    assert notification['bookingId'] == booking_id
    assert 'Arjun' in notification['message']

    response = teacher_client.put(f"/api/notifications/{notification['id']}/read")
    assert response.status_code == 200
    assert response.get_json()['notification']['isRead'] is True
    assert teacher_client.get('/api/notifications?unread=true').get_json()['notifications'] == []


def test_late_mark_also_frees_the_seat(teacher_client, seed):
    arjun = seed['students'][0]
    booking_id = book(teacher_client, pc_at(1, 1), arjun, seed['batch']).get_json()['booking']['id']

    response = teacher_client.post('/api/attendance', json={
        'studentId': arjun.id, 'batchId': seed['batch'].id, 'date': DAY.isoformat(), 'status': 'late',
    })
    assert response.status_code == 200
    data = response.get_json()
    assert data['priorStatus'] is None
    assert data['attendance']['status'] == 'late'
    assert [u['bookingId'] for u in data['labBookingUpdates']] == [booking_id]
    assert booking_status(booking_id) == BOOKING_FREED


def test_present_correction_revives_the_booking(teacher_client, seed):
    arjun = seed['students'][0]
    pc = pc_at(2, 5)
    booking_id = book(teacher_client, pc, arjun, seed['batch']).get_json()['booking']['id']
    mark_bulk(teacher_client, seed['batch'], [(arjun, 'absent')])

    response = mark_bulk(teacher_client, seed['batch'], [(arjun, 'present')])
    data = response.get_json()
    assert data['summary']['updated'] == 1
    assert len(data['labBookingUpdates']) == 1
    update = data['labBookingUpdates'][0]
    assert (update['bookingId'], update['from'], update['to']) == (booking_id, 'freed', 'active')
    assert data['notes'] == []

    assert booking_status(booking_id) == BOOKING_ACTIVE
    cell = slot_cells(board(teacher_client))[pc.id]
    assert cell['status'] == 'occupied-present'
    assert cell['booking']['bookingId'] == booking_id


def test_revival_is_skipped_when_seat_was_rebooked(teacher_client, admin_client, seed):
    arjun, bhavna = seed['students'][:2]
    pc = pc_at(2, 5)
    freed_id = book(teacher_client, pc, arjun, seed['batch']).get_json()['booking']['id']
    mark_bulk(teacher_client, seed['batch'], [(arjun, 'absent')])

    response = book(admin_client, pc, bhavna, seed['batch'])
    assert response.status_code == 201
    new_id = response.get_json()['booking']['id']

    response = mark_bulk(teacher_client, seed['batch'], [(arjun, 'present')])
    assert response.status_code == 200
    data = response.get_json()
    assert data['labBookingUpdates'] == []
    assert len(data['notes']) == 1
    note = data['notes'][0]
    assert note['kind'] == 'RevivalConflict'
    assert note['bookingId'] == freed_id
    assert note['conflictingBookingId'] == new_id
    assert data['attendance'][0]['status'] == 'present'

    assert booking_status(freed_id) == BOOKING_FREED
    assert booking_status(new_id) == BOOKING_ACTIVE
    cell = slot_cells(board(teacher_client))[pc.id]
    assert cell['status'] == 'occupied-pending'
    assert cell['booking']['studentName'] == 'Bhavna'


def test_repeating_the_same_marks_changes_no_bookings(teacher_client, seed):
    arjun, bhavna = seed['students'][:2]
    book(teacher_client, pc_at(1, 1), arjun, seed['batch'])
    marks = [(arjun, 'absent'), (bhavna, 'present')]

    first = mark_bulk(teacher_client, seed['batch'], marks).get_json()
    second = mark_bulk(teacher_client, seed['batch'], marks).get_json()
    assert len(first['labBookingUpdates']) == 1
    assert second['labBookingUpdates'] == []
    assert second['notes'] == []
    assert second['summary']['unchanged'] == 2
    assert Attendance.query.filter_by(date=DAY).count() == 2


def test_coupling_only_touches_the_marked_day(teacher_client, seed):
    arjun = seed['students'][0]
    same_day = book(teacher_client, pc_at(1, 1), arjun, seed['batch']).get_json()['booking']['id']
    next_day = book(teacher_client, pc_at(1, 1), arjun, seed['batch'],
                    day=DAY + timedelta(days=1)).get_json()['booking']['id']

    mark_bulk(teacher_client, seed['batch'], [(arjun, 'absent')])
    assert booking_status(same_day) == BOOKING_FREED
    assert booking_status(next_day) == BOOKING_ACTIVE


def test_invalid_record_rejects_the_whole_roster(teacher_client, seed):
    arjun = seed['students'][0]
    booking_id = book(teacher_client, pc_at(1, 1), arjun, seed['batch']).get_json()['booking']['id']

    response = mark_bulk(teacher_client, seed['batch'], [(arjun, 'absent'), (seed['outsider'], 'present')])
    assert response.status_code == 400
    body = response.get_json()
    assert body['error'] == 'ValidationError'
    assert body['errors'][0]['field'] == 'records[1].studentId'

    assert Attendance.query.count() == 0
    assert booking_status(booking_id) == BOOKING_ACTIVE


def test_record_with_unknown_status_is_rejected(teacher_client, seed):
    arjun, bhavna = seed['students'][:2]
    response = mark_bulk(teacher_client, seed['batch'], [(arjun, 'present'), (bhavna, 'excused')])
    assert response.status_code == 400
    assert response.get_json()['errors'][0]['field'] == 'records[1].status'
    assert Attendance.query.count() == 0


def test_duplicate_student_in_roster_is_rejected(teacher_client, seed):
    arjun = seed['students'][0]
    response = mark_bulk(teacher_client, seed['batch'], [(arjun, 'present'), (arjun, 'absent')])
    assert response.status_code == 400
    assert Attendance.query.count() == 0


def test_booking_a_student_marked_absent_conflicts(teacher_client, seed):
    arjun, bhavna = seed['students'][:2]
    mark_bulk(teacher_client, seed['batch'], [(arjun, 'absent'), (bhavna, 'present')])

    response = book(teacher_client, pc_at(1, 1), arjun, seed['batch'])
    assert response.status_code == 409
    body = response.get_json()
    assert body['error'] == 'AttendanceConflict'
    assert body['attendanceStatus'] == 'absent'

    response = book(teacher_client, pc_at(1, 2), bhavna, seed['batch'])
    assert response.status_code == 201
    assert slot_cells(board(teacher_client))[pc_at(1, 2).id]['status'] == 'occupied-present'


def test_no_absent_or_late_student_keeps_an_active_booking(teacher_client, seed):
    students = seed['students']
    for index, student in enumerate(students):
        book(teacher_client, pc_at(1, index + 1), student, seed['batch'])
    statuses = ['absent', 'late', 'present', 'absent']
    mark_bulk(teacher_client, seed['batch'], list(zip(students, statuses)))
    mark_bulk(teacher_client, seed['batch'], list(zip(students, ['present', 'absent', 'late', 'absent'])))

    db.session.expire_all()
    for mark in Attendance.query.filter_by(date=DAY):
        if mark.status in SEAT_RELEASING_STATUSES:
            assert Booking.query.filter_by(
                student_id=mark.student_id, date=DAY, status=BOOKING_ACTIVE
            ).count() == 0
    revived = Booking.query.filter_by(student_id=students[0].id, date=DAY, time_slot=SLOT).one()
    assert revived.status == BOOKING_ACTIVE


def test_roster_reports_unmarked_students(teacher_client, seed):
    arjun, bhavna = seed['students'][:2]
    mark_bulk(teacher_client, seed['batch'], [(arjun, 'absent'), (bhavna, 'present')])

    response = teacher_client.get(f"/api/attendance/batch/{seed['batch'].id}/date/{DAY.isoformat()}")
    assert response.status_code == 200
    data = response.get_json()
    assert [row['status'] for row in data['students']] == ['absent', 'present', 'not-marked', 'not-marked']
    assert [row['student']['rollNo'] for row in data['students']] == ['1', '2', '3', '4']
    assert data['summary'] == {'total': 4, 'present': 1, 'absent': 1, 'late': 0, 'not-marked': 2}

    response = teacher_client.get(f"/api/attendance/batch/{seed['batch'].id}/date/14-03-2024x")
    assert response.status_code == 400


def test_batch_and_student_stats(teacher_client, seed):
    arjun, bhavna, chetan, divya = seed['students']
    mark_bulk(teacher_client, seed['batch'],
              [(arjun, 'present'), (bhavna, 'absent'), (chetan, 'late'), (divya, 'present')])
    mark_bulk(teacher_client, seed['batch'],
              [(s, 'present') for s in seed['students']], day=DAY + timedelta(days=1))

    response = teacher_client.get(f"/api/attendance/batch/{seed['batch'].id}/stats", query_string={
        'startDate': DAY.isoformat(), 'endDate': (DAY + timedelta(days=1)).isoformat(),
    })
    assert response.status_code == 200
    stats = response.get_json()['stats']
    assert stats['studentCount'] == 4
    assert stats['uniqueDatesCount'] == 2
    assert stats['expectedTotalRecords'] == 8
    assert stats['totalRecords'] == 8
    assert (stats['present'], stats['absent'], stats['late']) == (6, 1, 1)
    assert stats['presentPercentage'] == 75.0
    assert stats['attendanceRate'] == 87.5
    assert [day['date'] for day in stats['daily']] == [DAY.isoformat(), (DAY + timedelta(days=1)).isoformat()]

    response = teacher_client.get(f'/api/attendance/student/{bhavna.id}/stats')
    student_stats = response.get_json()['stats']
    assert student_stats['overall']['total'] == 2
    assert student_stats['overall']['absent'] == 1
    assert student_stats['overall']['attendanceRate'] == 50.0
    assert student_stats['batches'][0]['batchName'] == 'AutoCAD Morning A'


def test_stats_reject_inverted_range(teacher_client, seed):
    response = teacher_client.get(f"/api/attendance/batch/{seed['batch'].id}/stats", query_string={
        'startDate': DAY.isoformat(), 'endDate': (DAY - timedelta(days=1)).isoformat(),
    })
    assert response.status_code == 400


def test_stats_default_range_for_a_batch_not_started_yet(teacher_client, seed):
    today = get_local_date()
    seed['batch'].start_date = today + timedelta(days=30)
    db.session.commit()

    response = teacher_client.get(f"/api/attendance/batch/{seed['batch'].id}/stats")
    assert response.status_code == 200
    stats = response.get_json()['stats']
    assert stats['startDate'] == stats['endDate'] == today.isoformat()
    assert stats['totalRecords'] == 0


def test_teachers_only_mark_their_own_batches(other_teacher_client, seed):
    response = mark_bulk(other_teacher_client, seed['batch'], [(seed['students'][0], 'present')])
    assert response.status_code == 403
    assert response.get_json()['error'] == 'NotAuthorized'
    assert Attendance.query.count() == 0


def test_single_mark_rejects_student_from_another_batch(teacher_client, seed):
    response = teacher_client.post('/api/attendance', json={
        'studentId': seed['outsider'].id, 'batchId': seed['batch'].id,
        'date': DAY.isoformat(), 'status': 'present',
    })
    assert response.status_code == 400
    assert response.get_json()['error'] == 'StudentNotInBatch'


def test_today_summary_lists_running_batches(teacher_client, seed):
    response = teacher_client.get('/api/attendance/today')
    assert response.status_code == 200
    data = response.get_json()
    assert [row['batchName'] for row in data['batches']] == ['AutoCAD Morning A']
    assert data['batches'][0]['studentCount'] == 4
    assert data['batches'][0]['not-marked'] == 4
