from datetime import date

import pytest

from cdc_attendance import create_app, db
from cdc_attendance.models import Batch, Course, Department, Student, User, Workstation
from cdc_attendance.services.lab_service import LabService
from cdc_attendance.utils.constants import ROLE_ADMIN, ROLE_LAB_TEACHER, ROLE_TEACHER, TIME_SLOTS
from config import TestingConfig

BROWSER = 'Mozilla/5.0 (X)'
CLIENT_IP = '1.2.3.4'
DAY = date(2024, 3, 14)
SLOT = '10:30 AM - 12:00 PM'

ADMIN_EMAIL, ADMIN_PASSWORD = 'admin@cdc-institute.in', 'Admin12345'
TEACHER_EMAIL, TEACHER_PASSWORD = 'teacher@cdc-institute.in', 'Teacher123'
OTHER_TEACHER_EMAIL, OTHER_TEACHER_PASSWORD = 'second.teacher@cdc-institute.in', 'Teacher456'
LAB_TEACHER_EMAIL, LAB_TEACHER_PASSWORD = 'lab@cdc-institute.in', 'LabTeach789'


def _user(name, email, password, role, employee_id, department=None):
    user = User(name=name, email=email, role=role, employee_id=employee_id,
                department_id=department.id if department else None)
    user.set_password(password)
    db.session.add(user)
    return user


@pytest.fixture
def app(tmp_path):
    config_class = type('TmpTestingConfig', (TestingConfig,), {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'attendance.db'}",
    })
    app = create_app(config_class)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def seed(app):
    """Department, course, users, two batches with students and the default lab grid"""
    department = Department(name='Computer Aided Design', code='CAD')
    db.session.add(department)
    db.session.flush()
    course = Course(name='AutoCAD Professional', code='ACP', department_id=department.id, duration_months=6)
    db.session.add(course)

    admin = _user('Asha Admin', ADMIN_EMAIL, ADMIN_PASSWORD, ROLE_ADMIN, 'CAD-001', department)
    teacher = _user('Ravi Teacher', TEACHER_EMAIL, TEACHER_PASSWORD, ROLE_TEACHER, 'CAD-002', department)
    other = _user('Meena Teacher', OTHER_TEACHER_EMAIL, OTHER_TEACHER_PASSWORD, ROLE_TEACHER, 'CAD-003',
                  department)
    lab_teacher = _user('Lab Incharge', LAB_TEACHER_EMAIL, LAB_TEACHER_PASSWORD, ROLE_LAB_TEACHER, 'CAD-004',
                        department)
    db.session.flush()

    batch = Batch(name='AutoCAD Morning A', course_id=course.id, academic_year='2023-24', section='A',
                  timing=TIME_SLOTS[1], start_date=date(2024, 1, 8), created_by=teacher.id)
    other_batch = Batch(name='AutoCAD Evening B', course_id=course.id, academic_year='2023-24', section='B',
                        timing=TIME_SLOTS[4], start_date=date(2024, 2, 1), created_by=other.id)
    db.session.add_all([batch, other_batch])
    db.session.flush()

    students = [
        Student(name=name, roll_no=str(roll), batch_id=batch.id)
        for roll, name in enumerate(['Arjun', 'Bhavna', 'Chetan', 'Divya'], start=1)
    ]
    outsider = Student(name='Esha', roll_no='1', batch_id=other_batch.id)
    db.session.add_all(students + [outsider])
    db.session.commit()

    LabService.create_sample_grid()

    return {
        'department': department,
        'course': course,
        'admin': admin,
        'teacher': teacher,
        'other_teacher': other,
        'lab_teacher': lab_teacher,
        'batch': batch,
        'other_batch': other_batch,
        'students': students,
        'outsider': outsider,
    }


def pc_at(row, number):
    return Workstation.query.filter_by(row_number=row, pc_number=number).one()


def make_client(app, email, password, user_agent=BROWSER, ip=CLIENT_IP):
    """Test client logged in through the API; the session rides on the jwt cookie"""
    client = app.test_client()
    client.environ_base.update({'REMOTE_ADDR': ip, 'HTTP_USER_AGENT': user_agent})
    response = client.post('/api/users/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    client.tokens = response.get_json()
    return client


@pytest.fixture
def admin_client(app, seed):
    return make_client(app, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def teacher_client(app, seed):
    return make_client(app, TEACHER_EMAIL, TEACHER_PASSWORD)


@pytest.fixture
def other_teacher_client(app, seed):
    return make_client(app, OTHER_TEACHER_EMAIL, OTHER_TEACHER_PASSWORD, ip='1.2.3.5')


def book(client, pc, student, batch, day=DAY, time_slot=SLOT, **extra):
    payload = {
        'pcId': pc.id,
        'date': day.isoformat(),
        'timeSlot': time_slot,
        'studentId': student.id,
        'batchId': batch.id,
    }
    payload.update(extra)
    return client.post('/api/lab/bookings', json=payload)


def mark_bulk(client, batch, marks, day=DAY):
    return client.post('/api/attendance/bulk', json={
        'batchId': batch.id,
        'date': day.isoformat(),
        'records': [{'studentId': student.id, 'status': status} for student, status in marks],
    })


def board(client, day=DAY, time_slot=SLOT):
    """Availability payload for one day, optionally narrowed to one slot"""
    query = {'date': day.isoformat()}
    if time_slot is not None:
        query['timeSlot'] = time_slot
    return client.get('/api/lab/bookings/with-attendance', query_string=query)


def slot_cells(response, time_slot=SLOT):
    data = response.get_json()
    slot = next(s for s in data['slots'] if s['timeSlot'] == time_slot)
    return {cell['pcId']: cell for cell in slot['cells']}
