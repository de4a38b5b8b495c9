from flask import Blueprint, jsonify, request

from cdc_attendance import db
from cdc_attendance.forms import BulkStudentRowForm, BulkStudentsForm, StudentForm
from cdc_attendance.models import Student
from cdc_attendance.routes.batches import get_owned_batch
from cdc_attendance.services.database_service import DatabaseService
from cdc_attendance.services.error_service import ValidationError
from cdc_attendance.services.student_service import StudentService
from cdc_attendance.utils.abuse_gate import upload_limit
from cdc_attendance.utils.decorators import teacher_required

bp = Blueprint('students', __name__)


@bp.route('', methods=['POST'])
@teacher_required
def create_student():
    form = StudentForm.from_json().validate_or_raise()
    get_owned_batch(form.batch_id.data)
    student = StudentService.create(
        form.batch_id.data,
        form.name.data,
        roll_no=form.roll_no.data,
        email=form.email.data or None,
        phone=form.phone.data or None,
    )
    return jsonify({'success': True, 'student': student.to_dict()}), 201


@bp.route('/bulk', methods=['POST'])
@upload_limit
@teacher_required
def create_students_bulk():
    payload = request.get_json(silent=True) or {}
    form = BulkStudentsForm.from_json(payload).validate_or_raise()
    get_owned_batch(form.batch_id.data)

    raw_rows = payload.get('students')
    if not isinstance(raw_rows, list) or not raw_rows:
        raise ValidationError.single('students', 'A non-empty list of students is required')

    rows, errors = [], []
    for index, raw in enumerate(raw_rows):
        if not isinstance(raw, dict):
            errors.append({'field': f'students[{index}]', 'message': 'Each student must be an object'})
            continue
        row_form = BulkStudentRowForm.from_json(raw)
        if not row_form.validate():
            errors.extend(
                {'field': f"students[{index}].{error['field']}", 'message': error['message']}
                for error in row_form.error_list()
            )
            continue
        rows.append({
            'name': row_form.name.data,
            'roll_no': row_form.roll_no.data,
            'email': row_form.email.data or None,
            'phone': row_form.phone.data or None,
        })
    if errors:
        raise ValidationError(errors, 'Some students are invalid')

    students = StudentService.create_bulk(form.batch_id.data, rows)
    return jsonify({
        'success': True,
        'message': f'{len(students)} students added',
        'students': [s.to_dict() for s in students],
    }), 201


@bp.route('/batch/<int:batch_id>', methods=['GET'])
@teacher_required
def list_students(batch_id):
    get_owned_batch(batch_id)
    students = StudentService.list_for_batch(batch_id)
    return jsonify({'success': True, 'students': [s.to_dict() for s in students]})


@bp.route('/batch/<int:batch_id>/next-roll-number', methods=['GET'])
@teacher_required
def next_roll_number(batch_id):
    get_owned_batch(batch_id)
    return jsonify({'success': True, 'nextRollNumber': StudentService.next_roll_number(batch_id)})


@bp.route('/<int:student_id>', methods=['DELETE'])
@teacher_required
def delete_student(student_id):
    student = DatabaseService.get_or_404(Student, student_id, 'Student')
    get_owned_batch(student.batch_id)
    db.session.delete(student)
    DatabaseService.commit()
    return jsonify({'success': True, 'message': 'Student deleted'})
