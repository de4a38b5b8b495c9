from flask import Blueprint, g, jsonify, request

from cdc_attendance.forms import AttendanceRecordForm, BulkAttendanceForm, DateRangeForm, MarkAttendanceForm
from cdc_attendance.models import Student
from cdc_attendance.routes.batches import get_owned_batch
from cdc_attendance.services.attendance_service import AttendanceService
from cdc_attendance.services.database_service import DatabaseService
from cdc_attendance.services.error_service import ValidationError
from cdc_attendance.utils.decorators import teacher_required
from cdc_attendance.utils.timezone_utils import parse_date

bp = Blueprint('attendance', __name__)


@bp.route('', methods=['POST'])
@teacher_required
def mark_attendance():
    form = MarkAttendanceForm.from_json().validate_or_raise()
    get_owned_batch(form.batch_id.data)
    result = AttendanceService.mark_single(
        g.current_user,
        form.student_id.data,
        form.batch_id.data,
        form.date.data,
        form.status.data,
        form.remarks.data or None,
    )
    return jsonify(dict(success=True, message='Attendance marked', **result))


@bp.route('/bulk', methods=['POST'])
@teacher_required
def mark_bulk():
    payload = request.get_json(silent=True) or {}
    form = BulkAttendanceForm.from_json(payload).validate_or_raise()
    get_owned_batch(form.batch_id.data)

    raw_records = payload.get('records', payload.get('attendance'))
    if not isinstance(raw_records, list) or not raw_records:
        raise ValidationError.single('records', 'A non-empty list of attendance records is required')

    records, errors = [], []
    for index, raw in enumerate(raw_records):
        if not isinstance(raw, dict):
            errors.append({'field': f'records[{index}]', 'message': 'Each record must be an object'})
            continue
        record_form = AttendanceRecordForm.from_json(raw)
        if not record_form.validate():
            errors.extend(
                {'field': f"records[{index}].{error['field']}", 'message': error['message']}
                for error in record_form.error_list()
            )
            continue
        records.append({
            'student_id': record_form.student_id.data,
            'status': record_form.status.data,
            'remarks': record_form.remarks.data or None,
        })
    if errors:
        raise ValidationError(errors, 'Attendance records are invalid')

    result = AttendanceService.mark_bulk(g.current_user, form.batch_id.data, form.date.data, records)
    return jsonify(dict(success=True, message='Attendance saved', **result))


@bp.route('/batch/<int:batch_id>/date/<date_str>', methods=['GET'])
@teacher_required
def batch_roster(batch_id, date_str):
    get_owned_batch(batch_id)
    try:
        day = parse_date(date_str)
    except ValueError:
        raise ValidationError.single('date', 'Not a valid date value.')
    return jsonify(dict(success=True, **AttendanceService.batch_roster(batch_id, day)))


@bp.route('/batch/<int:batch_id>/stats', methods=['GET'])
@teacher_required
def batch_stats(batch_id):
    get_owned_batch(batch_id)
    form = DateRangeForm.from_args().validate_or_raise()
    stats = AttendanceService.batch_stats(batch_id, form.start_date.data, form.end_date.data)
    return jsonify({'success': True, 'stats': stats})


@bp.route('/student/<int:student_id>/stats', methods=['GET'])
@teacher_required
def student_stats(student_id):
    student = DatabaseService.get_or_404(Student, student_id, 'Student')
    get_owned_batch(student.batch_id)
    return jsonify({'success': True, 'stats': AttendanceService.student_stats(student_id)})


@bp.route('/today', methods=['GET'])
@teacher_required
def today():
    return jsonify(dict(success=True, **AttendanceService.today_summary(g.current_user)))
