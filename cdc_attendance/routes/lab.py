from flask import Blueprint, g, jsonify, request

from cdc_attendance.forms import (
    ApplyPreviousForm, AvailabilityQueryForm, BookingForm, BookingUpdateForm, ClearBulkForm,
    DateQueryForm, WorkstationForm, WorkstationUpdateForm
)
from cdc_attendance.services.error_service import ValidationError
from cdc_attendance.services.lab_service import LabService
from cdc_attendance.utils.abuse_gate import sensitive_limit
from cdc_attendance.utils.decorators import auth_required, lab_access_required, teacher_required
from cdc_attendance.utils.timezone_utils import get_local_date

bp = Blueprint('lab', __name__)


# Workstations

@bp.route('/pcs', methods=['GET'])
@auth_required
def list_pcs():
    pcs = LabService.list_workstations(request.args.get('status'))
    return jsonify({'success': True, 'pcs': [pc.to_dict() for pc in pcs]})


@bp.route('/pcs/by-row', methods=['GET'])
@auth_required
def pcs_by_row():
    return jsonify({'success': True, 'rows': LabService.workstations_by_row()})


@bp.route('/pcs', methods=['POST'])
@teacher_required
def create_pc():
    form = WorkstationForm.from_json().validate_or_raise()
    pc = LabService.create_workstation(
        form.row_number.data,
        form.pc_number.data,
        label=form.label.data or None,
        status=form.status.data or None,
        specifications=form.specifications.data or None,
        notes=form.notes.data or None,
    )
    return jsonify({'success': True, 'pc': pc.to_dict()}), 201


@bp.route('/pcs/<int:pc_id>', methods=['PUT'])
@teacher_required
def update_pc(pc_id):
    form = WorkstationUpdateForm.from_json().validate_or_raise()
    pc = LabService.update_workstation(
        pc_id,
        label=form.label.data or None,
        status=form.status.data or None,
        specifications=form.specifications.data or None,
        notes=form.notes.data or None,
    )
    return jsonify({'success': True, 'pc': pc.to_dict()})


@bp.route('/pcs/sample', methods=['POST'])
@teacher_required
def create_sample_pcs():
    pcs = LabService.create_sample_grid()
    message = f'{len(pcs)} PCs created' if pcs else 'Lab inventory already exists'
    return jsonify({'success': True, 'message': message, 'created': len(pcs)}), 201 if pcs else 200


# Bookings

@bp.route('/bookings', methods=['GET'])
@auth_required
def list_bookings():
    form = DateQueryForm.from_args().validate_or_raise()
    day = form.date.data or get_local_date()
    include_cancelled = request.args.get('includeCancelled', 'false').lower() in ('true', '1')
    bookings = LabService.list_bookings(day, request.args.get('timeSlot'), include_cancelled)
    return jsonify({
        'success': True,
        'date': day.isoformat(),
        'bookings': [b.to_dict() for b in bookings],
    })


@bp.route('/bookings', methods=['POST'])
@lab_access_required
def create_booking():
    form = BookingForm.from_json().validate_or_raise()
    booking = LabService.create_booking(
        g.current_user,
        form.pc_id.data,
        form.date.data,
        form.time_slot.data,
        form.student_id.data,
        form.batch_id.data,
        purpose=form.purpose.data or None,
        notes=form.notes.data or None,
    )
    return jsonify({'success': True, 'message': 'PC booked', 'booking': booking.to_dict()}), 201


@bp.route('/bookings/<int:booking_id>', methods=['PUT'])
@lab_access_required
def update_booking(booking_id):
    form = BookingUpdateForm.from_json().validate_or_raise()
    booking = LabService.update_booking(
        g.current_user,
        booking_id,
        pc_id=form.pc_id.data,
        day=form.date.data,
        time_slot=form.time_slot.data if form.provided('time_slot') else None,
        student_id=form.student_id.data,
        batch_id=form.batch_id.data,
        purpose=form.purpose.data if form.provided('purpose') else None,
        notes=form.notes.data if form.provided('notes') else None,
    )
    return jsonify({'success': True, 'message': 'Booking updated', 'booking': booking.to_dict()})


@bp.route('/bookings/<int:booking_id>', methods=['DELETE'])
@lab_access_required
def cancel_booking(booking_id):
    booking = LabService.cancel_booking(g.current_user, booking_id)
    return jsonify({'success': True, 'message': 'Booking cancelled', 'booking': booking.to_dict()})


@bp.route('/bookings/with-attendance', methods=['GET'])
@auth_required
def bookings_with_attendance():
    form = AvailabilityQueryForm.from_args().validate_or_raise()
    time_slot = form.time_slot.data if form.provided('time_slot') else None
    return jsonify(dict(success=True, **LabService.availability(form.date.data, time_slot)))


@bp.route('/availability', methods=['GET'])
@auth_required
def availability():
    form = DateQueryForm.from_args().validate_or_raise()
    return jsonify(dict(success=True, **LabService.availability(form.date.data or get_local_date())))


@bp.route('/bookings/apply-previous', methods=['POST'])
@lab_access_required
def apply_previous():
    form = ApplyPreviousForm.from_json().validate_or_raise()
    target_day = form.target_date.data or get_local_date()
    result = LabService.apply_previous(g.current_user, target_day, form.source_date.data)
    return jsonify(dict(success=True, **result))


@bp.route('/bookings/clear-bulk', methods=['POST'])
@sensitive_limit
@lab_access_required
def clear_bulk():
    payload = request.get_json(silent=True) or {}
    form = ClearBulkForm.from_json(payload).validate_or_raise()
    pc_ids = payload.get('pcIds')
    if pc_ids is not None and (
        not isinstance(pc_ids, list) or not all(isinstance(pc_id, int) for pc_id in pc_ids)
    ):
        raise ValidationError.single('pcIds', 'pcIds must be a list of PC ids')

    cancelled = LabService.clear_bulk(
        g.current_user,
        form.start_date.data,
        end_date=form.end_date.data,
        batch_id=form.batch_id.data,
        pc_ids=pc_ids,
        time_slot=form.time_slot.data or None,
    )
    return jsonify({
        'success': True,
        'message': f'{len(cancelled)} bookings cancelled',
        'cancelledCount': len(cancelled),
        'cancelledIds': cancelled,
    })


@bp.route('/overview', methods=['GET'])
@auth_required
def overview():
    form = DateQueryForm.from_args().validate_or_raise()
    return jsonify(dict(success=True, **LabService.overview(form.date.data or get_local_date())))
