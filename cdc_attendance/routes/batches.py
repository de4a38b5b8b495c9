from flask import Blueprint, g, jsonify

from cdc_attendance import db
from cdc_attendance.forms import BatchFilterForm, BatchForm
from cdc_attendance.models import Batch, Course
from cdc_attendance.services.database_service import DatabaseService
from cdc_attendance.services.error_service import ForbiddenError
from cdc_attendance.services.lab_service import require_time_slot
from cdc_attendance.utils.abuse_gate import sensitive_limit
from cdc_attendance.utils.constants import ROLE_ADMIN
from cdc_attendance.utils.decorators import teacher_required
from cdc_attendance.utils.timezone_utils import get_local_date

bp = Blueprint('batches', __name__)


def get_owned_batch(batch_id):
    """Batch the current user may manage (its creator or an admin)"""
    batch = DatabaseService.get_or_404(Batch, batch_id, 'Batch')
    user = g.current_user
    if user.role != ROLE_ADMIN and batch.created_by != user.id:
        raise ForbiddenError("You can only manage your own batches")
    return batch


@bp.route('', methods=['GET'])
@teacher_required
def list_batches():
    form = BatchFilterForm.from_args().validate_or_raise()
    query = Batch.query
    if g.current_user.role != ROLE_ADMIN:
        query = query.filter_by(created_by=g.current_user.id)
    if form.provided('finished'):
        query = query.filter_by(is_finished=form.finished.data)
    batches = query.order_by(Batch.start_date.desc(), Batch.id.desc()).all()
    return jsonify({'success': True, 'batches': [b.to_dict(include_counts=True) for b in batches]})


@bp.route('', methods=['POST'])
@teacher_required
def create_batch():
    form = BatchForm.from_json().validate_or_raise()
    timing = require_time_slot(form.timing.data)
    DatabaseService.get_or_404(Course, form.course_id.data, 'Course')
    batch = Batch(
        name=form.name.data.strip(),
        course_id=form.course_id.data,
        academic_year=form.academic_year.data,
        section=form.section.data,
        timing=timing,
        start_date=form.start_date.data,
        created_by=g.current_user.id,
    )
    db.session.add(batch)
    DatabaseService.commit()
    return jsonify({'success': True, 'batch': batch.to_dict(include_counts=True)}), 201


@bp.route('/<int:batch_id>', methods=['GET'])
@teacher_required
def get_batch(batch_id):
    batch = get_owned_batch(batch_id)
    return jsonify({'success': True, 'batch': batch.to_dict(include_counts=True)})


@bp.route('/<int:batch_id>', methods=['DELETE'])
@sensitive_limit
@teacher_required
def delete_batch(batch_id):
    batch = get_owned_batch(batch_id)
    db.session.delete(batch)
    DatabaseService.commit()
    return jsonify({'success': True, 'message': 'Batch deleted'})


@bp.route('/<int:batch_id>/toggle-finished', methods=['PUT'])
@teacher_required
def toggle_finished(batch_id):
    batch = get_owned_batch(batch_id)
    batch.is_finished = not batch.is_finished
    batch.end_date = get_local_date() if batch.is_finished else None
    DatabaseService.commit()
    return jsonify({
        'success': True,
        'message': 'Batch marked as finished' if batch.is_finished else 'Batch reopened',
        'batch': batch.to_dict(include_counts=True),
    })
