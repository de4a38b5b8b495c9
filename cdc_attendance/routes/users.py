from flask import Blueprint, current_app, g, jsonify, send_file

from cdc_attendance.forms import ExportQueryForm, RegisterForm
from cdc_attendance.models import User
from cdc_attendance.services.auth_service import AuthService
from cdc_attendance.services.database_service import DatabaseService
from cdc_attendance.services.error_service import ForbiddenError, ValidationError
from cdc_attendance.services.export_service import ExportService, XLSX_MIMETYPE
from cdc_attendance.utils.abuse_gate import sensitive_limit
from cdc_attendance.utils.constants import (
    ROLE_ADMIN, ROLE_TEACHER, ROLE_LAB_TEACHER, SELF_REGISTER_ROLES
)
from cdc_attendance.utils.decorators import admin_required, auth_required

bp = Blueprint('users', __name__)


def _create_user(form, role):
    user = AuthService.register(
        form.name.data,
        form.email.data,
        form.password.data,
        role,
        department_id=form.department_id.data,
        employee_id=form.employee_id.data,
    )
    return jsonify({'success': True, 'message': 'User created', 'user': user.to_dict()}), 201


@bp.route('', methods=['POST'])
@sensitive_limit
def register():
    """Self-registration for teachers and lab teachers"""
    if not current_app.config['ALLOW_SELF_REGISTRATION']:
        raise ForbiddenError("Self-registration is disabled")
    form = RegisterForm.from_json().validate_or_raise()
    role = form.role.data or ROLE_TEACHER
    if role not in SELF_REGISTER_ROLES:
        raise ForbiddenError(f"Role '{role}' cannot be self-registered")
    return _create_user(form, role)


@bp.route('/teachers', methods=['POST'])
@admin_required
def create_teacher():
    form = RegisterForm.from_json().validate_or_raise()
    if (form.role.data or ROLE_TEACHER) != ROLE_TEACHER:
        raise ValidationError.single('role', 'Only the teacher role can be created here')
    return _create_user(form, ROLE_TEACHER)


@bp.route('/admins', methods=['POST'])
@admin_required
def create_admin():
    form = RegisterForm.from_json().validate_or_raise()
    if (form.role.data or ROLE_ADMIN) != ROLE_ADMIN:
        raise ValidationError.single('role', 'Only the admin role can be created here')
    return _create_user(form, ROLE_ADMIN)


@bp.route('/teachers', methods=['GET'])
@auth_required
def list_teachers():
    teachers = User.query.filter(
        User.role.in_([ROLE_TEACHER, ROLE_LAB_TEACHER]),
        User.is_active.is_(True),
    ).order_by(User.name).all()
    return jsonify({'success': True, 'teachers': [t.to_dict() for t in teachers]})


@bp.route('/<int:user_id>/deactivate', methods=['PUT'])
@admin_required
def deactivate(user_id):
    user = DatabaseService.get_or_404(User, user_id, 'User')
    if user.id == g.current_user.id:
        raise ValidationError.single('userId', 'You cannot deactivate your own account')
    AuthService.deactivate(user)
    return jsonify({'success': True, 'message': 'User deactivated', 'user': user.to_dict()})


@bp.route('/teachers/<int:teacher_id>/attendance-export', methods=['GET'])
@auth_required
def attendance_export(teacher_id):
    user = g.current_user
    if user.role != ROLE_ADMIN and user.id != teacher_id:
        raise ForbiddenError("You can only export your own attendance")

    form = ExportQueryForm.from_args().validate_or_raise()
    structure = ExportService.build(teacher_id, form.month.data, form.year.data)

    if (form.format.data or 'json').lower() == 'xlsx':
        return send_file(
            ExportService.workbook(structure),
            as_attachment=True,
            download_name=ExportService.filename(structure),
            mimetype=XLSX_MIMETYPE,
        )
    return jsonify({'success': True, 'data': structure})
