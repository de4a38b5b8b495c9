from flask import Blueprint, jsonify, request

from cdc_attendance import db
from cdc_attendance.forms import CourseForm, DepartmentForm
from cdc_attendance.models import Course, Department
from cdc_attendance.services.database_service import DatabaseService
from cdc_attendance.services.error_service import ConflictError, ErrorCode
from cdc_attendance.utils.decorators import admin_required, auth_required

bp = Blueprint('catalog', __name__)


@bp.route('/departments', methods=['GET'])
@auth_required
def list_departments():
    departments = Department.query.filter_by(is_active=True).order_by(Department.name).all()
    return jsonify({'success': True, 'departments': [d.to_dict() for d in departments]})


@bp.route('/departments', methods=['POST'])
@admin_required
def create_department():
    form = DepartmentForm.from_json().validate_or_raise()
    code = form.code.data.strip().upper()
    if Department.query.filter((Department.name == form.name.data) | (Department.code == code)).first():
        raise ConflictError(ErrorCode.DUPLICATE_ENTRY, "Department name or code already exists")
    department = Department(name=form.name.data.strip(), code=code, description=form.description.data)
    db.session.add(department)
    DatabaseService.commit()
    return jsonify({'success': True, 'department': department.to_dict()}), 201


@bp.route('/courses', methods=['GET'])
@auth_required
def list_courses():
    query = Course.query.filter_by(is_active=True)
    department_id = request.args.get('departmentId', type=int)
    if department_id:
        query = query.filter_by(department_id=department_id)
    courses = query.order_by(Course.name).all()
    return jsonify({'success': True, 'courses': [c.to_dict() for c in courses]})


@bp.route('/courses', methods=['POST'])
@admin_required
def create_course():
    form = CourseForm.from_json().validate_or_raise()
    DatabaseService.get_or_404(Department, form.department_id.data, 'Department')
    if Course.query.filter_by(department_id=form.department_id.data, name=form.name.data.strip()).first():
        raise ConflictError(ErrorCode.DUPLICATE_ENTRY, "Course already exists in this department")
    course = Course(
        name=form.name.data.strip(),
        code=form.code.data,
        department_id=form.department_id.data,
        duration_months=form.duration_months.data,
    )
    db.session.add(course)
    DatabaseService.commit()
    return jsonify({'success': True, 'course': course.to_dict()}), 201
