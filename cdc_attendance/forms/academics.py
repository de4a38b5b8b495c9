from wtforms import StringField, TextAreaField, BooleanField
from wtforms.validators import DataRequired, Email, Length, Optional, NumberRange

from cdc_attendance.forms.base_forms import BaseForm, IsoDateField, StrictIntegerField


class DepartmentForm(BaseForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    code = StringField('Code', validators=[DataRequired(), Length(min=2, max=10)])
    description = TextAreaField('Description', validators=[Optional()])


class CourseForm(BaseForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    code = StringField('Code', validators=[Optional(), Length(max=20)])
    department_id = StrictIntegerField('Department', validators=[DataRequired()], name='departmentId')
    duration_months = StrictIntegerField('Duration', validators=[Optional(), NumberRange(min=1, max=60)],
                                   name='durationMonths')


class BatchForm(BaseForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=120)])
    course_id = StrictIntegerField('Course', validators=[DataRequired()], name='courseId')
    academic_year = StringField('Academic year', validators=[DataRequired(), Length(max=20)],
                                name='academicYear')
    section = StringField('Section', validators=[DataRequired(), Length(max=20)])
    timing = StringField('Timing', validators=[DataRequired()])
    start_date = IsoDateField('Start date', validators=[DataRequired()], name='startDate')


class BatchFilterForm(BaseForm):
    finished = BooleanField('Finished')


class StudentForm(BaseForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    batch_id = StrictIntegerField('Batch', validators=[DataRequired()], name='batchId')
    roll_no = StringField('Roll number', validators=[Optional(), Length(max=20)], name='rollNo')
    email = StringField('Email', validators=[Optional(), Email(), Length(max=120)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])


class BulkStudentsForm(BaseForm):
    batch_id = StrictIntegerField('Batch', validators=[DataRequired()], name='batchId')


class BulkStudentRowForm(BaseForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    roll_no = StringField('Roll number', validators=[Optional(), Length(max=20)], name='rollNo')
    email = StringField('Email', validators=[Optional(), Email(), Length(max=120)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
