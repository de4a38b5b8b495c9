from wtforms import StringField
from wtforms.validators import DataRequired, Length, Optional

from cdc_attendance.forms.base_forms import BaseForm, IsoDateField, valid_attendance_status, StrictIntegerField


class MarkAttendanceForm(BaseForm):
    student_id = StrictIntegerField('Student', validators=[DataRequired()], name='studentId')
    batch_id = StrictIntegerField('Batch', validators=[DataRequired()], name='batchId')
    date = IsoDateField('Date', validators=[DataRequired()])
    status = StringField('Status', validators=[DataRequired(), valid_attendance_status])
    remarks = StringField('Remarks', validators=[Optional(), Length(max=255)])


class BulkAttendanceForm(BaseForm):
    batch_id = StrictIntegerField('Batch', validators=[DataRequired()], name='batchId')
    date = IsoDateField('Date', validators=[DataRequired()])


class AttendanceRecordForm(BaseForm):
    student_id = StrictIntegerField('Student', validators=[DataRequired()], name='studentId')
    status = StringField('Status', validators=[DataRequired(), valid_attendance_status])
    remarks = StringField('Remarks', validators=[Optional(), Length(max=255)])


class DateRangeForm(BaseForm):
    start_date = IsoDateField('Start date', validators=[Optional()], name='startDate')
    end_date = IsoDateField('End date', validators=[Optional()], name='endDate')


class ExportQueryForm(BaseForm):
    month = StrictIntegerField('Month', validators=[DataRequired()])
    year = StrictIntegerField('Year', validators=[DataRequired()])
    format = StringField('Format', validators=[Optional()])
