from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional, NumberRange

from cdc_attendance.forms.base_forms import BaseForm, IsoDateField, valid_pc_status, StrictIntegerField


class WorkstationForm(BaseForm):
    row_number = StrictIntegerField('Row', validators=[DataRequired(), NumberRange(min=1, max=50)], name='rowNumber')
    pc_number = StrictIntegerField('PC number', validators=[DataRequired(), NumberRange(min=1, max=99)], name='pcNumber')
    label = StringField('Label', validators=[Optional(), Length(max=20)])
    status = StringField('Status', validators=[Optional(), valid_pc_status])
    specifications = StringField('Specifications', validators=[Optional(), Length(max=255)])
    notes = TextAreaField('Notes', validators=[Optional()])


class WorkstationUpdateForm(BaseForm):
    label = StringField('Label', validators=[Optional(), Length(max=20)])
    status = StringField('Status', validators=[Optional(), valid_pc_status])
    specifications = StringField('Specifications', validators=[Optional(), Length(max=255)])
    notes = TextAreaField('Notes', validators=[Optional()])


class BookingForm(BaseForm):
    pc_id = StrictIntegerField('PC', validators=[DataRequired()], name='pcId')
    date = IsoDateField('Date', validators=[DataRequired()])
    # Exact slot matching happens in the lab service
    time_slot = StringField('Time slot', validators=[DataRequired()], name='timeSlot')
    student_id = StrictIntegerField('Student', validators=[DataRequired()], name='studentId')
    batch_id = StrictIntegerField('Batch', validators=[DataRequired()], name='batchId')
    purpose = StringField('Purpose', validators=[Optional(), Length(max=255)])
    notes = TextAreaField('Notes', validators=[Optional()])


class BookingUpdateForm(BaseForm):
    pc_id = StrictIntegerField('PC', validators=[Optional()], name='pcId')
    date = IsoDateField('Date', validators=[Optional()])
    time_slot = StringField('Time slot', validators=[Optional()], name='timeSlot')
    student_id = StrictIntegerField('Student', validators=[Optional()], name='studentId')
    batch_id = StrictIntegerField('Batch', validators=[Optional()], name='batchId')
    purpose = StringField('Purpose', validators=[Optional(), Length(max=255)])
    notes = TextAreaField('Notes', validators=[Optional()])


class AvailabilityQueryForm(BaseForm):
    date = IsoDateField('Date', validators=[DataRequired()])
    time_slot = StringField('Time slot', validators=[Optional()], name='timeSlot')


class DateQueryForm(BaseForm):
    date = IsoDateField('Date', validators=[Optional()])


class ApplyPreviousForm(BaseForm):
    target_date = IsoDateField('Target date', validators=[Optional()], name='targetDate')
    source_date = IsoDateField('Source date', validators=[Optional()], name='sourceDate')


class ClearBulkForm(BaseForm):
    start_date = IsoDateField('Start date', validators=[DataRequired()], name='startDate')
    end_date = IsoDateField('End date', validators=[Optional()], name='endDate')
    batch_id = StrictIntegerField('Batch', validators=[Optional()], name='batchId')
    time_slot = StringField('Time slot', validators=[Optional()], name='timeSlot')
