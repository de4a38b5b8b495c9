from wtforms import StringField, PasswordField
from wtforms.validators import DataRequired, Email, Length, Optional

from cdc_attendance.forms.base_forms import (
    BaseForm, StrictIntegerField, valid_password, valid_role, valid_otp
)


class LoginForm(BaseForm):
    email = StringField('Email', validators=[Optional(), Length(max=120)])
    employee_id = StringField('Employee ID', validators=[Optional(), Length(max=30)], name='employeeId')
    password = PasswordField('Password', validators=[DataRequired()])

    def validate(self, extra_validators=None):
        # Optional() stops the chain on blank fields, so the either-or rule lives here
        if not super().validate(extra_validators):
            return False
        if not self.email.data and not self.employee_id.data:
            self.email.errors.append('Email or employee ID is required')
            return False
        return True


class OTPVerifyForm(BaseForm):
    otp = StringField('OTP', validators=[DataRequired(), valid_otp])


class SetPasswordForm(BaseForm):
    new_password = PasswordField('New password', validators=[DataRequired(), valid_password], name='newPassword')


class RegisterForm(BaseForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    email = StringField('Email', validators=[DataRequired(), Email(), Length(max=120)])
    password = PasswordField('Password', validators=[DataRequired(), valid_password])
    role = StringField('Role', validators=[Optional(), valid_role])
    department_id = StrictIntegerField('Department', validators=[Optional()], name='departmentId')
    employee_id = StringField('Employee ID', validators=[Optional(), Length(max=30)], name='employeeId')
