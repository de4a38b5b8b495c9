"""
Base forms with centralized validation for JSON request bodies
Every handler declares the schema it accepts as a form class
"""
from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import DateField, IntegerField
from wtforms.validators import ValidationError as FieldValidationError

from cdc_attendance.services.error_service import ValidationError
from cdc_attendance.services.validation_service import ValidationService
from cdc_attendance.utils.timezone_utils import parse_date


class BaseForm(FlaskForm):
    """Base form fed from a JSON object or query string"""

    class Meta:
        csrf = False

    @classmethod
    def from_json(cls, payload=None, **kwargs):
        if payload is None:
            payload = request.get_json(silent=True)
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationError.single('body', 'Request body must be a JSON object')
        formdata = MultiDict([
            (key, value) for key, value in payload.items()
            if value is not None and not isinstance(value, (list, dict))
        ])
        return cls(formdata=formdata, **kwargs)

    @classmethod
    def from_args(cls, **kwargs):
        return cls(formdata=request.args, **kwargs)

    def error_list(self):
        return [
            {'field': field.name, 'message': message}
            for field in self
            for message in field.errors
        ]

    def validate_or_raise(self):
        if not self.validate():
            raise ValidationError(self.error_list())
        return self

    def provided(self, name):
        """True when the request carried the field at all"""
        field = self[name]
        return bool(field.raw_data)


class IsoDateField(DateField):
    """Date given as YYYY-MM-DD or an ISO timestamp, normalized to the institute's calendar day"""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        try:
            self.data = parse_date(valuelist[0])
        except (TypeError, ValueError) as e:
            self.data = None
            raise ValueError(self.gettext('Not a valid date value.')) from e


class StrictIntegerField(IntegerField):
    """Integer that refuses JSON booleans and fractional numbers instead of coercing them"""

    def process_formdata(self, valuelist):
        if valuelist and isinstance(valuelist[0], (bool, float)):
            self.data = None
            raise ValueError(self.gettext('Not a valid integer value.'))
        super().process_formdata(valuelist)


def service_validator(check):
    """Adapt a ValidationService check to a WTForms validator"""
    def _validate(form, field):
        if field.data in (None, ''):
            return
        is_valid, message = check(field.data)
        if not is_valid:
            raise FieldValidationError(message)
    return _validate


valid_password = service_validator(ValidationService.validate_password)
valid_role = service_validator(ValidationService.validate_role)
valid_attendance_status = service_validator(ValidationService.validate_attendance_status)
valid_pc_status = service_validator(ValidationService.validate_pc_status)
valid_otp = service_validator(ValidationService.validate_otp)
