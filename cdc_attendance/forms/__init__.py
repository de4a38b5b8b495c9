from cdc_attendance.forms.auth import LoginForm, OTPVerifyForm, SetPasswordForm, RegisterForm
from cdc_attendance.forms.academics import (
    DepartmentForm, CourseForm, BatchForm, BatchFilterForm, StudentForm,
    BulkStudentsForm, BulkStudentRowForm
)
from cdc_attendance.forms.attendance import (
    MarkAttendanceForm, BulkAttendanceForm, AttendanceRecordForm, DateRangeForm, ExportQueryForm
)
from cdc_attendance.forms.lab import (
    WorkstationForm, WorkstationUpdateForm, BookingForm, BookingUpdateForm,
    AvailabilityQueryForm, DateQueryForm, ApplyPreviousForm, ClearBulkForm
)

__all__ = [
    'LoginForm', 'OTPVerifyForm', 'SetPasswordForm', 'RegisterForm',
    'DepartmentForm', 'CourseForm', 'BatchForm', 'BatchFilterForm', 'StudentForm',
    'BulkStudentsForm', 'BulkStudentRowForm',
    'MarkAttendanceForm', 'BulkAttendanceForm', 'AttendanceRecordForm', 'DateRangeForm', 'ExportQueryForm',
    'WorkstationForm', 'WorkstationUpdateForm', 'BookingForm', 'BookingUpdateForm',
    'AvailabilityQueryForm', 'DateQueryForm', 'ApplyPreviousForm', 'ClearBulkForm'
]
