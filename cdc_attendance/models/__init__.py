# cdc_attendance/models/__init__.py

from cdc_attendance.models.user import User
from cdc_attendance.models.department import Department, Course
from cdc_attendance.models.batch import Batch
from cdc_attendance.models.student import Student
from cdc_attendance.models.attendance import Attendance
from cdc_attendance.models.workstation import Workstation
from cdc_attendance.models.booking import Booking
from cdc_attendance.models.notification import Notification

__all__ = [
    'User',
    'Department',
    'Course',
    'Batch',
    'Student',
    'Attendance',
    'Workstation',
    'Booking',
    'Notification'
]
