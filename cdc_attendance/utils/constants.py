"""Closed enumerations shared by models, validation and services"""

# Fixed daily slot grid; identifiers are matched exactly
TIME_SLOTS = (
    '09:00 AM - 10:30 AM',
    '10:30 AM - 12:00 PM',
    '12:00 PM - 01:30 PM',
    '02:00 PM - 03:30 PM',
    '03:30 PM - 05:00 PM',
)

ROLE_ADMIN = 'admin'
ROLE_TEACHER = 'teacher'
ROLE_LAB_TEACHER = 'lab-teacher'
ROLES = (ROLE_ADMIN, ROLE_TEACHER, ROLE_LAB_TEACHER)
SELF_REGISTER_ROLES = (ROLE_TEACHER, ROLE_LAB_TEACHER)

ATTENDANCE_PRESENT = 'present'
ATTENDANCE_ABSENT = 'absent'
ATTENDANCE_LATE = 'late'
ATTENDANCE_STATUSES = (ATTENDANCE_PRESENT, ATTENDANCE_ABSENT, ATTENDANCE_LATE)
NOT_MARKED = 'not-marked'
# Marks that release a student's lab seat
SEAT_RELEASING_STATUSES = (ATTENDANCE_ABSENT, ATTENDANCE_LATE)

PC_ACTIVE = 'active'
PC_MAINTENANCE = 'maintenance'
PC_INACTIVE = 'inactive'
PC_STATUSES = (PC_ACTIVE, PC_MAINTENANCE, PC_INACTIVE)

BOOKING_ACTIVE = 'active'
BOOKING_CANCELLED = 'cancelled'
BOOKING_FREED = 'freed'
BOOKING_STATUSES = (BOOKING_ACTIVE, BOOKING_CANCELLED, BOOKING_FREED)
FREED_REASON_PREFIX = 'attendance:'

# Availability projection values
CELL_AVAILABLE = 'available'
CELL_PENDING = 'occupied-pending'
CELL_PRESENT = 'occupied-present'
CELL_LATE = 'occupied-late'
CELL_ABSENT = 'occupied-absent'
CELL_RECENTLY_FREED = 'recently-freed'
CELL_MAINTENANCE = 'maintenance'
CELL_INACTIVE = 'inactive'
BOOKABLE_CELLS = (CELL_AVAILABLE, CELL_RECENTLY_FREED)

DEFAULT_LAB_ROWS = 4
DEFAULT_PCS_PER_ROW = 10
