"""
Monthly attendance export: a P/A/L grid per batch for one teacher,
as a JSON structure and as an .xlsx workbook.
"""
import calendar
import io
import logging
import re

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font

from cdc_attendance.models import Attendance, Batch, Student, User
from cdc_attendance.models.student import roll_sort_key
from cdc_attendance.services.database_service import DatabaseService
from cdc_attendance.services.error_service import ValidationError
from cdc_attendance.utils.constants import ATTENDANCE_PRESENT, ATTENDANCE_ABSENT, ATTENDANCE_LATE
from cdc_attendance.utils.timezone_utils import month_bounds, days_in_range

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

DISPLAY_STATUS = {
    ATTENDANCE_PRESENT: 'P',
    ATTENDANCE_ABSENT: 'A',
    ATTENDANCE_LATE: 'L',
}

SHEET_NAME_LENGTH = 25
_SHEET_NAME_FORBIDDEN = re.compile(r'[\[\]:*?/\\]')


def sheet_name(name, taken):
    """Workbook-safe sheet title, unique among taken"""
    base = _SHEET_NAME_FORBIDDEN.sub('', name or '').strip()[:SHEET_NAME_LENGTH] or 'Batch'
    candidate, n = base, 2
    while candidate.lower() in taken:
        suffix = f' ({n})'
        candidate = base[:SHEET_NAME_LENGTH - len(suffix)] + suffix
        n += 1
    taken.add(candidate.lower())
    return candidate


class ExportService:
    """Builds the monthly export grid"""

    @staticmethod
    def build(teacher_id, month, year):
        if not 1 <= month <= 12:
            raise ValidationError.single('month', 'Month must be between 1 and 12')
        if not 2000 <= year <= 2100:
            raise ValidationError.single('year', 'Year must be between 2000 and 2100')

        teacher = DatabaseService.get_or_404(User, teacher_id, 'Teacher')
        first_day, last_day = month_bounds(year, month)
        days = [
            {'day': d.day, 'date': d.isoformat(), 'dayName': calendar.day_abbr[d.weekday()]}
            for d in days_in_range(first_day, last_day)
        ]

        batches = [
            b for b in Batch.query.filter_by(created_by=teacher.id).all()
            if b.was_active_between(first_day, last_day)
        ]
        batches.sort(key=lambda b: (b.start_date, b.id))

        taken = set()
        sheets = []
        for batch in batches:
            students = sorted(
                Student.query.filter_by(batch_id=batch.id).all(),
                key=lambda s: (roll_sort_key(s.roll_no), s.id)
            )
            if not students:
                continue

            marks = {
                (mark.student_id, mark.date.day): mark.status
                for mark in Attendance.query.filter(
                    Attendance.batch_id == batch.id,
                    Attendance.date >= first_day,
                    Attendance.date <= last_day,
                )
            }

            rows = []
            for student in students:
                attendance = []
                totals = {ATTENDANCE_PRESENT: 0, ATTENDANCE_ABSENT: 0, ATTENDANCE_LATE: 0}
                for day in days:
                    status = marks.get((student.id, day['day']))
                    if status in totals:
                        totals[status] += 1
                    attendance.append({
                        'day': day['day'],
                        'status': status,
                        'displayStatus': DISPLAY_STATUS.get(status, ''),
                    })
                rows.append({
                    'student': {'id': student.id, 'name': student.name, 'rollNo': student.roll_no},
                    'attendance': attendance,
                    'totals': {
                        'present': totals[ATTENDANCE_PRESENT],
                        'absent': totals[ATTENDANCE_ABSENT],
                        'late': totals[ATTENDANCE_LATE],
                    },
                })

            sheets.append({
                'batch': batch.to_dict(),
                'sheetName': sheet_name(batch.name, taken),
                'days': days,
                'students': rows,
            })

        logger.info(f"Built {calendar.month_name[month]} {year} export for teacher {teacher.id}: "
                    f"{len(sheets)} batches")
        return {
            'teacher': {'id': teacher.id, 'name': teacher.name, 'employeeId': teacher.employee_id},
            'month': month,
            'monthName': calendar.month_name[month],
            'year': year,
            'batches': sheets,
        }

    @staticmethod
    def workbook(structure):
        """Render a built structure to xlsx bytes"""
        wb = Workbook()
        ws = wb.active
        ws.title = 'Summary'

        if not structure['batches']:
            ws.append([f"No batches with students for {structure['monthName']} {structure['year']}"])

        for index, sheet in enumerate(structure['batches']):
            if index == 0:
                ws.title = sheet['sheetName']
            else:
                ws = wb.create_sheet(title=sheet['sheetName'])

            headers = ['Roll No', 'Student Name']
            headers += [f"{day['day']}\n{day['dayName']}" for day in sheet['days']]
            headers += ['Present', 'Absent', 'Late']
            ws.append(headers)
            for cell in ws[1]:
                cell.font = Font(bold=True)
                cell.alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)

            for row in sheet['students']:
                ws.append(
                    [row['student']['rollNo'], row['student']['name']]
                    + [entry['displayStatus'] for entry in row['attendance']]
                    + [row['totals']['present'], row['totals']['absent'], row['totals']['late']]
                )

            ws.column_dimensions['B'].width = 28
            ws.freeze_panes = 'C2'

        in_memory_file = io.BytesIO()
        wb.save(in_memory_file)
        in_memory_file.seek(0)
        return in_memory_file

    @staticmethod
    def filename(structure):
        teacher = re.sub(r'[^A-Za-z0-9]+', '_', structure['teacher']['name']).strip('_') or 'teacher'
        return f"{teacher}_{structure['monthName']}_{structure['year']}_attendance.xlsx"
