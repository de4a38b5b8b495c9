"""
Attendance engine: per-batch daily marks, bulk apply with lab coupling,
rosters and aggregates.
"""
import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta

from cdc_attendance import db
from cdc_attendance.models import Attendance, Batch, Student
from cdc_attendance.models.student import roll_sort_key
from cdc_attendance.services.database_service import DatabaseService, with_store_retry
from cdc_attendance.services.error_service import ForbiddenError, StudentNotInBatch, ValidationError
from cdc_attendance.services.lab_service import LabService
from cdc_attendance.utils.constants import (
    ROLE_ADMIN, ROLE_TEACHER, ATTENDANCE_PRESENT, ATTENDANCE_ABSENT, ATTENDANCE_LATE, NOT_MARKED
)
from cdc_attendance.utils.timezone_utils import get_local_date

logger = logging.getLogger(__name__)

MARKER_ROLES = (ROLE_ADMIN, ROLE_TEACHER)
ROLLING_WINDOW_DAYS = 30


def _percentage(part, whole):
    return round(part / whole * 100, 2) if whole else 0.0


class AttendanceService:
    """Attendance marks and aggregates"""

    @staticmethod
    def _check_marker(user):
        if user is None or user.role not in MARKER_ROLES:
            raise ForbiddenError("Only teachers and admins can mark attendance")

    @staticmethod
    def _write_mark(actor, student_id, batch_id, day, status, remarks):
        """
        Create or overwrite one mark and run the lab coupling.

        Caller holds the date lock and commits. Rewriting the same status
        leaves bookings untouched.
        """
        mark = Attendance.query.filter_by(student_id=student_id, date=day).first()
        prior_status = mark.status if mark else None
        if mark is None:
            mark = Attendance(student_id=student_id, batch_id=batch_id, date=day)
            db.session.add(mark)
        mark.batch_id = batch_id
        mark.status = status
        mark.remarks = remarks
        mark.marked_by = actor.id
        mark.marked_at = datetime.utcnow()

        if prior_status == status:
            return mark, prior_status, [], []
        updates, notes = LabService.couple_attendance(student_id, day, status)
        return mark, prior_status, updates, notes

    @staticmethod
    @with_store_retry
    def mark_single(actor, student_id, batch_id, day, status, remarks=None):
        AttendanceService._check_marker(actor)
        student = DatabaseService.get_or_404(Student, student_id, 'Student')
        DatabaseService.get_or_404(Batch, batch_id, 'Batch')
        if student.batch_id != batch_id:
            raise StudentNotInBatch()

        with DatabaseService.date_lock(day):
            try:
                mark, prior_status, updates, notes = AttendanceService._write_mark(
                    actor, student_id, batch_id, day, status, remarks
                )
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise

        return {
            'attendance': mark.to_dict(),
            'priorStatus': prior_status,
            'labBookingUpdates': updates,
            'notes': notes,
        }

    @staticmethod
    def _validate_records(batch, records):
        """records: list of dicts with student_id, status, remarks"""
        errors = []
        ids = [record['student_id'] for record in records]
        students = {s.id: s for s in Student.query.filter(Student.id.in_(ids))} if ids else {}
        seen = set()
        for index, record in enumerate(records):
            student_id = record['student_id']
            field = f'records[{index}].studentId'
            if student_id in seen:
                errors.append({'field': field, 'message': 'Student appears more than once'})
            seen.add(student_id)
            student = students.get(student_id)
            if student is None:
                errors.append({'field': field, 'message': f'Student {student_id} not found'})
            elif student.batch_id != batch.id:
                errors.append({'field': field, 'message': f'Student {student_id} does not belong to this batch'})
        if errors:
            raise ValidationError(errors, 'Attendance records are invalid')

    @staticmethod
    @with_store_retry
    def mark_bulk(actor, batch_id, day, records):
        """
        Apply a whole roster for one day in a single transaction.

        Any invalid record rejects the request before anything is written;
        a failure while writing rolls every mark and booking change back.
        """
        AttendanceService._check_marker(actor)
        batch = DatabaseService.get_or_404(Batch, batch_id, 'Batch')
        if not records:
            raise ValidationError.single('records', 'At least one attendance record is required')
        AttendanceService._validate_records(batch, records)

        results, all_updates, all_notes = [], [], []
        summary = Counter()
        with DatabaseService.date_lock(day):
            try:
                for record in records:
                    mark, prior_status, updates, notes = AttendanceService._write_mark(
                        actor, record['student_id'], batch.id, day, record['status'], record.get('remarks')
                    )
                    results.append(mark)
                    all_updates.extend(updates)
                    all_notes.extend(notes)
                    summary[record['status']] += 1
                    if prior_status is None:
                        summary['created'] += 1
                    elif prior_status == record['status']:
                        summary['unchanged'] += 1
                    else:
                        summary['updated'] += 1
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise

        logger.info(f"Bulk attendance for batch {batch.id} on {day}: {len(records)} marks, "
                    f"{len(all_updates)} booking transitions, {len(all_notes)} conflicts")
        return {
            'batchId': batch.id,
            'date': day.isoformat(),
            'summary': {
                'total': len(records),
                ATTENDANCE_PRESENT: summary[ATTENDANCE_PRESENT],
                ATTENDANCE_ABSENT: summary[ATTENDANCE_ABSENT],
                ATTENDANCE_LATE: summary[ATTENDANCE_LATE],
                'created': summary['created'],
                'updated': summary['updated'],
                'unchanged': summary['unchanged'],
            },
            'attendance': [mark.to_dict() for mark in results],
            'labBookingUpdates': all_updates,
            'notes': all_notes,
        }

    @staticmethod
    def batch_roster(batch_id, day):
        """Every student of the batch with their mark for the day or not-marked"""
        batch = DatabaseService.get_or_404(Batch, batch_id, 'Batch')
        students = sorted(batch.students, key=lambda s: roll_sort_key(s.roll_no))
        marks = {
            mark.student_id: mark
            for mark in Attendance.query.filter(
                Attendance.date == day,
                Attendance.student_id.in_([s.id for s in students]),
            )
        } if students else {}

        roster = []
        counts = Counter()
        for student in students:
            mark = marks.get(student.id)
            status = mark.status if mark else NOT_MARKED
            counts[status] += 1
            roster.append({
                'student': student.to_dict(),
                'status': status,
                'remarks': mark.remarks if mark else None,
                'attendanceId': mark.id if mark else None,
            })
        return {
            'batch': batch.to_dict(),
            'date': day.isoformat(),
            'students': roster,
            'summary': {
                'total': len(students),
                ATTENDANCE_PRESENT: counts[ATTENDANCE_PRESENT],
                ATTENDANCE_ABSENT: counts[ATTENDANCE_ABSENT],
                ATTENDANCE_LATE: counts[ATTENDANCE_LATE],
                NOT_MARKED: counts[NOT_MARKED],
            },
        }

    @staticmethod
    def batch_stats(batch_id, start_date=None, end_date=None):
        """
        Aggregates over a date range.

        Percentages are relative to the expected number of marks
        (students x distinct marked dates). The rolling average covers the
        30 days ending at end_date and counts late as attended.
        """
        batch = DatabaseService.get_or_404(Batch, batch_id, 'Batch')
        end_date = end_date or get_local_date()
        start_date = start_date or min(batch.start_date, end_date)
        if start_date > end_date:
            raise ValidationError.single('startDate', 'Start date must not be after end date')

        student_count = Student.query.filter_by(batch_id=batch.id).count()
        rolling_start = min(start_date, end_date - timedelta(days=ROLLING_WINDOW_DAYS - 1))
        records = Attendance.query.filter(
            Attendance.batch_id == batch.id,
            Attendance.date >= rolling_start,
            Attendance.date <= end_date,
        ).all()

        in_range = [r for r in records if r.date >= start_date]
        counts = Counter(r.status for r in in_range)
        unique_dates = {r.date for r in in_range}
        expected = student_count * len(unique_dates)

        daily = defaultdict(Counter)
        for record in in_range:
            daily[record.date][record.status] += 1

        rolling_from = end_date - timedelta(days=ROLLING_WINDOW_DAYS - 1)
        rolling = [r for r in records if r.date >= rolling_from]
        rolling_expected = student_count * len({r.date for r in rolling})
        rolling_attended = sum(1 for r in rolling if r.status in (ATTENDANCE_PRESENT, ATTENDANCE_LATE))

        return {
            'batch': batch.to_dict(),
            'startDate': start_date.isoformat(),
            'endDate': end_date.isoformat(),
            'studentCount': student_count,
            'uniqueDatesCount': len(unique_dates),
            'expectedTotalRecords': expected,
            'totalRecords': len(in_range),
            'present': counts[ATTENDANCE_PRESENT],
            'absent': counts[ATTENDANCE_ABSENT],
            'late': counts[ATTENDANCE_LATE],
            'presentPercentage': _percentage(counts[ATTENDANCE_PRESENT], expected),
            'absentPercentage': _percentage(counts[ATTENDANCE_ABSENT], expected),
            'latePercentage': _percentage(counts[ATTENDANCE_LATE], expected),
            'attendanceRate': _percentage(counts[ATTENDANCE_PRESENT] + counts[ATTENDANCE_LATE], expected),
            'rollingAverage30d': _percentage(rolling_attended, rolling_expected),
            'daily': [
                {
                    'date': day.isoformat(),
                    ATTENDANCE_PRESENT: day_counts[ATTENDANCE_PRESENT],
                    ATTENDANCE_ABSENT: day_counts[ATTENDANCE_ABSENT],
                    ATTENDANCE_LATE: day_counts[ATTENDANCE_LATE],
                }
                for day, day_counts in sorted(daily.items())
            ],
        }

    @staticmethod
    def student_stats(student_id):
        """Totals per batch the student has marks in, plus overall"""
        student = DatabaseService.get_or_404(Student, student_id, 'Student')
        records = Attendance.query.filter_by(student_id=student.id).order_by(Attendance.date.desc()).all()

        per_batch = defaultdict(Counter)
        for record in records:
            per_batch[record.batch_id][record.status] += 1
        batches = {b.id: b for b in Batch.query.filter(Batch.id.in_(list(per_batch)))} if per_batch else {}

        def summarize(counts):
            total = sum(counts.values())
            return {
                'total': total,
                ATTENDANCE_PRESENT: counts[ATTENDANCE_PRESENT],
                ATTENDANCE_ABSENT: counts[ATTENDANCE_ABSENT],
                ATTENDANCE_LATE: counts[ATTENDANCE_LATE],
                'attendanceRate': _percentage(counts[ATTENDANCE_PRESENT] + counts[ATTENDANCE_LATE], total),
            }

        overall = Counter(record.status for record in records)
        return {
            'student': student.to_dict(),
            'overall': summarize(overall),
            'batches': [
                dict(summarize(counts), batchId=batch_id,
                     batchName=batches[batch_id].name if batch_id in batches else None)
                for batch_id, counts in sorted(per_batch.items())
            ],
            'recent': [record.to_dict() for record in records[:ROLLING_WINDOW_DAYS]],
        }

    @staticmethod
    def today_summary(user):
        """Marking progress for today across the user's running batches"""
        today = get_local_date()
        query = Batch.query.filter_by(is_finished=False)
        if user.role != ROLE_ADMIN:
            query = query.filter_by(created_by=user.id)
        batches = query.order_by(Batch.start_date, Batch.id).all()

        marks = defaultdict(Counter)
        if batches:
            for mark in Attendance.query.filter(
                Attendance.date == today,
                Attendance.batch_id.in_([b.id for b in batches]),
            ):
                marks[mark.batch_id][mark.status] += 1

        rows, totals = [], Counter()
        for batch in batches:
            student_count = Student.query.filter_by(batch_id=batch.id).count()
            counts = marks[batch.id]
            marked = sum(counts.values())
            row = {
                'batchId': batch.id,
                'batchName': batch.name,
                'timing': batch.timing,
                'studentCount': student_count,
                'marked': marked,
                ATTENDANCE_PRESENT: counts[ATTENDANCE_PRESENT],
                ATTENDANCE_ABSENT: counts[ATTENDANCE_ABSENT],
                ATTENDANCE_LATE: counts[ATTENDANCE_LATE],
                NOT_MARKED: max(student_count - marked, 0),
            }
            rows.append(row)
            for key in ('studentCount', 'marked', ATTENDANCE_PRESENT, ATTENDANCE_ABSENT, ATTENDANCE_LATE, NOT_MARKED):
                totals[key] += row[key]

        return {'date': today.isoformat(), 'batches': rows, 'totals': dict(totals)}
