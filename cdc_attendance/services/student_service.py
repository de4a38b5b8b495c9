"""
Student enrolment with per-batch roll numbers
"""
import logging

from cdc_attendance import db
from cdc_attendance.models import Batch, Student
from cdc_attendance.models.student import roll_sort_key
from cdc_attendance.services.database_service import DatabaseService
from cdc_attendance.services.error_service import ConflictError, ErrorCode, ValidationError

logger = logging.getLogger(__name__)


class StudentService:

    @staticmethod
    def next_roll_number(batch_id):
        """First gap in the batch's numeric roll numbers starting at 1, otherwise max + 1"""
        taken = {
            int(roll_no) for (roll_no,) in
            db.session.query(Student.roll_no).filter(Student.batch_id == batch_id).all()
            if roll_no and roll_no.isdigit()
        }
        candidate = 1
        while candidate in taken:
            candidate += 1
        return str(candidate)

    @staticmethod
    def _check_roll_free(batch_id, roll_no):
        if Student.query.filter_by(batch_id=batch_id, roll_no=roll_no).first():
            raise ConflictError(
                ErrorCode.DUPLICATE_ROLL_NUMBER,
                f"Roll number {roll_no} already exists in this batch",
                {'rollNo': roll_no}
            )

    @staticmethod
    def create(batch_id, name, roll_no=None, email=None, phone=None):
        batch = DatabaseService.get_or_404(Batch, batch_id, 'Batch')
        roll_no = (roll_no or '').strip() or StudentService.next_roll_number(batch.id)
        StudentService._check_roll_free(batch.id, roll_no)
        student = Student(name=name.strip(), batch_id=batch.id, roll_no=roll_no, email=email, phone=phone)
        db.session.add(student)
        DatabaseService.commit()
        logger.info(f"Student {student.id} enrolled in batch {batch.id} as roll {roll_no}")
        return student

    @staticmethod
    def create_bulk(batch_id, rows):
        """
        Enrol many students at once; rows are dicts with name, roll_no, email, phone.

        Rows without a roll number get the next free one. Any duplicate
        rejects the whole request.
        """
        batch = DatabaseService.get_or_404(Batch, batch_id, 'Batch')
        if not rows:
            raise ValidationError.single('students', 'At least one student is required')

        taken = {
            roll_no for (roll_no,) in
            db.session.query(Student.roll_no).filter(Student.batch_id == batch.id).all()
            if roll_no
        }
        errors = []
        for index, row in enumerate(rows):
            roll_no = (row.get('roll_no') or '').strip()
            if roll_no and roll_no in taken:
                errors.append({'field': f'students[{index}].rollNo',
                               'message': f'Roll number {roll_no} is already taken'})
            if roll_no:
                taken.add(roll_no)
        if errors:
            raise ValidationError(errors, 'Some students could not be enrolled')

        next_number = 1
        students = []
        for row in rows:
            roll_no = (row.get('roll_no') or '').strip()
            if not roll_no:
                while str(next_number) in taken:
                    next_number += 1
                roll_no = str(next_number)
                taken.add(roll_no)
            students.append(Student(
                name=row['name'].strip(),
                batch_id=batch.id,
                roll_no=roll_no,
                email=row.get('email'),
                phone=row.get('phone'),
            ))
        db.session.add_all(students)
        DatabaseService.commit()
        logger.info(f"{len(students)} students enrolled in batch {batch.id}")
        return sorted(students, key=lambda s: roll_sort_key(s.roll_no))

    @staticmethod
    def list_for_batch(batch_id):
        batch = DatabaseService.get_or_404(Batch, batch_id, 'Batch')
        return sorted(batch.students, key=lambda s: roll_sort_key(s.roll_no))
