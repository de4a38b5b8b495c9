"""
Lab board service: workstation inventory, booking lifecycle and the
availability projection, plus the attendance coupling that frees and
revives bookings when marks change.
"""
import logging
from collections import Counter, defaultdict
from contextlib import ExitStack
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from cdc_attendance import db
from cdc_attendance.models import Workstation, Booking, Student, Batch, Attendance, Notification
from cdc_attendance.services.database_service import DatabaseService, with_store_retry
from cdc_attendance.services.error_service import (
    APIError, ConflictError, ErrorCode, ForbiddenError, InvariantViolation, SlotOccupied,
    StudentNotInBatch, UnknownTimeSlot, ValidationError, WorkstationUnavailable
)
from cdc_attendance.services.validation_service import ValidationService
from cdc_attendance.utils.constants import (
    TIME_SLOTS, ROLE_ADMIN, ROLE_TEACHER, PC_ACTIVE, PC_MAINTENANCE, PC_INACTIVE, PC_STATUSES,
    BOOKING_ACTIVE, BOOKING_CANCELLED, BOOKING_FREED, FREED_REASON_PREFIX,
    ATTENDANCE_PRESENT, ATTENDANCE_LATE, ATTENDANCE_ABSENT, SEAT_RELEASING_STATUSES, NOT_MARKED,
    CELL_AVAILABLE, CELL_PENDING, CELL_PRESENT, CELL_LATE, CELL_ABSENT, CELL_RECENTLY_FREED,
    CELL_MAINTENANCE, CELL_INACTIVE, BOOKABLE_CELLS, DEFAULT_LAB_ROWS, DEFAULT_PCS_PER_ROW
)

logger = logging.getLogger(__name__)

BOOKER_ROLES = (ROLE_ADMIN, ROLE_TEACHER)

_OCCUPIED_BY_MARK = {
    None: CELL_PENDING,
    ATTENDANCE_PRESENT: CELL_PRESENT,
    ATTENDANCE_LATE: CELL_LATE,
    ATTENDANCE_ABSENT: CELL_ABSENT,
}


def require_time_slot(value):
    """Reject anything that is not exactly one of the five slot identifiers"""
    is_valid, _ = ValidationService.validate_time_slot(value)
    if not is_valid:
        raise UnknownTimeSlot(value)
    return value


def _is_active_slot_violation(error):
    message = str(error.orig)
    return 'uq_bookings_active_slot' in message or 'bookings.workstation_id' in message


def _commit_booking():
    """Commit, translating a lost race on the active-slot index into SlotOccupied"""
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if _is_active_slot_violation(e):
            raise SlotOccupied() from e
        raise


class LabService:
    """Lab board operations"""

    # ------------------------------------------------------------------
    # Workstation inventory
    # ------------------------------------------------------------------

    @staticmethod
    def list_workstations(status=None):
        query = Workstation.query
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Workstation.row_number, Workstation.pc_number).all()

    @staticmethod
    def workstations_by_row():
        """Grid keyed by row, PCs sorted by number"""
        rows = defaultdict(list)
        for pc in LabService.list_workstations():
            rows[pc.row_number].append(pc.to_dict())
        return [{'rowNumber': row, 'pcs': pcs} for row, pcs in sorted(rows.items())]

    @staticmethod
    @with_store_retry
    def create_workstation(row_number, pc_number, label=None, status=None, specifications=None, notes=None):
        status = status or PC_ACTIVE
        if Workstation.query.filter_by(row_number=row_number, pc_number=pc_number).first():
            raise ConflictError(
                ErrorCode.DUPLICATE_WORKSTATION,
                f"PC {pc_number} already exists in row {row_number}"
            )
        pc = Workstation(
            row_number=row_number,
            pc_number=pc_number,
            label=label or Workstation.default_label(row_number, pc_number),
            status=status,
            specifications=specifications,
            notes=notes,
        )
        db.session.add(pc)
        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            raise ConflictError(
                ErrorCode.DUPLICATE_WORKSTATION,
                f"PC {pc_number} already exists in row {row_number}"
            ) from e
        logger.info(f"Workstation created: row={row_number} pc={pc_number}")
        return pc

    @staticmethod
    @with_store_retry
    def update_workstation(pc_id, **changes):
        pc = DatabaseService.get_or_404(Workstation, pc_id, 'PC')
        if changes.get('status') is not None and changes['status'] not in PC_STATUSES:
            raise ValidationError.single('status', ValidationService.validate_pc_status(changes['status'])[1])
        for field in ('label', 'status', 'specifications', 'notes'):
            if changes.get(field) is not None:
                setattr(pc, field, changes[field])
        DatabaseService.commit()
        return pc

    @staticmethod
    def create_sample_grid(rows=DEFAULT_LAB_ROWS, per_row=DEFAULT_PCS_PER_ROW):
        """Create the default grid only when the inventory is empty; returns the PCs created"""
        if Workstation.query.first() is not None:
            return []
        pcs = [
            Workstation(
                row_number=row,
                pc_number=number,
                label=Workstation.default_label(row, number),
                status=PC_ACTIVE,
            )
            for row in range(1, rows + 1)
            for number in range(1, per_row + 1)
        ]
        db.session.add_all(pcs)
        try:
            db.session.commit()
        except IntegrityError:
            # Another request populated the grid first
            db.session.rollback()
            return []
        logger.info(f"Sample lab grid created: {rows}x{per_row}")
        return pcs

    # ------------------------------------------------------------------
    # Booking checks
    # ------------------------------------------------------------------

    @staticmethod
    def _check_booker(user):
        if user is None or user.role not in BOOKER_ROLES:
            raise ForbiddenError("Only teachers and admins can book lab PCs")

    @staticmethod
    def _check_bookable(pc):
        if pc.status != PC_ACTIVE:
            raise WorkstationUnavailable(pc.status)

    @staticmethod
    def _student_in_batch(student_id, batch_id):
        student = DatabaseService.get_or_404(Student, student_id, 'Student')
        batch = DatabaseService.get_or_404(Batch, batch_id, 'Batch')
        if student.batch_id != batch.id:
            raise StudentNotInBatch()
        return student, batch

    @staticmethod
    def active_booking_for(pc_id, day, time_slot, exclude_id=None):
        query = Booking.query.filter_by(
            workstation_id=pc_id, date=day, time_slot=time_slot, status=BOOKING_ACTIVE
        )
        if exclude_id is not None:
            query = query.filter(Booking.id != exclude_id)
        return query.first()

    @staticmethod
    def _check_slot_free(pc_id, day, time_slot, exclude_id=None):
        existing = LabService.active_booking_for(pc_id, day, time_slot, exclude_id)
        if existing is not None:
            raise SlotOccupied(details={
                'bookingId': existing.id,
                'studentName': existing.student.name if existing.student else None,
            })

    @staticmethod
    def _check_student_free(student_id, day, time_slot, exclude_id=None):
        query = Booking.query.filter_by(
            student_id=student_id, date=day, time_slot=time_slot, status=BOOKING_ACTIVE
        )
        if exclude_id is not None:
            query = query.filter(Booking.id != exclude_id)
        existing = query.first()
        if existing is not None:
            raise ConflictError(
                ErrorCode.STUDENT_ALREADY_BOOKED,
                "Student already has a PC booked for this time slot",
                {'bookingId': existing.id, 'pcId': existing.workstation_id}
            )

    @staticmethod
    def _check_attendance_allows(student_id, day):
        mark = Attendance.query.filter_by(student_id=student_id, date=day).first()
        if mark is not None and mark.status in SEAT_RELEASING_STATUSES:
            raise ConflictError(
                ErrorCode.ATTENDANCE_CONFLICT,
                f"Student is marked {mark.status} on {day.isoformat()}",
                {'attendanceStatus': mark.status}
            )

    # ------------------------------------------------------------------
    # Booking lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    @with_store_retry
    def create_booking(booker, pc_id, day, time_slot, student_id, batch_id, purpose=None, notes=None):
        LabService._check_booker(booker)
        require_time_slot(time_slot)
        pc = DatabaseService.get_or_404(Workstation, pc_id, 'PC')
        LabService._check_bookable(pc)
        LabService._student_in_batch(student_id, batch_id)

        with DatabaseService.date_lock(day):
            LabService._check_slot_free(pc.id, day, time_slot)
            LabService._check_student_free(student_id, day, time_slot)
            LabService._check_attendance_allows(student_id, day)

            booking = Booking(
                workstation_id=pc.id,
                date=day,
                time_slot=time_slot,
                student_id=student_id,
                batch_id=batch_id,
                booked_by=booker.id,
                purpose=purpose,
                notes=notes,
                status=BOOKING_ACTIVE,
            )
            db.session.add(booking)
            _commit_booking()

        logger.info(f"Booking {booking.id} created: pc={pc.id} date={day} slot={time_slot} student={student_id}")
        return booking

    @staticmethod
    @with_store_retry
    def update_booking(actor, booking_id, pc_id=None, day=None, time_slot=None,
                       student_id=None, batch_id=None, purpose=None, notes=None):
        LabService._check_booker(actor)
        booking = DatabaseService.get_or_404(Booking, booking_id, 'Booking')

        new_pc_id = pc_id if pc_id is not None else booking.workstation_id
        new_day = day or booking.date
        new_slot = time_slot if time_slot is not None else booking.time_slot
        new_student_id = student_id if student_id is not None else booking.student_id
        new_batch_id = batch_id if batch_id is not None else booking.batch_id

        require_time_slot(new_slot)
        moving = (new_pc_id, new_day, new_slot) != (booking.workstation_id, booking.date, booking.time_slot)
        if new_pc_id != booking.workstation_id:
            LabService._check_bookable(DatabaseService.get_or_404(Workstation, new_pc_id, 'PC'))
        if (new_student_id, new_batch_id) != (booking.student_id, booking.batch_id):
            LabService._student_in_batch(new_student_id, new_batch_id)

        with ExitStack() as stack:
            for locked_day in sorted({booking.date, new_day}):
                stack.enter_context(DatabaseService.date_lock(locked_day))
            db.session.refresh(booking)
            if booking.status != BOOKING_ACTIVE:
                raise ConflictError(ErrorCode.BOOKING_NOT_ACTIVE, f"Booking is {booking.status}")

            if moving:
                LabService._check_slot_free(new_pc_id, new_day, new_slot, exclude_id=booking.id)
            if moving or new_student_id != booking.student_id:
                LabService._check_student_free(new_student_id, new_day, new_slot, exclude_id=booking.id)
                LabService._check_attendance_allows(new_student_id, new_day)

            booking.workstation_id = new_pc_id
            booking.date = new_day
            booking.time_slot = new_slot
            booking.student_id = new_student_id
            booking.batch_id = new_batch_id
            if purpose is not None:
                booking.purpose = purpose
            if notes is not None:
                booking.notes = notes
            _commit_booking()

        logger.info(f"Booking {booking.id} updated by user {actor.id}")
        return booking

    @staticmethod
    @with_store_retry
    def cancel_booking(actor, booking_id):
        LabService._check_booker(actor)
        booking = DatabaseService.get_or_404(Booking, booking_id, 'Booking')
        with DatabaseService.date_lock(booking.date):
            db.session.refresh(booking)
            if booking.status != BOOKING_ACTIVE:
                raise ConflictError(ErrorCode.BOOKING_NOT_ACTIVE, f"Booking is {booking.status}")
            booking.status = BOOKING_CANCELLED
            booking.cancelled_at = datetime.utcnow()
            booking.cancelled_by = actor.id
            DatabaseService.commit()
        logger.info(f"Booking {booking.id} cancelled by user {actor.id}")
        return booking

    @staticmethod
    def list_bookings(day, time_slot=None, include_cancelled=False):
        query = Booking.query.filter(Booking.date == day)
        if time_slot:
            query = query.filter(Booking.time_slot == require_time_slot(time_slot))
        if not include_cancelled:
            query = query.filter(Booking.status != BOOKING_CANCELLED)
        return query.order_by(Booking.time_slot, Booking.workstation_id, Booking.created_at).all()

    @staticmethod
    def clear_bulk(actor, start_date, end_date=None, batch_id=None, pc_ids=None, time_slot=None):
        """Cancel every active booking matching the filter; returns the cancelled ids"""
        LabService._check_booker(actor)
        end_date = end_date or start_date
        if end_date < start_date:
            raise ValidationError.single('endDate', 'End date must not be before start date')
        if time_slot:
            require_time_slot(time_slot)

        def matching():
            query = Booking.query.filter(
                Booking.date >= start_date,
                Booking.date <= end_date,
                Booking.status == BOOKING_ACTIVE,
            )
            if batch_id:
                query = query.filter(Booking.batch_id == batch_id)
            if pc_ids:
                query = query.filter(Booking.workstation_id.in_(pc_ids))
            if time_slot:
                query = query.filter(Booking.time_slot == time_slot)
            return query

        days = sorted({row[0] for row in matching().with_entities(Booking.date).distinct()})
        now = datetime.utcnow()
        with ExitStack() as stack:
            for day in days:
                stack.enter_context(DatabaseService.date_lock(day))
            cancelled = matching().all()
            for booking in cancelled:
                booking.status = BOOKING_CANCELLED
                booking.cancelled_at = now
                booking.cancelled_by = actor.id
            DatabaseService.commit()

        logger.info(f"Bulk clear by user {actor.id}: {len(cancelled)} bookings cancelled "
                    f"({start_date}..{end_date}, batch={batch_id}, pcs={pc_ids}, slot={time_slot})")
        return [booking.id for booking in cancelled]

    # ------------------------------------------------------------------
    # Copy forward
    # ------------------------------------------------------------------

    @staticmethod
    def previous_booking_date(target_day):
        """Most recent calendar day before target_day holding non-cancelled bookings"""
        return db.session.query(func.max(Booking.date)).filter(
            Booking.date < target_day,
            Booking.status != BOOKING_CANCELLED,
        ).scalar()

    @staticmethod
    def apply_previous(booker, target_day, source_day=None):
        """
        Copy the non-cancelled bookings of a previous day onto target_day.

        Each row is re-validated and committed on its own; rows that fail are
        reported with their error kind and do not stop the rest.
        """
        LabService._check_booker(booker)
        if source_day is None:
            source_day = LabService.previous_booking_date(target_day)
        elif source_day == target_day:
            raise ValidationError.single('sourceDate', 'Source date must differ from the target date')

        result = {
            'sourceDate': source_day.isoformat() if source_day else None,
            'targetDate': target_day.isoformat(),
            'created': [],
            'failed': [],
        }
        if source_day is None:
            result['message'] = 'No previous bookings found'
            return result

        sources = Booking.query.filter(
            Booking.date == source_day,
            Booking.status != BOOKING_CANCELLED,
        ).order_by(Booking.time_slot, Booking.workstation_id, Booking.id).all()
        rows = [
            (src.id, src.workstation_id, src.time_slot, src.student_id, src.batch_id, src.purpose, src.notes)
            for src in sources
        ]

        with DatabaseService.date_lock(target_day):
            for src_id, pc_id, slot, student_id, batch_id, purpose, notes in rows:
                try:
                    booking = LabService._copy_booking(booker, target_day, pc_id, slot, student_id,
                                                       batch_id, purpose, notes)
                    result['created'].append(booking.to_dict())
                except APIError as e:
                    db.session.rollback()
                    result['failed'].append({
                        'sourceBookingId': src_id,
                        'pcId': pc_id,
                        'timeSlot': slot,
                        'studentId': student_id,
                        'error': e.error_code,
                        'message': e.message,
                    })

        logger.info(f"Apply previous {source_day} -> {target_day}: "
                    f"{len(result['created'])} created, {len(result['failed'])} failed")
        return result

    @staticmethod
    def _copy_booking(booker, day, pc_id, time_slot, student_id, batch_id, purpose, notes):
        """Caller holds the date lock for day"""
        require_time_slot(time_slot)
        pc = DatabaseService.get_or_404(Workstation, pc_id, 'PC')
        LabService._check_bookable(pc)
        LabService._student_in_batch(student_id, batch_id)
        LabService._check_slot_free(pc_id, day, time_slot)
        LabService._check_student_free(student_id, day, time_slot)
        LabService._check_attendance_allows(student_id, day)
        booking = Booking(
            workstation_id=pc_id,
            date=day,
            time_slot=time_slot,
            student_id=student_id,
            batch_id=batch_id,
            booked_by=booker.id,
            purpose=purpose,
            notes=notes,
            status=BOOKING_ACTIVE,
        )
        db.session.add(booking)
        _commit_booking()
        return booking

    # ------------------------------------------------------------------
    # Availability projection
    # ------------------------------------------------------------------

    @staticmethod
    def availability(day, time_slot=None):
        """Resolve every (workstation, slot) cell of a day to one display status"""
        slots = [require_time_slot(time_slot)] if time_slot is not None else list(TIME_SLOTS)
        pcs = LabService.list_workstations()
        bookings = Booking.query.filter(
            Booking.date == day,
            Booking.time_slot.in_(slots),
            Booking.status != BOOKING_CANCELLED,
        ).order_by(Booking.created_at, Booking.id).all()

        marks = {}
        student_ids = {booking.student_id for booking in bookings}
        if student_ids:
            marks = {
                mark.student_id: mark.status
                for mark in Attendance.query.filter(
                    Attendance.date == day,
                    Attendance.student_id.in_(student_ids),
                )
            }

        by_cell = defaultdict(list)
        for booking in bookings:
            by_cell[(booking.workstation_id, booking.time_slot)].append(booking)

        result_slots = []
        for slot in slots:
            cells = [LabService._resolve_cell(pc, by_cell.get((pc.id, slot), []), marks) for pc in pcs]
            result_slots.append({
                'timeSlot': slot,
                'cells': cells,
                'summary': dict(Counter(cell['status'] for cell in cells)),
            })

        return {
            'date': day.isoformat(),
            'slots': result_slots,
            'bookings': [
                dict(booking.to_dict(), attendanceStatus=marks.get(booking.student_id, NOT_MARKED))
                for booking in bookings
            ],
        }

    @staticmethod
    def _resolve_cell(pc, bookings, marks):
        cell = {
            'pcId': pc.id,
            'rowNumber': pc.row_number,
            'pcNumber': pc.pc_number,
            'label': pc.label or Workstation.default_label(pc.row_number, pc.pc_number),
            'booking': None,
        }
        if pc.status == PC_MAINTENANCE:
            cell['status'] = CELL_MAINTENANCE
        elif pc.status == PC_INACTIVE:
            cell['status'] = CELL_INACTIVE
        else:
            active = [b for b in bookings if b.status == BOOKING_ACTIVE]
            if len(active) > 1:
                logger.error(f"Invariant violated: {len(active)} active bookings for pc={pc.id} "
                             f"date={active[0].date} slot={active[0].time_slot}")
                raise InvariantViolation("Multiple active bookings for one lab slot")
            if active:
                booking = active[0]
                mark = marks.get(booking.student_id)
                cell['status'] = _OCCUPIED_BY_MARK[mark]
                cell['booking'] = LabService._cell_booking(booking, mark)
            else:
                freed = [b for b in bookings if b.status == BOOKING_FREED]
                if freed:
                    latest = max(freed, key=lambda b: (b.freed_at or b.created_at, b.id))
                    cell['status'] = CELL_RECENTLY_FREED
                    cell['booking'] = LabService._cell_booking(latest, marks.get(latest.student_id))
                else:
                    cell['status'] = CELL_AVAILABLE
        cell['bookable'] = cell['status'] in BOOKABLE_CELLS
        return cell

    @staticmethod
    def _cell_booking(booking, mark):
        return {
            'bookingId': booking.id,
            'bookingStatus': booking.status,
            'studentId': booking.student_id,
            'studentName': booking.student.name if booking.student else None,
            'rollNo': booking.student.roll_no if booking.student else None,
            'batchId': booking.batch_id,
            'batchName': booking.batch.name if booking.batch else None,
            'teacherName': booking.booker.name if booking.booker else None,
            'purpose': booking.purpose,
            'attendanceStatus': mark or NOT_MARKED,
            'freedReason': booking.freed_reason,
        }

    @staticmethod
    def overview(day):
        """Counts of workstations by status and of the day's bookings by state"""
        pc_counts = dict(
            db.session.query(Workstation.status, func.count(Workstation.id)).group_by(Workstation.status).all()
        )
        booking_counts = dict(
            db.session.query(Booking.status, func.count(Booking.id))
            .filter(Booking.date == day).group_by(Booking.status).all()
        )
        per_slot = dict(
            db.session.query(Booking.time_slot, func.count(Booking.id))
            .filter(Booking.date == day, Booking.status == BOOKING_ACTIVE)
            .group_by(Booking.time_slot).all()
        )
        active_pcs = pc_counts.get(PC_ACTIVE, 0)
        capacity = active_pcs * len(TIME_SLOTS)
        active_bookings = booking_counts.get(BOOKING_ACTIVE, 0)
        return {
            'date': day.isoformat(),
            'pcs': {
                'total': sum(pc_counts.values()),
                **{status: pc_counts.get(status, 0) for status in PC_STATUSES},
            },
            'bookings': {status: booking_counts.get(status, 0) for status in
                         (BOOKING_ACTIVE, BOOKING_FREED, BOOKING_CANCELLED)},
            'activeBySlot': {slot: per_slot.get(slot, 0) for slot in TIME_SLOTS},
            'utilization': round(active_bookings / capacity * 100, 2) if capacity else 0.0,
        }

    # ------------------------------------------------------------------
    # Attendance coupling
    # ------------------------------------------------------------------

    @staticmethod
    def couple_attendance(student_id, day, status):
        """
        Project one attendance write onto the student's bookings for that day.

        absent/late frees every active booking; present revives bookings that
        an earlier mark for the same (student, day) freed, unless the cell has
        been taken since. The caller holds the date lock and owns the commit.

        Returns (booking_updates, notes).
        """
        updates, notes = [], []

        if status in SEAT_RELEASING_STATUSES:
            now = datetime.utcnow()
            active = Booking.query.filter_by(
                student_id=student_id, date=day, status=BOOKING_ACTIVE
            ).order_by(Booking.time_slot).all()
            for booking in active:
                booking.status = BOOKING_FREED
                booking.freed_at = now
                booking.freed_reason = f'{FREED_REASON_PREFIX}{status}'
                updates.append(LabService._transition(booking, BOOKING_ACTIVE, BOOKING_FREED, booking.freed_reason))
                LabService._notify_freed(booking, status)
                logger.info(f"Booking {booking.id} freed: student={student_id} date={day} marked {status}")

        elif status == ATTENDANCE_PRESENT:
            freed = Booking.query.filter(
                Booking.student_id == student_id,
                Booking.date == day,
                Booking.status == BOOKING_FREED,
                Booking.freed_reason.like(f'{FREED_REASON_PREFIX}%'),
            ).order_by(Booking.freed_at.desc(), Booking.id.desc()).all()
            for booking in freed:
                blocker = LabService.active_booking_for(booking.workstation_id, day, booking.time_slot)
                if blocker is None:
                    blocker = Booking.query.filter_by(
                        student_id=student_id, date=day, time_slot=booking.time_slot, status=BOOKING_ACTIVE
                    ).first()
                if blocker is not None:
                    notes.append({
                        'kind': ErrorCode.REVIVAL_CONFLICT,
                        'bookingId': booking.id,
                        'conflictingBookingId': blocker.id,
                        'pcId': booking.workstation_id,
                        'timeSlot': booking.time_slot,
                        'message': 'Seat was re-booked after it was freed; booking stays freed',
                    })
                    logger.info(f"Revival conflict: booking {booking.id} blocked by booking {blocker.id}")
                    continue
                booking.status = BOOKING_ACTIVE
                booking.freed_at = None
                booking.freed_reason = None
                db.session.flush()
                updates.append(LabService._transition(
                    booking, BOOKING_FREED, BOOKING_ACTIVE, f"{FREED_REASON_PREFIX}{ATTENDANCE_PRESENT}"
                ))
                logger.info(f"Booking {booking.id} revived: student={student_id} date={day} marked present")

        return updates, notes

    @staticmethod
    def _transition(booking, from_status, to_status, reason):
        return {
            'bookingId': booking.id,
            'pcId': booking.workstation_id,
            'pcLabel': booking.workstation.label if booking.workstation else None,
            'timeSlot': booking.time_slot,
            'studentId': booking.student_id,
            'date': booking.date.isoformat(),
            'from': from_status,
            'to': to_status,
            'reason': reason,
        }

    @staticmethod
    def _notify_freed(booking, status):
        student = booking.student
        pc = booking.workstation
        db.session.add(Notification(
            user_id=booking.booked_by,
            title='Lab booking released',
            message=(
                f"{student.name if student else 'Student'} was marked {status} on {booking.date.isoformat()}; "
                f"{pc.label if pc else 'PC'} ({booking.time_slot}) is available again."
            ),
            type='warning',
            priority='medium',
            booking_id=booking.id,
        ))
