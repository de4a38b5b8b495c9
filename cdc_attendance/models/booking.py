from datetime import datetime
from sqlalchemy import text
from cdc_attendance import db
from cdc_attendance.utils.constants import BOOKING_ACTIVE


class Booking(db.Model):
    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    workstation_id = db.Column(db.Integer, db.ForeignKey('pcs.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    time_slot = db.Column(db.String(30), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('batches.id'), nullable=False, index=True)
    booked_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    purpose = db.Column(db.String(255))
    notes = db.Column(db.Text)

    status = db.Column(db.String(15), nullable=False, default=BOOKING_ACTIVE)
    freed_at = db.Column(db.DateTime)
    freed_reason = db.Column(db.String(50))  # attendance:<status>
    cancelled_at = db.Column(db.DateTime)
    cancelled_by = db.Column(db.Integer, db.ForeignKey('users.id'))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    booker = db.relationship('User', foreign_keys=[booked_by], lazy=True)

    __table_args__ = (
        # At most one active booking per cell; freed and cancelled rows leave the slot open
        db.Index(
            'uq_bookings_active_slot', 'workstation_id', 'date', 'time_slot',
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        db.Index('ix_bookings_date_slot', 'date', 'time_slot'),
        db.Index('ix_bookings_student_date', 'student_id', 'date'),
    )

    def to_dict(self, include_relations=True):
        data = {
            'id': self.id,
            'pcId': self.workstation_id,
            'date': self.date.isoformat(),
            'timeSlot': self.time_slot,
            'studentId': self.student_id,
            'batchId': self.batch_id,
            'bookedBy': self.booked_by,
            'purpose': self.purpose,
            'notes': self.notes,
            'status': self.status,
            'freedAt': self.freed_at.isoformat() if self.freed_at else None,
            'freedReason': self.freed_reason,
            'cancelledAt': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
        if include_relations:
            data['pc'] = self.workstation.to_dict() if self.workstation else None
            data['student'] = {
                'id': self.student.id, 'name': self.student.name, 'rollNo': self.student.roll_no
            } if self.student else None
            data['batch'] = {'id': self.batch.id, 'name': self.batch.name} if self.batch else None
            data['teacher'] = {'id': self.booker.id, 'name': self.booker.name} if self.booker else None
        return data

    def __repr__(self):
        return f'<Booking {self.workstation_id} {self.date} {self.time_slot} {self.status}>'
