from datetime import datetime
from cdc_attendance import db


class Attendance(db.Model):
    __tablename__ = 'attendances'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False)
    batch_id = db.Column(db.Integer, db.ForeignKey('batches.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(10), nullable=False)  # present, absent, late
    remarks = db.Column(db.String(255))

    # Administrative
    marked_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    marked_at = db.Column(db.DateTime, default=datetime.utcnow)

    marked_by_user = db.relationship('User', foreign_keys=[marked_by], lazy=True)

    # One mark per student per day; re-marking overwrites
    __table_args__ = (
        db.UniqueConstraint('student_id', 'date', name='uq_attendances_student_date'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'studentId': self.student_id,
            'batchId': self.batch_id,
            'date': self.date.isoformat(),
            'status': self.status,
            'remarks': self.remarks,
            'markedBy': self.marked_by,
            'markedAt': self.marked_at.isoformat() if self.marked_at else None,
        }

    def __repr__(self):
        return f'<Attendance {self.student_id} {self.date} {self.status}>'


db.Index('ix_attendances_batch_date', Attendance.batch_id, Attendance.date.desc())
db.Index('ix_attendances_date', Attendance.date.desc())
