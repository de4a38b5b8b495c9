import re
from datetime import datetime
from cdc_attendance import db


class Student(db.Model):
    __tablename__ = 'students'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    roll_no = db.Column(db.String(20))
    batch_id = db.Column(db.Integer, db.ForeignKey('batches.id'), nullable=False, index=True)
    email = db.Column(db.String(120))
    phone = db.Column(db.String(20))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    attendance_records = db.relationship('Attendance', backref='student', lazy=True,
                                         cascade='all, delete')
    bookings = db.relationship('Booking', backref='student', lazy=True, cascade='all, delete')

    # Roll numbers repeat across batches
    __table_args__ = (
        db.UniqueConstraint('batch_id', 'roll_no', name='uq_students_batch_roll_no'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'rollNo': self.roll_no,
            'batchId': self.batch_id,
            'email': self.email,
            'phone': self.phone,
            'isActive': self.is_active,
        }

    def __repr__(self):
        return f'<Student {self.roll_no} {self.name}>'


_DIGITS = re.compile(r'(\d+)')


def roll_sort_key(roll_no):
    """Order roll numbers numerically where they are numeric ("2" < "10")"""
    if roll_no is None:
        return (2, 0, '')
    if roll_no.isdigit():
        return (0, int(roll_no), roll_no)
    match = _DIGITS.search(roll_no)
    return (1, int(match.group(1)) if match else 0, roll_no)
