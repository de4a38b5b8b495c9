from datetime import datetime
from cdc_attendance import db


class Batch(db.Model):
    __tablename__ = 'batches'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id'), nullable=False, index=True)
    academic_year = db.Column(db.String(20), nullable=False)  # e.g. 2024-25
    section = db.Column(db.String(20), nullable=False)
    timing = db.Column(db.String(30), nullable=False)  # one of TIME_SLOTS
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date)
    is_finished = db.Column(db.Boolean, default=False, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    creator = db.relationship('User', backref='batches', lazy=True)
    students = db.relationship('Student', backref='batch', lazy=True, cascade='all, delete')
    attendance_records = db.relationship('Attendance', backref='batch', lazy=True,
                                         cascade='all, delete')
    bookings = db.relationship('Booking', backref='batch', lazy=True, cascade='all, delete')

    def was_active_between(self, start, end):
        """True when the batch ran on at least one day of [start, end]"""
        if self.start_date > end:
            return False
        return self.end_date is None or self.end_date >= start

    def to_dict(self, include_counts=False):
        data = {
            'id': self.id,
            'name': self.name,
            'courseId': self.course_id,
            'course': self.course.name if self.course else None,
            'academicYear': self.academic_year,
            'section': self.section,
            'timing': self.timing,
            'startDate': self.start_date.isoformat() if self.start_date else None,
            'endDate': self.end_date.isoformat() if self.end_date else None,
            'isFinished': self.is_finished,
            'createdBy': self.created_by,
        }
        if include_counts:
            data['studentCount'] = len(self.students)
        return data

    def __repr__(self):
        return f'<Batch {self.name}>'
