from datetime import datetime
from cdc_attendance import db
from cdc_attendance.utils.constants import PC_ACTIVE


class Workstation(db.Model):
    """A lab PC addressed by (row, pc number)"""
    __tablename__ = 'pcs'

    id = db.Column(db.Integer, primary_key=True)
    row_number = db.Column(db.Integer, nullable=False)
    pc_number = db.Column(db.Integer, nullable=False)
    label = db.Column(db.String(20))
    status = db.Column(db.String(20), nullable=False, default=PC_ACTIVE)
    specifications = db.Column(db.String(255))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bookings = db.relationship('Booking', backref='workstation', lazy=True)

    __table_args__ = (
        db.UniqueConstraint('row_number', 'pc_number', name='uq_pcs_row_pc'),
    )

    @staticmethod
    def default_label(row_number, pc_number):
        return f'PC{row_number}{pc_number:02d}'

    def to_dict(self):
        return {
            'id': self.id,
            'rowNumber': self.row_number,
            'pcNumber': self.pc_number,
            'label': self.label or self.default_label(self.row_number, self.pc_number),
            'status': self.status,
            'specifications': self.specifications,
            'notes': self.notes,
        }

    def __repr__(self):
        return f'<Workstation {self.row_number}-{self.pc_number}>'
