from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
from cdc_attendance import db
from cdc_attendance.utils.constants import ROLE_ADMIN, ROLE_TEACHER


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    employee_id = db.Column(db.String(30), unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ROLE_TEACHER)
    department_id = db.Column(db.Integer, db.ForeignKey('departments.id'))

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Login lockout
    failed_login_attempts = db.Column(db.Integer, default=0, nullable=False)
    lock_until = db.Column(db.DateTime)

    # jti of the only refresh token this user may present
    refresh_token_jti = db.Column(db.String(64))

    # OTP-gated password change
    otp_hash = db.Column(db.String(64))
    otp_expires_at = db.Column(db.DateTime)
    otp_verified = db.Column(db.Boolean, default=False, nullable=False)
    otp_verified_at = db.Column(db.DateTime)
    otp_attempts = db.Column(db.Integer, default=0, nullable=False)
    otp_locked_until = db.Column(db.DateTime)

    department = db.relationship('Department', backref='users', lazy=True)

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check password against hash"""
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def is_locked(self, now=None):
        now = now or datetime.utcnow()
        return bool(self.lock_until and self.lock_until > now)

    def clear_otp(self):
        self.otp_hash = None
        self.otp_expires_at = None
        self.otp_verified = False
        self.otp_verified_at = None
        self.otp_attempts = 0
        self.otp_locked_until = None

    def to_dict(self):
        """Convert user to dictionary"""
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'employeeId': self.employee_id,
            'role': self.role,
            'department': self.department.to_dict() if self.department else None,
            'isActive': self.is_active,
            'lastLogin': self.last_login.isoformat() if self.last_login else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<User {self.email}>'
