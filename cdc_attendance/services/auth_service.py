"""
Auth core: token issuance bound to a client fingerprint, refresh rotation,
login lockout and the OTP-gated password change.
"""
import hashlib
import logging
import re
import secrets
from datetime import datetime, timedelta

from flask import current_app, request
from flask_jwt_extended import (
    create_access_token, create_refresh_token, get_jti, get_jwt, get_jwt_identity,
    set_access_cookies, set_refresh_cookies, unset_jwt_cookies, verify_jwt_in_request
)
from flask_mail import Message
from sqlalchemy import func

from cdc_attendance import db, mail
from cdc_attendance.models import Department, User
from cdc_attendance.services.error_service import (
    APIError, AccountLocked, ConflictError, ErrorCode, UnauthorizedError, ValidationError,
    auth_error_response
)
from cdc_attendance.utils.rate_limit import client_ip

logger = logging.getLogger(__name__)
security_logger = logging.getLogger('security')
email_logger = logging.getLogger('email')

_EMPLOYEE_NUMBER = re.compile(r'-(\d+)$')


def fingerprint(user_agent=None, ip=None):
    """First 16 hex chars of sha256("<user-agent>-<client-ip>"); a missing user agent hashes as empty"""
    if user_agent is None:
        user_agent = request.headers.get('User-Agent', '')
    ip = client_ip() if ip is None else ip
    return hashlib.sha256(f'{user_agent}-{ip}'.encode('utf-8')).hexdigest()[:16]


def hash_otp(otp):
    return hashlib.sha256(otp.encode('utf-8')).hexdigest()


def send_email(subject, recipients, text_body):
    """Send synchronously; returns True when the message went out"""
    if not recipients:
        email_logger.error("No recipients specified for email")
        return False
    msg = Message(subject, sender=current_app.config['MAIL_DEFAULT_SENDER'], recipients=recipients)
    msg.body = text_body
    try:
        mail.send(msg)
    except Exception as e:
        email_logger.error(f"Failed to send email to {recipients}: {str(e)}")
        return False
    email_logger.info(f"Email '{subject}' sent to {recipients}")
    return True


def next_employee_id(department_id=None):
    """<DEPT-CODE>-<NNN> for the department, EMP-<NNN> without one"""
    prefix = 'EMP'
    if department_id:
        department = db.session.get(Department, department_id)
        if department is not None:
            prefix = department.code.upper()
    existing = db.session.query(User.employee_id).filter(User.employee_id.like(f'{prefix}-%')).all()
    numbers = [int(m.group(1)) for (value,) in existing if value for m in [_EMPLOYEE_NUMBER.search(value)] if m]
    return f'{prefix}-{(max(numbers) + 1 if numbers else 1):03d}'


class AuthService:
    """Authentication and credential lifecycle"""

    @staticmethod
    def issue_tokens(user):
        """Mint an access/refresh pair; the refresh jti becomes the only one accepted"""
        access_token = create_access_token(
            identity=str(user.id),
            additional_claims={'role': user.role, 'fp': fingerprint()},
        )
        refresh_token = create_refresh_token(identity=str(user.id))
        user.refresh_token_jti = get_jti(refresh_token)
        return access_token, refresh_token

    @staticmethod
    def set_cookies(response, access_token, refresh_token=None):
        set_access_cookies(response, access_token)
        if refresh_token is not None:
            set_refresh_cookies(response, refresh_token)
        return response

    @staticmethod
    def find_login_user(email=None, employee_id=None):
        if email:
            return User.query.filter(func.lower(User.email) == email.strip().lower()).first()
        return User.query.filter(func.lower(User.employee_id) == employee_id.strip().lower()).first()

    @staticmethod
    def login(email, employee_id, password):
        """
        Check credentials and return (user, access_token, refresh_token).

        Five wrong passwords lock the account for 15 minutes; a locked
        account answers 423 even for the right password.
        """
        config = current_app.config
        user = AuthService.find_login_user(email, employee_id)
        if user is None:
            raise UnauthorizedError(ErrorCode.INVALID_CREDENTIALS, "Invalid email/employee ID or password")

        now = datetime.utcnow()
        if user.is_locked(now):
            retry_after = int((user.lock_until - now).total_seconds()) + 1
            raise AccountLocked("Account temporarily locked due to failed login attempts", retry_after)

        if not user.check_password(password):
            if user.lock_until is not None:
                # previous lock expired
                user.failed_login_attempts = 0
                user.lock_until = None
            user.failed_login_attempts += 1
            if user.failed_login_attempts >= config['LOGIN_MAX_ATTEMPTS']:
                user.lock_until = now + timedelta(minutes=config['LOGIN_LOCK_MINUTES'])
                db.session.commit()
                security_logger.warning(f"Account locked: user={user.id} ip={client_ip()} "
                                        f"attempts={user.failed_login_attempts}")
                raise AccountLocked(
                    "Account temporarily locked due to failed login attempts",
                    config['LOGIN_LOCK_MINUTES'] * 60
                )
            db.session.commit()
            raise UnauthorizedError(ErrorCode.INVALID_CREDENTIALS, "Invalid email/employee ID or password")

        if not user.is_active:
            raise UnauthorizedError(ErrorCode.USER_NOT_FOUND_OR_INACTIVE, "Account is deactivated")

        user.failed_login_attempts = 0
        user.lock_until = None
        user.last_login = now
        access_token, refresh_token = AuthService.issue_tokens(user)
        db.session.commit()
        logger.info(f"User {user.id} logged in")
        return user, access_token, refresh_token

    @staticmethod
    def refresh():
        """Rotate the refresh token presented by the request; returns (user, access, refresh)"""
        verify_jwt_in_request(refresh=True)
        jti = get_jwt()['jti']
        user = db.session.get(User, int(get_jwt_identity()))
        if user is None or not user.is_active:
            raise UnauthorizedError(ErrorCode.USER_NOT_FOUND_OR_INACTIVE, "User not found or inactive",
                                    clear_refresh=True)

        if user.refresh_token_jti != jti:
            # A superseded token was replayed; nobody keeps a valid refresh token
            user.refresh_token_jti = None
            db.session.commit()
            security_logger.warning(f"Refresh token reuse: user={user.id} ip={client_ip()}")
            raise UnauthorizedError(ErrorCode.INVALID_REFRESH_TOKEN, "Invalid refresh token", clear_refresh=True)

        access_token, refresh_token = AuthService.issue_tokens(user)
        db.session.commit()
        return user, access_token, refresh_token

    @staticmethod
    def logout(user, response):
        user.refresh_token_jti = None
        db.session.commit()
        unset_jwt_cookies(response)
        logger.info(f"User {user.id} logged out")
        return response

    # OTP-gated password change

    @staticmethod
    def _check_otp_lock(user, now):
        if user.otp_locked_until and user.otp_locked_until > now:
            retry_after = int((user.otp_locked_until - now).total_seconds()) + 1
            raise APIError(ErrorCode.OTP_LOCKED, "Too many invalid OTP attempts, try again later", 423,
                           {'retryAfter': retry_after})

    @staticmethod
    def request_password_otp(user):
        config = current_app.config
        now = datetime.utcnow()
        AuthService._check_otp_lock(user, now)

        otp = f'{secrets.randbelow(10 ** 6):06d}'
        user.clear_otp()
        user.otp_hash = hash_otp(otp)
        user.otp_expires_at = now + timedelta(minutes=config['OTP_EXPIRY_MINUTES'])
        db.session.commit()

        sent = send_email(
            f"[{config['APP_NAME']}] Password change verification code",
            [user.email],
            f"Hello {user.name},\n\n"
            f"Your verification code is {otp}. It expires in {config['OTP_EXPIRY_MINUTES']} minutes.\n\n"
            f"If you did not request a password change, ignore this email.",
        )
        if not sent:
            user.clear_otp()
            db.session.commit()
            raise APIError(ErrorCode.INTERNAL_ERROR, "Failed to send verification email", 500)
        return user.otp_expires_at

    @staticmethod
    def verify_password_otp(user, otp):
        config = current_app.config
        now = datetime.utcnow()
        AuthService._check_otp_lock(user, now)

        if not user.otp_hash:
            raise ValidationError.single('otp', 'No verification code was requested')
        if user.otp_expires_at is None or user.otp_expires_at < now:
            user.clear_otp()
            db.session.commit()
            raise APIError(ErrorCode.OTP_EXPIRED, "Verification code has expired", 400)

        if not secrets.compare_digest(user.otp_hash, hash_otp(otp)):
            user.otp_attempts += 1
            if user.otp_attempts >= config['OTP_MAX_ATTEMPTS']:
                user.otp_hash = None
                user.otp_expires_at = None
                user.otp_locked_until = now + timedelta(minutes=config['OTP_LOCK_MINUTES'])
                db.session.commit()
                security_logger.warning(f"OTP locked: user={user.id} ip={client_ip()}")
                raise APIError(ErrorCode.OTP_LOCKED, "Too many invalid OTP attempts, try again later", 423,
                               {'retryAfter': config['OTP_LOCK_MINUTES'] * 60})
            db.session.commit()
            raise APIError(ErrorCode.OTP_INVALID, "Invalid verification code", 400,
                           {'attemptsRemaining': config['OTP_MAX_ATTEMPTS'] - user.otp_attempts})

        user.otp_verified = True
        user.otp_verified_at = now
        user.otp_attempts = 0
        db.session.commit()

    @staticmethod
    def set_password_after_otp(user, new_password):
        window = timedelta(minutes=current_app.config['OTP_VERIFIED_WINDOW_MINUTES'])
        now = datetime.utcnow()
        if not user.otp_verified or user.otp_verified_at is None:
            raise APIError(ErrorCode.OTP_NOT_VERIFIED, "Verify the code before changing the password", 400)
        if user.otp_verified_at + window < now:
            user.clear_otp()
            db.session.commit()
            raise APIError(ErrorCode.OTP_EXPIRED, "Verification has expired, request a new code", 400)

        user.set_password(new_password)
        user.clear_otp()
        user.refresh_token_jti = None
        db.session.commit()
        logger.info(f"Password changed for user {user.id}")

    # Registration

    @staticmethod
    def register(name, email, password, role, department_id=None, employee_id=None):
        email = email.strip().lower()
        if User.query.filter(func.lower(User.email) == email).first():
            raise ConflictError(ErrorCode.DUPLICATE_EMAIL, "Email is already registered")
        if department_id and db.session.get(Department, department_id) is None:
            raise ValidationError.single('departmentId', 'Department not found')
        if employee_id and User.query.filter_by(employee_id=employee_id).first():
            raise ConflictError(ErrorCode.DUPLICATE_ENTRY, "Employee ID is already in use")

        user = User(
            name=name.strip(),
            email=email,
            role=role,
            department_id=department_id,
            employee_id=employee_id or next_employee_id(department_id),
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        logger.info(f"User {user.id} registered with role {role}")
        return user

    @staticmethod
    def deactivate(user):
        user.is_active = False
        user.refresh_token_jti = None
        db.session.commit()
        logger.info(f"User {user.id} deactivated")
        return user


def register_jwt_callbacks(jwt):
    """Map Flask-JWT-Extended failures to the 401 error kinds"""

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return auth_error_response(
            ErrorCode.TOKEN_EXPIRED,
            "Token has expired",
            {'shouldRefresh': jwt_payload.get('type') == 'access'},
            clear_refresh=jwt_payload.get('type') == 'refresh',
        )

    @jwt.invalid_token_loader
    def invalid_token_callback(error_string):
        return auth_error_response(ErrorCode.INVALID_TOKEN, f"Invalid token: {error_string}")

    @jwt.unauthorized_loader
    def missing_token_callback(error_string):
        return auth_error_response(ErrorCode.NO_TOKEN, "Authentication required")

