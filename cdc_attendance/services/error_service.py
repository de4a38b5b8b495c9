"""
Error Service for centralized error handling and logging
Provides consistent error responses and logging across the application
"""
import logging
import traceback
import uuid
from datetime import datetime
from typing import Dict, Any, List, Optional
from flask import request, jsonify, current_app
from flask_jwt_extended import unset_access_cookies, unset_refresh_cookies
from werkzeug.exceptions import HTTPException
from sqlalchemy.exc import IntegrityError


class ErrorCode:
    """Error kinds reported in the `error` field of every failure response"""
    VALIDATION_ERROR = "ValidationError"
    NOT_FOUND = "NotFound"
    NOT_AUTHORIZED = "NotAuthorized"
    INTERNAL_ERROR = "InternalError"
    STORE_UNAVAILABLE = "StoreUnavailable"
    INVARIANT_VIOLATION = "InvariantViolation"
    PAYLOAD_TOO_LARGE = "PayloadTooLarge"

    # Authentication
    NO_TOKEN = "NoTokenError"
    TOKEN_EXPIRED = "TokenExpiredError"
    INVALID_TOKEN = "InvalidTokenError"
    FINGERPRINT_MISMATCH = "TokenFingerprintMismatch"
    USER_NOT_FOUND_OR_INACTIVE = "UserNotFoundOrInactive"
    INVALID_REFRESH_TOKEN = "InvalidRefreshTokenError"
    INVALID_CREDENTIALS = "InvalidCredentials"
    ACCOUNT_LOCKED = "AccountLocked"
    OTP_INVALID = "InvalidOTP"
    OTP_EXPIRED = "OTPExpired"
    OTP_LOCKED = "OTPLocked"
    OTP_NOT_VERIFIED = "OTPNotVerified"

    # Rate limiting
    RATE_LIMIT_EXCEEDED = "RateLimitExceeded"
    TOO_MANY_ATTEMPTS = "TooManyAttempts"

    # Lab board
    SLOT_OCCUPIED = "SlotOccupied"
    WORKSTATION_UNAVAILABLE = "WorkstationUnavailable"
    STUDENT_NOT_IN_BATCH = "StudentNotInBatch"
    UNKNOWN_TIME_SLOT = "UnknownTimeSlot"
    STUDENT_ALREADY_BOOKED = "StudentAlreadyBooked"
    ATTENDANCE_CONFLICT = "AttendanceConflict"
    BOOKING_NOT_ACTIVE = "BookingNotActive"
    REVIVAL_CONFLICT = "RevivalConflict"

    # Uniqueness
    DUPLICATE_ROLL_NUMBER = "DuplicateRollNumber"
    DUPLICATE_WORKSTATION = "DuplicateWorkstation"
    DUPLICATE_EMAIL = "DuplicateEmail"
    DUPLICATE_ENTRY = "DuplicateEntry"


class ErrorService:
    """Centralized error handling service"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def log_error(self, error: Exception, context: Dict[str, Any] = None) -> str:
        """
        Log error with context information

        Args:
            error: Exception object
            context: Additional context information

        Returns:
            Error ID for tracking
        """
        error_id = self._generate_error_id()

        error_info = {
            'error_id': error_id,
            'error_type': type(error).__name__,
            'error_message': str(error),
            'context': context or {}
        }

        if request:
            error_info['request'] = {
                'method': request.method,
                'path': request.path,
                'remote_addr': request.remote_addr,
            }

        self.logger.error(f"Error {error_id}: {error_info}\n{traceback.format_exc()}")
        return error_id

    def create_error_response(self,
                              error_code: str,
                              message: str,
                              details: Dict[str, Any] = None,
                              status_code: int = 400) -> tuple:
        """
        Create standardized error response

        Args:
            error_code: Error kind
            message: Human-readable error message
            details: Extra top-level fields (errors list, retryAfter, ...)
            status_code: HTTP status code

        Returns:
            Tuple of (response, status_code)
        """
        response_data = {
            'success': False,
            'error': error_code,
            'message': message,
            'timestamp': datetime.utcnow().isoformat()
        }

        if details:
            response_data.update(details)

        return jsonify(response_data), status_code

    def handle_internal_error(self, error: Exception) -> tuple:
        """Handle internal server errors"""
        error_id = self.log_error(error, {'type': 'internal_error'})
        return self.create_error_response(
            ErrorCode.INTERNAL_ERROR,
            "Internal server error",
            {'errorId': error_id},
            500
        )

    def _generate_error_id(self) -> str:
        """Generate unique error ID"""
        return str(uuid.uuid4())[:8].upper()


# Global error service instance
error_service = ErrorService()


class APIError(Exception):
    """Custom exception for API errors"""

    def __init__(self, error_code: str, message: str, status_code: int = 400, details: Dict[str, Any] = None):
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Malformed input; `errors` is a list of {field, message}"""

    def __init__(self, errors: List[Dict[str, str]], message: str = "Validation failed"):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, 400, {'errors': errors})
        self.errors = errors

    @classmethod
    def single(cls, field: str, message: str):
        return cls([{'field': field, 'message': message}], message)


class NotFoundError(APIError):
    """Custom exception for not found errors"""

    def __init__(self, resource: str = "Resource"):
        super().__init__(ErrorCode.NOT_FOUND, f"{resource} not found", 404)


class UnauthorizedError(APIError):
    """Authentication failure; the kind is reported in the `error` field"""

    def __init__(self, error_code: str = ErrorCode.NO_TOKEN, message: str = "Authentication required",
                 details: Dict[str, Any] = None, clear_refresh: bool = False):
        super().__init__(error_code, message, 401, details)
        self.clear_refresh = clear_refresh


class ForbiddenError(APIError):
    """Role insufficient for the requested operation"""

    def __init__(self, message: str = "Not authorized to perform this action"):
        super().__init__(ErrorCode.NOT_AUTHORIZED, message, 403)


class ConflictError(APIError):
    """Uniqueness or state conflict"""

    def __init__(self, error_code: str, message: str, details: Dict[str, Any] = None):
        super().__init__(error_code, message, 409, details)


class SlotOccupied(ConflictError):
    def __init__(self, message: str = "This PC is already booked for the selected time slot",
                 details: Dict[str, Any] = None):
        super().__init__(ErrorCode.SLOT_OCCUPIED, message, details)


class WorkstationUnavailable(ConflictError):
    def __init__(self, status: str):
        super().__init__(
            ErrorCode.WORKSTATION_UNAVAILABLE,
            f"PC is not available for booking (status: {status})",
            {'pcStatus': status}
        )


class StudentNotInBatch(APIError):
    def __init__(self):
        super().__init__(ErrorCode.STUDENT_NOT_IN_BATCH, "Student does not belong to the selected batch", 400)


class UnknownTimeSlot(APIError):
    def __init__(self, value: Optional[str]):
        super().__init__(
            ErrorCode.UNKNOWN_TIME_SLOT,
            f"Unknown time slot: {value!r}",
            400,
            {'timeSlot': value}
        )


class AccountLocked(APIError):
    def __init__(self, message: str, retry_after: int):
        super().__init__(ErrorCode.ACCOUNT_LOCKED, message, 423, {'retryAfter': retry_after})


class RateLimited(APIError):
    def __init__(self, retry_after: int, error_code: str = ErrorCode.RATE_LIMIT_EXCEEDED,
                 message: str = "Too many requests, please try again later"):
        super().__init__(error_code, message, 429, {'retryAfter': max(int(retry_after), 1)})


class StoreUnavailable(APIError):
    def __init__(self):
        super().__init__(ErrorCode.STORE_UNAVAILABLE, "Database temporarily unavailable", 503)


class InvariantViolation(APIError):
    """Store state breaks a domain invariant; never repaired in-band"""

    def __init__(self, message: str):
        super().__init__(ErrorCode.INVARIANT_VIOLATION, message, 500)


def _error_status(error: HTTPException) -> str:
    if error.code == 404:
        return ErrorCode.NOT_FOUND
    if error.code == 413:
        return ErrorCode.PAYLOAD_TOO_LARGE
    if error.code == 403:
        return ErrorCode.NOT_AUTHORIZED
    if error.code == 400:
        return ErrorCode.VALIDATION_ERROR
    return error.name.replace(' ', '')


def auth_error_response(error_code: str, message: str, details: Dict[str, Any] = None,
                        clear_refresh: bool = False):
    """401 response that also clears cookie-borne credentials"""
    response, status = error_service.create_error_response(error_code, message, details, 401)
    cookie_names = current_app.config['JWT_ACCESS_COOKIE_NAME'], current_app.config['JWT_REFRESH_COOKIE_NAME']
    if any(name in request.cookies for name in cookie_names):
        unset_access_cookies(response)
        if clear_refresh or error_code != ErrorCode.TOKEN_EXPIRED:
            unset_refresh_cookies(response)
    return response, status


# Error handlers for Flask app
def register_error_handlers(app):
    """Register error handlers with Flask app"""
    from cdc_attendance import db

    @app.errorhandler(UnauthorizedError)
    def handle_unauthorized_error(error):
        return auth_error_response(error.error_code, error.message, error.details, error.clear_refresh)

    @app.errorhandler(APIError)
    def handle_api_error(error):
        if error.status_code >= 500:
            db.session.rollback()
            error_service.log_error(error, {'type': error.error_code})
        return error_service.create_error_response(
            error.error_code,
            error.message,
            error.details,
            error.status_code
        )

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error):
        db.session.rollback()
        current_app.logger.warning(f"Integrity error: {error.orig}")
        return error_service.create_error_response(
            ErrorCode.DUPLICATE_ENTRY,
            "Record conflicts with an existing entry",
            status_code=409
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return error_service.create_error_response(
            _error_status(error),
            error.description,
            status_code=error.code
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        return error_service.handle_internal_error(error)
