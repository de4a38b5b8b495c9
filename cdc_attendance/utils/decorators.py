"""
Route guards: token verification with fingerprint binding, then role gates
"""
import logging
from functools import wraps
from flask import current_app, g
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from cdc_attendance import db
from cdc_attendance.models import User
from cdc_attendance.services.auth_service import fingerprint
from cdc_attendance.services.error_service import ErrorCode, ForbiddenError, UnauthorizedError
from cdc_attendance.utils.constants import ROLE_ADMIN, ROLE_TEACHER
from cdc_attendance.utils.rate_limit import client_ip

security_logger = logging.getLogger('security')


def load_current_user():
    """Verify the request's access token and return its active user"""
    verify_jwt_in_request()
    claims = get_jwt()

    token_fp = claims.get('fp')
    if token_fp is None:
        if current_app.config['JWT_REQUIRE_FINGERPRINT']:
            raise UnauthorizedError(ErrorCode.FINGERPRINT_MISMATCH, "Token is not bound to a client")
    elif token_fp != fingerprint():
        security_logger.warning(f"Token fingerprint mismatch: sub={claims.get('sub')} ip={client_ip()}")
        raise UnauthorizedError(ErrorCode.FINGERPRINT_MISMATCH, "Token was issued to a different client")

    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        raise UnauthorizedError(ErrorCode.INVALID_TOKEN, "Invalid token subject")
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError(ErrorCode.USER_NOT_FOUND_OR_INACTIVE, "User not found or inactive")

    g.current_user = user
    return user


def auth_required(f):
    """Decorator to require a valid, fingerprint-bound access token"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        load_current_user()
        return f(*args, **kwargs)
    return decorated_function


def require_role(*roles):
    """Decorator to require one of the given roles; implies auth_required"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = load_current_user()
            if user.role not in roles:
                raise ForbiddenError(f"Requires role: {', '.join(roles)}")
            return f(*args, **kwargs)
        return decorated_function
    return decorator


admin_required = require_role(ROLE_ADMIN)
teacher_required = require_role(ROLE_ADMIN, ROLE_TEACHER)
lab_access_required = require_role(ROLE_ADMIN, ROLE_TEACHER)
