from flask import Blueprint, jsonify, g

from cdc_attendance.forms import LoginForm, OTPVerifyForm, SetPasswordForm
from cdc_attendance.services.auth_service import AuthService
from cdc_attendance.utils.abuse_gate import (
    auth_limit, brute_force_protected, password_reset_limit, sensitive_limit
)
from cdc_attendance.utils.decorators import auth_required

bp = Blueprint('auth', __name__)


@bp.route('/login', methods=['POST'])
@auth_limit
@brute_force_protected
def login():
    form = LoginForm.from_json().validate_or_raise()
    user, access_token, refresh_token = AuthService.login(
        form.email.data, form.employee_id.data, form.password.data
    )
    response = jsonify({
        'success': True,
        'message': 'Login successful',
        'user': user.to_dict(),
        'accessToken': access_token,
        'refreshToken': refresh_token,
    })
    return AuthService.set_cookies(response, access_token, refresh_token)


@bp.route('/refresh-token', methods=['POST'])
def refresh_token():
    user, access_token, refresh_token = AuthService.refresh()
    response = jsonify({
        'success': True,
        'accessToken': access_token,
        'refreshToken': refresh_token,
    })
    return AuthService.set_cookies(response, access_token, refresh_token)


@bp.route('/logout', methods=['POST'])
@auth_required
def logout():
    response = jsonify({'success': True, 'message': 'Logged out successfully'})
    return AuthService.logout(g.current_user, response)


@bp.route('/me', methods=['GET'])
@auth_required
def me():
    return jsonify({'success': True, 'user': g.current_user.to_dict()})


@bp.route('/request-password-change-otp', methods=['POST'])
@password_reset_limit
@auth_required
def request_password_change_otp():
    expires_at = AuthService.request_password_otp(g.current_user)
    return jsonify({
        'success': True,
        'message': 'Verification code sent to your email',
        'expiresAt': expires_at.isoformat(),
    })


@bp.route('/verify-password-change-otp', methods=['POST'])
@auth_limit
@brute_force_protected
@auth_required
def verify_password_change_otp():
    form = OTPVerifyForm.from_json().validate_or_raise()
    AuthService.verify_password_otp(g.current_user, form.otp.data)
    return jsonify({'success': True, 'message': 'Verification code accepted'})


@bp.route('/verify-otp-change-password', methods=['PUT'])
@sensitive_limit
@auth_required
def verify_otp_change_password():
    form = SetPasswordForm.from_json().validate_or_raise()
    AuthService.set_password_after_otp(g.current_user, form.new_password.data)
    return jsonify({'success': True, 'message': 'Password changed, please log in again'})
