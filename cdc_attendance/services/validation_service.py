"""
Validation Service for reusable data validation
Provides consistent validation logic across the application
"""
import re
from typing import Tuple

from cdc_attendance.utils.constants import (
    TIME_SLOTS, ROLES, ATTENDANCE_STATUSES, PC_STATUSES
)


class ValidationService:
    """Centralized validation service"""

    EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
    OTP_PATTERN = re.compile(r'^\d{6}$')

    @staticmethod
    def validate_email(email: str) -> Tuple[bool, str]:
        """
        Validate email format

        Args:
            email: Email address to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not email:
            return False, "Email is required"

        if len(email) > 120:
            return False, "Email address is too long"

        if not ValidationService.EMAIL_PATTERN.match(email):
            return False, "Invalid email format"

        return True, ""

    @staticmethod
    def validate_password(password: str) -> Tuple[bool, str]:
        """Minimum 8 characters with at least one letter and one digit"""
        if not password:
            return False, "Password is required"
        if len(password) < 8:
            return False, "Password must be at least 8 characters long"
        if not re.search(r'[A-Za-z]', password) or not re.search(r'\d', password):
            return False, "Password must contain letters and digits"
        return True, ""

    @staticmethod
    def validate_time_slot(value: str) -> Tuple[bool, str]:
        """Exact match against the fixed slot grid; no trimming or case folding"""
        if value in TIME_SLOTS:
            return True, ""
        return False, f"Time slot must be one of: {', '.join(TIME_SLOTS)}"

    @staticmethod
    def validate_role(role: str) -> Tuple[bool, str]:
        if role in ROLES:
            return True, ""
        return False, f"Role must be one of: {', '.join(ROLES)}"

    @staticmethod
    def validate_attendance_status(status: str) -> Tuple[bool, str]:
        if status in ATTENDANCE_STATUSES:
            return True, ""
        return False, f"Status must be one of: {', '.join(ATTENDANCE_STATUSES)}"

    @staticmethod
    def validate_pc_status(status: str) -> Tuple[bool, str]:
        if status in PC_STATUSES:
            return True, ""
        return False, f"PC status must be one of: {', '.join(PC_STATUSES)}"

    @staticmethod
    def validate_otp(otp: str) -> Tuple[bool, str]:
        if otp and ValidationService.OTP_PATTERN.match(str(otp)):
            return True, ""
        return False, "OTP must be a 6-digit code"

    @staticmethod
    def validate_month_year(month: int, year: int) -> Tuple[bool, str]:
        if month is None or not 1 <= month <= 12:
            return False, "Month must be between 1 and 12"
        if year is None or not 2000 <= year <= 2100:
            return False, "Year must be between 2000 and 2100"
        return True, ""
