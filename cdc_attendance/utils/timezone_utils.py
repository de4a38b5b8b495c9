"""
Timezone utilities for consistent time handling across the application
"""
import calendar
from datetime import datetime, date, timedelta
import pytz
from flask import current_app


def get_local_time():
    """
    Get current time in the configured timezone
    Returns naive datetime for database compatibility
    """
    timezone_name = current_app.config.get('TIMEZONE', 'Asia/Kolkata')
    local_tz = pytz.timezone(timezone_name)
    return datetime.now(pytz.UTC).astimezone(local_tz).replace(tzinfo=None)


def get_local_date():
    """Calendar day in the institute's timezone"""
    return get_local_time().date()


def parse_date(value):
    """
    Normalize a date-ish value to a calendar date.

    Accepts `date`, `datetime` (converted to the institute zone when aware)
    and ISO strings (`YYYY-MM-DD` or a full ISO timestamp). Raises ValueError.
    """
    if value is None or value == '':
        raise ValueError("Date is required")
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            local_tz = pytz.timezone(current_app.config.get('TIMEZONE', 'Asia/Kolkata'))
            value = value.astimezone(local_tz)
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) == 10:
        return datetime.strptime(text, '%Y-%m-%d').date()
    return parse_date(datetime.fromisoformat(text.replace('Z', '+00:00')))


def month_bounds(year: int, month: int):
    """First and last calendar day of a month"""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def days_in_range(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
