"""
Rate/abuse gate.

Flask-Limiter enforces the fixed-window classes (auth, password-reset,
sensitive-ops, upload, burst). The general API class is enforced by the
progressive limiter, whose ceiling tightens for IPs that keep hitting it,
and login-like endpoints are additionally guarded by a brute-force
detector keyed by (IP, URL).

All counters are process-local; every process enforces limits on its own.
"""
import logging
import time
from functools import wraps
from flask import current_app, request, make_response
from werkzeug.exceptions import HTTPException

from cdc_attendance import limiter
from cdc_attendance.services.error_service import (
    APIError, ErrorCode, RateLimited, error_service
)
from cdc_attendance.utils.counter_map import CounterEntry, ShardedCounterMap
from cdc_attendance.utils.rate_limit import client_ip, rate_limit_key

security_logger = logging.getLogger('security')


class ProgressiveLimiter:
    """Per-IP limiter whose ceiling drops and window widens with each violation"""

    MIN_MAX = 10
    STEP = 20

    def __init__(self, base_max, base_window, decay_seconds=24 * 60 * 60, clock=time.time):
        self.base_max = base_max
        self.base_window = base_window
        self.decay_seconds = decay_seconds
        self.clock = clock
        self.requests = ShardedCounterMap()
        self.violations = ShardedCounterMap()

    def limits_for(self, violations):
        """(max requests, window seconds) for an IP with the given violation count"""
        if violations <= 0:
            return self.base_max, self.base_window
        max_requests = max(self.MIN_MAX, self.base_max - self.STEP * violations)
        window = self.base_window * (1 + 0.5 * violations)
        return max_requests, window

    def violation_count(self, ip, now=None):
        now = self.clock() if now is None else now

        def decay(entry):
            if entry is None:
                return None
            steps = int((now - entry.last_seen) // self.decay_seconds)
            if steps <= 0:
                return entry
            remaining = entry.count - steps
            if remaining <= 0:
                return None
            return CounterEntry(remaining, entry.first_seen, entry.last_seen + steps * self.decay_seconds)

        entry = self.violations.update(ip, decay)
        return entry.count if entry else 0

    def record_violation(self, ip, now=None):
        now = self.clock() if now is None else now

        def bump(entry):
            if entry is None:
                return CounterEntry(1, now, now)
            return CounterEntry(entry.count + 1, entry.first_seen, now)

        return self.violations.update(ip, bump).count

    def check(self, ip):
        """Count one request; returns (allowed, retry_after_seconds)"""
        now = self.clock()
        violations = self.violation_count(ip, now)
        max_requests, window = self.limits_for(violations)
        entry = self.requests.hit(f'api-{ip}', window, now)
        if entry.count <= max_requests:
            return True, 0
        if entry.count == max_requests + 1:
            total = self.record_violation(ip, now)
            security_logger.warning(
                f"Progressive limit exceeded: ip={ip} violations={total} "
                f"max={max_requests} window={int(window)}s"
            )
        return False, int(entry.first_seen + window - now) + 1

    def sweep(self):
        """Evict request windows idle for four of the widest windows currently granted"""
        now = self.clock()
        worst = self.violations.max_count()
        _, window = self.limits_for(worst)
        return self.requests.sweep(window * 4, now) + self.violations.sweep(self.decay_seconds * 30, now)


class BruteForceDetector:
    """Counts failed attempts per (IP, URL) and blocks once the threshold is passed"""

    def __init__(self, max_failures=10, window=15 * 60, clock=time.time):
        self.max_failures = max_failures
        self.window = window
        self.clock = clock
        self.failures = ShardedCounterMap()

    @staticmethod
    def key(ip, url):
        return f'{ip}|{url}'

    def retry_after(self, ip, url):
        """Seconds until the pair may try again; 0 when not blocked"""
        now = self.clock()
        entry = self.failures.peek(self.key(ip, url), self.window, now)
        if entry is None or entry.count < self.max_failures:
            return 0
        return int(entry.first_seen + self.window - now) + 1

    def record_failure(self, ip, url):
        entry = self.failures.hit(self.key(ip, url), self.window, self.clock())
        return entry.count

    def sweep(self):
        return self.failures.sweep(self.window, self.clock())


class AbuseGate:
    """Flask extension holding per-app progressive and brute-force state"""

    def __init__(self, app=None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.extensions['abuse_gate'] = self
        self.progressive = ProgressiveLimiter(
            app.config['PROGRESSIVE_BASE_MAX'],
            app.config['PROGRESSIVE_BASE_WINDOW'],
            app.config['PROGRESSIVE_DECAY_SECONDS'],
        )
        self.brute_force = BruteForceDetector(
            app.config['BRUTE_FORCE_MAX_FAILURES'],
            app.config['BRUTE_FORCE_WINDOW'],
        )
        app.before_request(_check_progressive_limit)
        app.register_error_handler(429, _handle_rate_limit_exceeded)

    def sweep(self):
        removed = self.progressive.sweep() + self.brute_force.sweep()
        if removed:
            logging.getLogger(__name__).debug(f"Abuse gate sweep evicted {removed} counters")
        return removed


def get_abuse_gate() -> AbuseGate:
    return current_app.extensions['abuse_gate']


def progressive_exempt(f):
    """Exclude a view from the general API limit"""
    f.progressive_exempt = True
    return f


def _check_progressive_limit():
    config = current_app.config
    if not (config['PROGRESSIVE_LIMIT_ENABLED'] and config['RATELIMIT_ENABLED']):
        return None
    if not request.path.startswith('/api/') or request.method == 'OPTIONS':
        return None
    view = current_app.view_functions.get(request.endpoint)
    if view is None or getattr(view, 'progressive_exempt', False):
        return None
    allowed, retry_after = get_abuse_gate().progressive.check(client_ip())
    if not allowed:
        raise RateLimited(retry_after)
    return None


def _handle_rate_limit_exceeded(error):
    retry_after = 60
    limit = getattr(error, 'limit', None)
    if limit is not None:
        retry_after = limit.limit.get_expiry()
    current = getattr(limiter, "current_limit", None)
    if current is not None:
        retry_after = max(int(current.reset_at - time.time()), 1)
    security_logger.info(f"Rate limit hit: ip={client_ip()} path={request.path} limit={limit.limit if limit else None}")
    return error_service.create_error_response(
        ErrorCode.RATE_LIMIT_EXCEEDED,
        "Too many requests, please try again later",
        {'retryAfter': retry_after},
        429
    )


def _is_failure(response):
    return response.status_code >= 400


# Flask-Limiter classes
auth_limit = limiter.shared_limit(
    lambda: current_app.config['RATELIMIT_AUTH'],
    scope='auth',
    key_func=rate_limit_key('auth', with_agent=True),
    deduct_when=_is_failure,
)
password_reset_limit = limiter.shared_limit(
    lambda: current_app.config['RATELIMIT_PASSWORD_RESET'],
    scope='password-reset',
    key_func=rate_limit_key('password-reset'),
)
sensitive_limit = limiter.shared_limit(
    lambda: current_app.config['RATELIMIT_SENSITIVE'],
    scope='sensitive-ops',
    key_func=rate_limit_key('sensitive-ops'),
)
upload_limit = limiter.shared_limit(
    lambda: current_app.config['RATELIMIT_UPLOAD'],
    scope='upload',
    key_func=rate_limit_key('upload'),
)


def brute_force_protected(f):
    """Short-circuit with TooManyAttempts after repeated failures from one (IP, URL)"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        detector = get_abuse_gate().brute_force
        ip, url = client_ip(), request.path
        retry_after = detector.retry_after(ip, url)
        if retry_after:
            security_logger.warning(f"Brute force blocked: ip={ip} url={url} retry_after={retry_after}s")
            raise RateLimited(
                retry_after,
                ErrorCode.TOO_MANY_ATTEMPTS,
                "Too many failed attempts, please try again later",
            )
        try:
            response = make_response(f(*args, **kwargs))
        except (APIError, HTTPException) as e:
            status = getattr(e, 'status_code', None) or getattr(e, 'code', 500)
            if 400 <= status < 500:
                detector.record_failure(ip, url)
            raise
        if 400 <= response.status_code < 500:
            detector.record_failure(ip, url)
        return response
    return decorated_function
