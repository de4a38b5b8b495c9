import os
from datetime import timedelta
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '.env'))


def _env_bool(name, default='false'):
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'cdc_attendance.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 300,  # Recycle connections every 5 minutes
        'pool_pre_ping': True,  # Verify connections before use
    }

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Request limits (anything bigger is answered with 413)
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', 10 * 1024 * 1024))  # 10MB

    # CORS for the SPA
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://localhost:3000').split(',') if o.strip()]

    # Number of trusted proxy hops in front of the app (X-Forwarded-For)
    PROXY_FIX_X_FOR = int(os.environ.get('PROXY_FIX_X_FOR', 0))

    # JWT
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'dev-jwt-secret-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=2)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    JWT_ENCODE_ISSUER = 'cadd-attendance'
    JWT_DECODE_ISSUER = 'cadd-attendance'
    JWT_ENCODE_AUDIENCE = 'cadd-attendance-users'
    JWT_DECODE_AUDIENCE = 'cadd-attendance-users'
    JWT_TOKEN_LOCATION = ['headers', 'cookies']
    JWT_ACCESS_COOKIE_NAME = 'jwt'
    JWT_REFRESH_COOKIE_NAME = 'refreshToken'
    JWT_ACCESS_COOKIE_PATH = '/'
    JWT_REFRESH_COOKIE_PATH = '/'
    JWT_COOKIE_SECURE = False
    JWT_COOKIE_SAMESITE = 'Lax'
    JWT_COOKIE_CSRF_PROTECT = False
    # Reject access tokens that carry no client fingerprint
    JWT_REQUIRE_FINGERPRINT = _env_bool('JWT_REQUIRE_FINGERPRINT', 'true')

    # Login lockout
    LOGIN_MAX_ATTEMPTS = 5
    LOGIN_LOCK_MINUTES = 15

    # OTP-gated password change
    OTP_EXPIRY_MINUTES = 10
    OTP_MAX_ATTEMPTS = 5
    OTP_LOCK_MINUTES = 15
    OTP_VERIFIED_WINDOW_MINUTES = 15

    # Registration
    ALLOW_SELF_REGISTRATION = _env_bool('ALLOW_SELF_REGISTRATION', 'true')

    # Rate limiting (Flask-Limiter)
    RATELIMIT_ENABLED = _env_bool('RATELIMIT_ENABLED', 'true')
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_STRATEGY = 'fixed-window'
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_AUTH = '10 per 15 minutes'
    RATELIMIT_PASSWORD_RESET = '3 per hour'
    RATELIMIT_SENSITIVE = '10 per hour'
    RATELIMIT_UPLOAD = '20 per 15 minutes'
    RATELIMIT_BURST = '200 per minute'

    # Progressive limiter (general API class)
    PROGRESSIVE_LIMIT_ENABLED = True
    PROGRESSIVE_BASE_MAX = 2000
    PROGRESSIVE_BASE_WINDOW = 15 * 60
    PROGRESSIVE_DECAY_SECONDS = 24 * 60 * 60

    # Brute-force detector (login-like endpoints)
    BRUTE_FORCE_MAX_FAILURES = 10
    BRUTE_FORCE_WINDOW = 15 * 60

    # Transient store retries
    STORE_RETRY_ATTEMPTS = 2
    STORE_RETRY_BACKOFF = 0.2

    # Email Settings
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 587))
    MAIL_USE_TLS = _env_bool('MAIL_USE_TLS', 'true')
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER') or MAIL_USERNAME

    # Scheduler and keep-alive
    SCHEDULER_ENABLED = _env_bool('SCHEDULER_ENABLED', 'true')
    ABUSE_SWEEP_INTERVAL_MINUTES = 5
    KEEP_ALIVE_ENABLED = _env_bool('KEEP_ALIVE_ENABLED', 'false')
    KEEP_ALIVE_URL = os.environ.get('KEEP_ALIVE_URL')
    KEEP_ALIVE_INTERVAL_MINUTES = int(os.environ.get('KEEP_ALIVE_INTERVAL_MINUTES', 10))
    KEEP_ALIVE_TIMEOUT = 30
    KEEP_ALIVE_RETRIES = 3
    KEEP_ALIVE_BACKOFF = 5

    # Application Info
    APP_NAME = os.environ.get('APP_NAME', 'CADD Centre Attendance')

    # Timezone Configuration
    TIMEZONE = os.environ.get('TIMEZONE', 'Asia/Kolkata')  # Default to India timezone


class DevelopmentConfig(Config):
    DEBUG = True
    FLASK_ENV = 'development'


class ProductionConfig(Config):
    DEBUG = False
    FLASK_ENV = 'production'

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 10,
        'pool_recycle': 300,
        'pool_pre_ping': True,
        'pool_timeout': 20
    }

    JWT_COOKIE_SECURE = True
    JWT_COOKIE_SAMESITE = 'None'

    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI') or \
        os.environ.get('REDIS_URL') or 'memory://'
    RATELIMIT_BURST = '100 per minute'
    PROGRESSIVE_BASE_MAX = 500

    KEEP_ALIVE_ENABLED = _env_bool('KEEP_ALIVE_ENABLED', 'true')

    @classmethod
    def validate(cls):
        missing = [key for key in ('SECRET_KEY', 'JWT_SECRET_KEY') if not os.environ.get(key)]
        if missing:
            raise RuntimeError(f"Missing required production settings: {', '.join(missing)}")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = 'noreply@cdc.test'
    RATELIMIT_STORAGE_URI = 'memory://'
    SCHEDULER_ENABLED = False
    KEEP_ALIVE_ENABLED = False
    STORE_RETRY_BACKOFF = 0
    WTF_CSRF_ENABLED = False


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
