import logging
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_mail import Mail
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from werkzeug.middleware.proxy_fix import ProxyFix
from config import Config
from cdc_attendance.utils.rate_limit import burst_key

db = SQLAlchemy()
migrate = Migrate()
mail = Mail()
jwt = JWTManager()
cors = CORS()
limiter = Limiter(
    key_func=burst_key,
    application_limits=[lambda: _burst_limit()],
)


def _burst_limit():
    from flask import current_app
    return current_app.config['RATELIMIT_BURST']


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Setup logging
    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    if app.config.get('PROXY_FIX_X_FOR'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=app.config['PROXY_FIX_X_FOR'])

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)
    limiter.init_app(app)

    from cdc_attendance.utils.abuse_gate import AbuseGate
    AbuseGate(app)

    # Register error handlers for consistent error responses
    from cdc_attendance.services.error_service import register_error_handlers
    register_error_handlers(app)

    from cdc_attendance.services.auth_service import register_jwt_callbacks
    register_jwt_callbacks(jwt)

    # Register Blueprints
    register_blueprints(app)

    from cdc_attendance.cli import register_cli
    register_cli(app)

    if app.config.get('SCHEDULER_ENABLED') and not app.config.get('TESTING'):
        from cdc_attendance.services.scheduler_service import init_scheduler
        init_scheduler(app)

    return app


def register_blueprints(app):
    """Register all application blueprints"""
    from cdc_attendance.routes.auth import bp as auth_bp
    app.register_blueprint(auth_bp, url_prefix='/api/users')

    from cdc_attendance.routes.users import bp as users_bp
    app.register_blueprint(users_bp, url_prefix='/api/users')

    from cdc_attendance.routes.catalog import bp as catalog_bp
    app.register_blueprint(catalog_bp, url_prefix='/api')

    from cdc_attendance.routes.batches import bp as batches_bp
    app.register_blueprint(batches_bp, url_prefix='/api/batches')

    from cdc_attendance.routes.students import bp as students_bp
    app.register_blueprint(students_bp, url_prefix='/api/students')

    from cdc_attendance.routes.attendance import bp as attendance_bp
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')

    from cdc_attendance.routes.lab import bp as lab_bp
    app.register_blueprint(lab_bp, url_prefix='/api/lab')

    from cdc_attendance.routes.notifications import bp as notifications_bp
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')

    from cdc_attendance.routes.health import bp as health_bp
    app.register_blueprint(health_bp, url_prefix='/api')
