# Health check endpoints for production monitoring and the keep-alive pinger

from datetime import datetime
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from cdc_attendance import db, limiter
from cdc_attendance.utils.abuse_gate import progressive_exempt

bp = Blueprint('health', __name__)


@bp.route('/health')
@limiter.exempt
@progressive_exempt
def health_check():
    """Database connectivity check"""
    health_status = {
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'checks': {},
    }

    try:
        db.session.execute(text('SELECT 1'))
        health_status['checks']['database'] = 'healthy'
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Health check database failure: {e}")
        health_status['checks']['database'] = 'unhealthy'
        health_status['status'] = 'unhealthy'

    mail_configured = bool(current_app.config.get('MAIL_SERVER') and current_app.config.get('MAIL_USERNAME'))
    health_status['checks']['email'] = 'configured' if mail_configured else 'not_configured'

    status_code = 200 if health_status['status'] == 'healthy' else 503
    return jsonify(health_status), status_code


@bp.route('/keep-alive/ping')
@limiter.exempt
@progressive_exempt
def keep_alive_ping():
    return jsonify({
        'status': 'alive',
        'app': current_app.config['APP_NAME'],
        'timestamp': datetime.utcnow().isoformat(),
    })
