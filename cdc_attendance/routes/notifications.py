from datetime import datetime
from flask import Blueprint, g, jsonify, request

from cdc_attendance import db
from cdc_attendance.models import Notification
from cdc_attendance.services.database_service import DatabaseService
from cdc_attendance.services.error_service import NotFoundError
from cdc_attendance.utils.decorators import auth_required

bp = Blueprint('notifications', __name__)


@bp.route('', methods=['GET'])
@auth_required
def list_notifications():
    query = Notification.query.filter(
        Notification.user_id == g.current_user.id,
        Notification.expires_at > datetime.utcnow(),
    )
    if request.args.get('unread', 'false').lower() in ('true', '1'):
        query = query.filter(Notification.is_read.is_(False))
    notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(100).all()
    unread = sum(1 for n in notifications if not n.is_read)
    return jsonify({
        'success': True,
        'notifications': [n.to_dict() for n in notifications],
        'unreadCount': unread,
    })


@bp.route('/<int:notification_id>/read', methods=['PUT'])
@auth_required
def mark_read(notification_id):
    notification = db.session.get(Notification, notification_id)
    if notification is None or notification.user_id != g.current_user.id:
        raise NotFoundError('Notification')
    notification.mark_read()
    DatabaseService.commit()
    return jsonify({'success': True, 'notification': notification.to_dict()})
