from flask import Blueprint, g, jsonify, request

from skillswap import notifications
from skillswap.auth import login_required

notification_bp = Blueprint('notifications', __name__)


@notification_bp.route('', methods=['GET'])
@login_required
def my_notifications():
    limit = request.args.get('limit', type=int)
    return jsonify(notifications.get_my_notifications(g.session_token, limit)), 200


@notification_bp.route('/unread_count', methods=['GET'])
@login_required
def unread_count():
    return jsonify({'unread': notifications.get_unread_count(g.session_token)}), 200


@notification_bp.route('/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_as_read(notification_id):
    if not notifications.mark_as_read(g.session_token, notification_id):
        return jsonify({'message': 'Notification not found'}), 404
    return jsonify({'message': 'Notification marked as read'}), 200


@notification_bp.route('/read_all', methods=['POST'])
@login_required
def mark_all_as_read():
    notifications.mark_all_as_read(g.session_token)
    return jsonify({'message': 'All notifications marked as read'}), 200


@notification_bp.route('/<int:notification_id>', methods=['DELETE'])
@login_required
def delete_notification(notification_id):
    if not notifications.delete_notification(g.session_token, notification_id):
        return jsonify({'message': 'Notification not found'}), 404
    return jsonify({'message': 'Notification deleted'}), 200
