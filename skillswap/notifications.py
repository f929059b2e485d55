import logging

from sqlalchemy import event

from skillswap import db, socketio
from skillswap.auth import validate_session
from skillswap.models import Notification

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = {
    'match_found',
    'match_accepted',
    'match_rejected',
    'transaction_started',
    'transaction_completed',
    'rating_received',
    'dispute_opened',
    'dispute_resolved',
    'credit_received',
    'negotiation_received',
    'suspension',
    'report_resolved',
    'system',
}

DEFAULT_LIMIT = 50
PENDING_PUSHES = 'pending_pushes'


def user_room(user_id):
    return f"user:{user_id}"


def notify(user_id, notification_type, title, message, related_id=None):
    """
    Store a notification and queue a push to the user's socket room.

    The push goes out once the surrounding transaction commits and is
    dropped if it rolls back, so clients never see a notification that
    was not stored.
    """
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type {notification_type!r}")

    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        related_id=related_id,
        is_read=False,
    )
    db.session.add(notification)
    db.session.flush()

    db.session.info.setdefault(PENDING_PUSHES, []).append((user_room(user_id), notification.to_dict()))
    logger.debug("Notification %s (%s) queued for user %s", notification.id, notification_type, user_id)
    return notification


@event.listens_for(db.session, 'after_commit')
def send_pending_pushes(session):
    for room, payload in session.info.pop(PENDING_PUSHES, []):
        socketio.emit('notification', payload, to=room)


@event.listens_for(db.session, 'after_rollback')
def discard_pending_pushes(session):
    dropped = session.info.pop(PENDING_PUSHES, [])
    if dropped:
        logger.debug("Dropped %d notification pushes after rollback", len(dropped))



def get_my_notifications(token, limit=None):
    info = validate_session(token)
    if info is None:
        return []

    notifications = (
        Notification.query.filter_by(user_id=info.user_id)
        .order_by(Notification.id.desc())
        .limit(limit or DEFAULT_LIMIT)
        .all()
    )
    return [n.to_dict() for n in notifications]


def get_unread_count(token):
    info = validate_session(token)
    if info is None:
        return 0
    return Notification.query.filter_by(user_id=info.user_id, is_read=False).count()


def mark_as_read(token, notification_id):
    info = validate_session(token)
    if info is None:
        return False

    notification = db.session.get(Notification, notification_id)
    if notification is None or notification.user_id != info.user_id:
        return False

    notification.is_read = True
    db.session.commit()
    return True


def mark_all_as_read(token):
    info = validate_session(token)
    if info is None:
        return False

    Notification.query.filter_by(user_id=info.user_id, is_read=False).update(
        {'is_read': True}, synchronize_session=False
    )
    db.session.commit()
    return True


def delete_notification(token, notification_id):
    info = validate_session(token)
    if info is None:
        return False

    notification = db.session.get(Notification, notification_id)
    if notification is None or notification.user_id != info.user_id:
        return False

    db.session.delete(notification)
    db.session.commit()
    return True
