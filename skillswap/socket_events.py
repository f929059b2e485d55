import logging

from flask_socketio import emit, join_room, leave_room

from skillswap import socketio
from skillswap.auth import validate_session
from skillswap.notifications import user_room

logger = logging.getLogger(__name__)


# WebSocket events for real-time notifications
@socketio.on('join')
def handle_join(data):
    info = validate_session((data or {}).get('token'))
    if info is None:
        emit('status', {'message': 'Invalid or expired token!'})
        return

    room = user_room(info.user_id)
    join_room(room)
    logger.debug("User %s joined room %s", info.user_id, room)
    emit('status', {'message': f"Joined room: {room}"}, to=room)


@socketio.on('leave')
def handle_leave(data):
    info = validate_session((data or {}).get('token'))
    if info is None:
        return

    room = user_room(info.user_id)
    leave_room(room)
    logger.debug("User %s left room %s", info.user_id, room)
