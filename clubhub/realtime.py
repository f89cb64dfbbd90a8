# clubhub/realtime.py
"""
Real-time fan-out over Flask-SocketIO.

Rooms are addressed through typed topics instead of ad hoc strings:
UserRoom(id) for direct messages and personal notices, ClubRoom(id) for a
club's group chat and announcements, Broadcast(audience) for admin broadcasts.
Publishing is best effort: a failed emit is logged and dropped, clients that
missed it read the history endpoint.
"""

import logging
from dataclasses import dataclass

from flask import request
from flask_login import current_user
from flask_socketio import SocketIO, emit, join_room

logger = logging.getLogger(__name__)

socketio = SocketIO()

BROADCAST_AUDIENCES = ('students', 'clubs')


def _check_id(value):
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"Invalid room id: {value!r}")


@dataclass(frozen=True)
class UserRoom:
    user_id: int

    def __post_init__(self):
        _check_id(self.user_id)

    @property
    def room(self):
        return f"user_{self.user_id}"


@dataclass(frozen=True)
class ClubRoom:
    club_id: int

    def __post_init__(self):
        _check_id(self.club_id)

    @property
    def room(self):
        return f"club_{self.club_id}"


@dataclass(frozen=True)
class Broadcast:
    audience: str

    def __post_init__(self):
        if self.audience not in BROADCAST_AUDIENCES:
            raise ValueError(f"Invalid broadcast audience: {self.audience!r}")

    @property
    def room(self):
        # 'students' -> 'student_broadcast'
        return f"{self.audience[:-1]}_broadcast"


def init_realtime(app):
    socketio.init_app(
        app,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'threading'),
        cors_allowed_origins=app.config.get('SOCKETIO_CORS_ORIGINS', '*'),
    )
    logger.info("SocketIO initialized")


def publish(topic, event, payload):
    """Emits `event` to every client in the topic's room. Never raises."""
    try:
        socketio.emit(event, payload, to=topic.room)
    except Exception as e:
        logger.error(f"Failed to publish {event} to {topic.room}: {str(e)}")
        return False
    return True


def topics_for(user):
    """Every room a user is entitled to listen on."""
    from clubhub.models import Subscription
    from clubhub.roles import Role, strategy_for

    topics = [UserRoom(user.id)]
    role = Role(user.role)
    if role == Role.STUDENT:
        subscriptions = Subscription.query.filter_by(student_id=user.id).all()
        topics.extend(ClubRoom(sub.club_id) for sub in subscriptions)
    elif role == Role.CLUB:
        topics.append(ClubRoom(user.id))

    audience = strategy_for(role).broadcast_audience
    if audience:
        topics.append(Broadcast(audience))
    return topics


# SocketIO Event Handlers
@socketio.on('connect')
def handle_connect(auth=None):
    if not current_user.is_authenticated:
        logger.info(f"Rejected anonymous socket connection: {request.sid}")
        return False
    join_room(UserRoom(current_user.id).room)
    logger.info(f"Client connected: {request.sid} (user {current_user.id})")
    emit('connected', {'userId': current_user.id})


@socketio.on('disconnect')
def handle_disconnect(*args):
    logger.info(f"Client disconnected: {request.sid}")


@socketio.on('join')
def handle_join(data):
    """
    The client announces its user id and role after connecting. The claim is
    only honoured when it matches the authenticated session.
    """
    if not isinstance(data, dict):
        data = {}
    try:
        claimed_id = int(data.get('userId'))
    except (TypeError, ValueError):
        claimed_id = None

    if not current_user.is_authenticated or claimed_id != current_user.id or data.get('role') != current_user.role:
        logger.warning(f"Socket join refused for {request.sid}: claimed {data!r}")
        emit('error', {'message': 'Join refused: identity does not match your session'})
        return

    rooms = [topic.room for topic in topics_for(current_user)]
    for room in rooms:
        join_room(room)
    logger.info(f"Client {request.sid} joined rooms {rooms}")
    emit('joined', {'rooms': rooms})


@socketio.on('send_message')
def handle_send_message(data):
    from clubhub.messages.service import MessageRejected, send_message

    if not current_user.is_authenticated:
        emit('error', {'message': 'Not logged in'})
        return
    try:
        message = send_message(current_user, {} if data is None else data)
    except MessageRejected as e:
        emit('error', {'message': str(e)})
        return
    emit('message_sent', message.to_dict())
