# clubhub/messages/service.py

import logging

from sqlalchemy import and_, or_

from database import db
from clubhub.models import Message, Subscription, User
from clubhub.realtime import Broadcast, ClubRoom, UserRoom, BROADCAST_AUDIENCES, publish
from clubhub.roles import Role, strategy_for

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100
MAX_MESSAGE_LENGTH = 2000


class MessageRejected(ValueError):
    def __init__(self, message, status_code=403):
        super().__init__(message)
        self.status_code = status_code


def is_subscribed(student_id, club_id):
    return Subscription.query.filter_by(student_id=student_id, club_id=club_id).first() is not None


def can_message_user(sender, receiver):
    """Direct-message permission between two accounts."""
    if receiver is None or receiver.id == sender.id:
        return False
    sender_role, receiver_role = Role(sender.role), Role(receiver.role)

    if sender_role == Role.STUDENT:
        return receiver_role == Role.CLUB and is_subscribed(sender.id, receiver.id)
    if sender_role == Role.CLUB:
        if receiver_role == Role.STUDENT:
            return is_subscribed(receiver.id, sender.id)
        return receiver_role.is_staff
    # admin and dean
    if receiver_role == Role.STUDENT:
        return receiver.is_verified
    return receiver_role == Role.CLUB


def can_post_to_club_room(sender, club_id):
    role = Role(sender.role)
    if role == Role.STUDENT:
        return is_subscribed(sender.id, club_id)
    if role == Role.CLUB:
        return sender.id == club_id
    return False


def can_read_club_room(viewer, club_id):
    return Role(viewer.role).is_staff or can_post_to_club_room(viewer, club_id)


def _as_int(value, field):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MessageRejected(f"Invalid {field}", 400)


def send_message(sender, data):
    """
    Validates the addressing mode and permissions, persists the message, then
    pushes it to the matching rooms. The push is best effort; the stored row
    is the source of truth.
    """
    if not isinstance(data, dict):
        raise MessageRejected("Message payload must be an object", 400)
    body = data.get('message') or ''
    if not isinstance(body, str):
        raise MessageRejected("Message must be text", 400)
    body = body.strip()
    if not body:
        raise MessageRejected("Message cannot be empty", 400)
    if len(body) > MAX_MESSAGE_LENGTH:
        raise MessageRejected(f"Message is limited to {MAX_MESSAGE_LENGTH} characters", 400)

    receiver_id = data.get('receiverId')
    club_id = data.get('clubId')
    admin_target = data.get('adminTarget')
    modes = [m for m in (receiver_id, club_id, admin_target) if m not in (None, '')]
    if len(modes) != 1:
        raise MessageRejected("Specify exactly one of receiverId, clubId or adminTarget", 400)

    if receiver_id not in (None, ''):
        receiver = db.session.get(User, _as_int(receiver_id, 'receiverId'))
        if receiver is None:
            raise MessageRejected("Recipient not found", 404)
        if not can_message_user(sender, receiver):
            raise MessageRejected("You are not allowed to message this user")
        message = Message(sender_id=sender.id, receiver_id=receiver.id, message_type='direct', body=body)
        topics = [UserRoom(receiver.id), UserRoom(sender.id)]

    elif club_id not in (None, ''):
        club_id = _as_int(club_id, 'clubId')
        club = db.session.get(User, club_id)
        if club is None or club.role != Role.CLUB.value:
            raise MessageRejected("Club not found", 404)
        if not can_post_to_club_room(sender, club_id):
            raise MessageRejected("You are not allowed to post in this club chat")
        message = Message(sender_id=sender.id, club_id=club_id, message_type='group', body=body)
        topics = [ClubRoom(club_id)]

    else:
        if not Role(sender.role).is_staff:
            raise MessageRejected("Only administrators can broadcast")
        if admin_target not in BROADCAST_AUDIENCES:
            raise MessageRejected("Invalid broadcast target", 400)
        message = Message(sender_id=sender.id, admin_target=admin_target, message_type='broadcast', body=body)
        topics = [Broadcast(admin_target)]

    try:
        db.session.add(message)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to store message from {sender.id}: {str(e)}")
        raise

    payload = message.to_dict()
    for topic in topics:
        publish(topic, 'new_message', payload)
    logger.info(f"Message {message.id} ({message.message_type}) from user {sender.id} delivered to {[t.room for t in topics]}")
    return message


def history(viewer, with_user=None, club_id=None, broadcast=None):
    """Most recent messages of one conversation, oldest first."""
    query = Message.query
    if with_user is not None:
        other_id = _as_int(with_user, 'with')
        query = query.filter(
            Message.message_type == 'direct',
            or_(
                and_(Message.sender_id == viewer.id, Message.receiver_id == other_id),
                and_(Message.sender_id == other_id, Message.receiver_id == viewer.id),
            ),
        )
    elif club_id is not None:
        club_id = _as_int(club_id, 'club')
        if not can_read_club_room(viewer, club_id):
            raise MessageRejected("You cannot read this club chat")
        query = query.filter_by(message_type='group', club_id=club_id)
    elif broadcast is not None:
        if broadcast not in BROADCAST_AUDIENCES:
            raise MessageRejected("Invalid broadcast target", 400)
        if not strategy_for(viewer.role).can_read_broadcast(broadcast):
            raise MessageRejected("You cannot read this broadcast")
        query = query.filter_by(message_type='broadcast', admin_target=broadcast)
    else:
        raise MessageRejected("Specify one of with, club or broadcast", 400)

    recent = query.order_by(Message.timestamp.desc(), Message.id.desc()).limit(HISTORY_LIMIT).all()
    return list(reversed(recent))


def contacts_for(user):
    """Accounts the user may direct-message."""
    role = Role(user.role)
    if role == Role.STUDENT:
        return (User.query.join(Subscription, Subscription.club_id == User.id)
                .filter(Subscription.student_id == user.id)
                .order_by(User.username).all())
    if role == Role.CLUB:
        students = (User.query.join(Subscription, Subscription.student_id == User.id)
                    .filter(Subscription.club_id == user.id)
                    .order_by(User.username).all())
        staff = User.query.filter(User.role.in_([Role.ADMIN.value, Role.DEAN.value])).order_by(User.username).all()
        return students + staff
    return (User.query.filter(
        or_(User.role == Role.CLUB.value, and_(User.role == Role.STUDENT.value, User.is_verified.is_(True))))
        .order_by(User.role, User.username).all())
