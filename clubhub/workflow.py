# clubhub/workflow.py
"""
Approval chains for club registration requests, events and posts.

Club request:  pending -> admin_approved -> approved   (Academic, dean decides last)
               pending -> approved                     (Non Academic, admin decides)
               pending | admin_approved -> rejected
Event:         approved_by_admin and approved_by_dean both true -> approved.
               Non Academic clubs get the dean flag together with the admin's.
Post:          pending -> approved | rejected, admin only.

Every transition either completes and commits, or raises ApprovalError and
leaves the row untouched.
"""

import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from database import atomic
from clubhub.mailer import send_notification_email
from clubhub.models import (
    AuditLog, ClubRequest, Subscription, User,
    REQUEST_PENDING, REQUEST_ADMIN_APPROVED, REQUEST_APPROVED, REQUEST_REJECTED, OPEN_REQUEST_STATUSES,
    PENDING, APPROVED, REJECTED,
)
from clubhub.profiles import ClubProfile
from clubhub.realtime import ClubRoom, publish
from clubhub.roles import Role

logger = logging.getLogger(__name__)


class ApprovalError(ValueError):
    pass


def record_audit(session, actor, action, target_type, target_id, details=None):
    session.add(AuditLog(actor_id=actor.id, action=action, target_type=target_type,
                         target_id=target_id, details=details))


def _require_role(actor, role):
    if Role(actor.role) != role:
        raise ApprovalError(f"Only the {role.value} can take this decision")


def email_in_use(email, exclude_request_id=None):
    if User.query.filter(func.lower(User.email) == email.lower()).first():
        return True
    query = ClubRequest.query.filter(func.lower(ClubRequest.club_email) == email.lower(),
                                     ClubRequest.status.in_(OPEN_REQUEST_STATUSES))
    if exclude_request_id is not None:
        query = query.filter(ClubRequest.id != exclude_request_id)
    return query.first() is not None


def club_name_in_use(club_name, exclude_request_id=None):
    if User.query.filter(func.lower(User.username) == club_name.lower(), User.role == Role.CLUB.value).first():
        return True
    query = ClubRequest.query.filter(func.lower(ClubRequest.club_name) == club_name.lower(),
                                     ClubRequest.status.in_(OPEN_REQUEST_STATUSES))
    if exclude_request_id is not None:
        query = query.filter(ClubRequest.id != exclude_request_id)
    return query.first() is not None


def _materialize_club_user(session, creq):
    """Creates the club account from the request. Caller owns the transaction."""
    if User.query.filter(func.lower(User.email) == creq.club_email.lower()).first():
        raise ApprovalError(f"An account with email {creq.club_email} already exists")
    if User.query.filter(func.lower(User.username) == creq.club_name.lower(), User.role == Role.CLUB.value).first():
        raise ApprovalError(f"A club named {creq.club_name} already exists")

    user = User(
        username=creq.club_name,
        email=creq.club_email,
        password_hash=creq.password_hash,
        role=Role.CLUB.value,
        is_verified=creq.is_verified,
        verification_token=None if creq.is_verified else creq.verification_token,
        is_approved=True,
    )
    user.profile = ClubProfile(
        club_name=creq.club_name,
        club_description=creq.club_description or '',
        representative_name=creq.representative_name or creq.president_name or '',
        club_kind=creq.club_kind or 'Non Academic',
        email=creq.club_email,
        phone=creq.president_phone or '',
        logo=creq.club_logo or '',
    )
    session.add(user)
    session.flush()
    creq.user_id = user.id
    # The request keeps no live token once the account carries it
    creq.verification_token = None
    return user


def admin_approve_club_request(admin, creq):
    """Returns the new club user for Non Academic clubs, None when the dean still has to decide."""
    _require_role(admin, Role.ADMIN)
    if creq.status != REQUEST_PENDING:
        raise ApprovalError(f"Request is {creq.status}, only pending requests can be approved by the admin")

    user = None
    try:
        with atomic() as s:
            creq.approved_by_admin = True
            creq.admin_approval_date = datetime.utcnow()
            if creq.is_academic:
                creq.status = REQUEST_ADMIN_APPROVED
                record_audit(s, admin, 'club_request.admin_approve', 'club_request', creq.id,
                             'Forwarded to dean')
            else:
                user = _materialize_club_user(s, creq)
                creq.status = REQUEST_APPROVED
                record_audit(s, admin, 'club_request.approve', 'club_request', creq.id,
                             f'Created club user {user.id}')
    except IntegrityError:
        raise ApprovalError("Email or club name is already in use")

    logger.info(f"Admin {admin.id} approved club request {creq.id} -> {creq.status}")
    return user


def dean_approve_club_request(dean, creq, dean_name=None, dean_signature=None):
    _require_role(dean, Role.DEAN)
    if creq.status != REQUEST_ADMIN_APPROVED:
        raise ApprovalError(f"Request is {creq.status}, the dean can only approve admin-approved requests")

    try:
        with atomic() as s:
            user = _materialize_club_user(s, creq)
            creq.dean_approved = True
            creq.dean_approval_date = datetime.utcnow()
            creq.dean_name = dean_name or dean.display_name
            creq.dean_signature = dean_signature
            creq.status = REQUEST_APPROVED
            record_audit(s, dean, 'club_request.dean_approve', 'club_request', creq.id,
                         f'Created club user {user.id}')
    except IntegrityError:
        raise ApprovalError("Email or club name is already in use")

    logger.info(f"Dean {dean.id} approved club request {creq.id}, club user {user.id} created")
    return user


def reject_club_request(reviewer, creq, notes):
    role = Role(reviewer.role)
    if role == Role.ADMIN:
        allowed = OPEN_REQUEST_STATUSES
    elif role == Role.DEAN:
        allowed = (REQUEST_ADMIN_APPROVED,)
    else:
        raise ApprovalError("Only the admin or the dean can reject a club request")
    if creq.status not in allowed:
        raise ApprovalError(f"Request is {creq.status} and cannot be rejected by the {role.value}")

    with atomic() as s:
        creq.status = REQUEST_REJECTED
        creq.verification_token = None
        if role == Role.ADMIN:
            creq.admin_notes = notes or ''
        else:
            creq.dean_notes = notes or ''
        record_audit(s, reviewer, f'club_request.{role.value}_reject', 'club_request', creq.id, notes)
    logger.info(f"{role.value.capitalize()} {reviewer.id} rejected club request {creq.id}")


def _club_is_academic(event):
    return event.club.profile.is_academic


def _refresh_event_status(event):
    if event.approved_by_admin and event.approved_by_dean:
        event.status = APPROVED
        return True
    return False


def admin_approve_event(admin, event):
    """Returns True when the event became approved."""
    _require_role(admin, Role.ADMIN)
    if event.status != PENDING or event.approved_by_admin:
        raise ApprovalError("Only pending events awaiting admin review can be approved")

    with atomic() as s:
        event.approved_by_admin = True
        if not _club_is_academic(event):
            event.approved_by_dean = True
        became_approved = _refresh_event_status(event)
        record_audit(s, admin, 'event.admin_approve', 'event', event.id,
                     'approved' if became_approved else 'forwarded to dean')

    if became_approved:
        _announce_event(event)
    logger.info(f"Admin {admin.id} approved event {event.id}, status {event.status}")
    return became_approved


def dean_approve_event(dean, event):
    _require_role(dean, Role.DEAN)
    if event.status != PENDING or not event.approved_by_admin or event.approved_by_dean:
        raise ApprovalError("Only admin-approved events awaiting the dean can be approved")

    with atomic() as s:
        event.approved_by_dean = True
        became_approved = _refresh_event_status(event)
        record_audit(s, dean, 'event.dean_approve', 'event', event.id)

    if became_approved:
        _announce_event(event)
    logger.info(f"Dean {dean.id} approved event {event.id}, status {event.status}")
    return became_approved


def reject_event(reviewer, event, notes):
    role = Role(reviewer.role)
    if event.status != PENDING:
        raise ApprovalError(f"Event is already {event.status}")
    if role == Role.DEAN and not event.approved_by_admin:
        raise ApprovalError("The dean reviews events only after the admin")
    if not role.is_staff:
        raise ApprovalError("Only the admin or the dean can reject an event")

    with atomic() as s:
        event.status = REJECTED
        if role == Role.ADMIN:
            event.admin_notes = notes or ''
        else:
            event.dean_notes = notes or ''
        record_audit(s, reviewer, f'event.{role.value}_reject', 'event', event.id, notes)
    logger.info(f"{role.value.capitalize()} {reviewer.id} rejected event {event.id}")


def approve_post(admin, post):
    _require_role(admin, Role.ADMIN)
    if post.status != PENDING:
        raise ApprovalError(f"Post is already {post.status}")
    with atomic() as s:
        post.status = APPROVED
        record_audit(s, admin, 'post.approve', 'post', post.id)
    notify_subscribers(post.club, 'post', None, post.text, {'postId': post.id})


def reject_post(admin, post, notes):
    _require_role(admin, Role.ADMIN)
    if post.status != PENDING:
        raise ApprovalError(f"Post is already {post.status}")
    with atomic() as s:
        post.status = REJECTED
        post.admin_notes = notes or ''
        record_audit(s, admin, 'post.reject', 'post', post.id, notes)


def _announce_event(event):
    notify_subscribers(event.club, 'event', event.title, event.description, {'eventId': event.id})


def notify_subscribers(club, item_type, title, description, extra=None):
    """Emails every subscriber and pushes a notice to the club room. Best effort."""
    subscribers = (User.query.join(Subscription, Subscription.student_id == User.id)
                   .filter(Subscription.club_id == club.id).all())
    for student in subscribers:
        send_notification_email(student.email, club.display_name, item_type, title, description)

    payload = {'type': item_type, 'clubId': club.id, 'clubName': club.display_name, 'title': title}
    payload.update(extra or {})
    publish(ClubRoom(club.id), 'notification', payload)
    logger.info(f"Notified {len(subscribers)} subscribers of club {club.id} about a new {item_type}")
