# clubhub/dean/routes.py

import logging
from flask import Blueprint, render_template, request, redirect, url_for, flash
from flask_login import current_user

from database import db
from clubhub.models import ClubRequest, Event, REQUEST_ADMIN_APPROVED, PENDING
from clubhub.context import get_context
from clubhub.roles import Role
from clubhub.workflow import (
    ApprovalError, dean_approve_club_request, reject_club_request, dean_approve_event, reject_event,
)

logger = logging.getLogger(__name__)

dean_bp = Blueprint('dean', __name__, url_prefix='/dean')


@dean_bp.before_request
def check_dean_access():
    ctx = get_context()
    if not ctx.is_authenticated:
        return redirect(url_for('auth.login'))
    if ctx.role != Role.DEAN:
        return "Forbidden", 403


def _awaiting_requests():
    return ClubRequest.query.filter_by(status=REQUEST_ADMIN_APPROVED).order_by(ClubRequest.admin_approval_date).all()


def _awaiting_events():
    return (Event.query.filter_by(status=PENDING, approved_by_admin=True, approved_by_dean=False)
            .order_by(Event.created_at).all())


@dean_bp.route('/')
def dashboard():
    return render_template('dean_dashboard.html', requests=_awaiting_requests(), events=_awaiting_events())


@dean_bp.route('/club-requests')
def club_requests():
    return render_template('club_requests.html', requests=_awaiting_requests(), reviewer='dean')


@dean_bp.route('/club-requests/<int:request_id>/approve', methods=['POST'])
def approve_club_request(request_id):
    creq = db.session.get(ClubRequest, request_id)
    if creq is None:
        return "ClubRequest not found", 404
    try:
        dean_approve_club_request(current_user, creq,
                                  dean_name=request.form.get('deanName') or None,
                                  dean_signature=request.form.get('deanSignature') or None)
        flash(f"{creq.club_name} has been approved and its account created.", "success")
    except ApprovalError as e:
        flash(str(e), "danger")
    return redirect(url_for('dean.club_requests'))


@dean_bp.route('/club-requests/<int:request_id>/reject', methods=['POST'])
def reject_club_request_route(request_id):
    creq = db.session.get(ClubRequest, request_id)
    if creq is None:
        return "ClubRequest not found", 404
    try:
        reject_club_request(current_user, creq, request.form.get('deanNotes', ''))
        flash(f"{creq.club_name} has been rejected.", "info")
    except ApprovalError as e:
        flash(str(e), "danger")
    return redirect(url_for('dean.club_requests'))


@dean_bp.route('/events')
def events():
    return render_template('review_events.html', events=_awaiting_events(), reviewer='dean')


@dean_bp.route('/events/<int:event_id>/approve', methods=['POST'])
def approve_event(event_id):
    event = db.session.get(Event, event_id)
    if event is None:
        return "Event not found", 404
    try:
        dean_approve_event(current_user, event)
        flash(f"{event.title} is now approved.", "success")
    except ApprovalError as e:
        flash(str(e), "danger")
    return redirect(url_for('dean.events'))


@dean_bp.route('/events/<int:event_id>/reject', methods=['POST'])
def reject_event_route(event_id):
    event = db.session.get(Event, event_id)
    if event is None:
        return "Event not found", 404
    try:
        reject_event(current_user, event, request.form.get('deanNotes', ''))
        flash(f"{event.title} has been rejected.", "info")
    except ApprovalError as e:
        flash(str(e), "danger")
    return redirect(url_for('dean.events'))
