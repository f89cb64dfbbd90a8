# clubhub/admin/routes.py

import logging
from flask import Blueprint, render_template, request, redirect, url_for, flash
from flask_login import current_user

from database import db
from clubhub.models import (
    User, ClubRequest, Event, Post, AuditLog, Subscription, Application,
    REQUEST_PENDING, REQUEST_ADMIN_APPROVED, PENDING, APPROVED,
)
from clubhub.context import get_context
from clubhub.roles import Role
from clubhub.workflow import (
    ApprovalError, admin_approve_club_request, reject_club_request,
    admin_approve_event, reject_event, approve_post, reject_post,
)

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


@admin_bp.before_request
def check_admin_access():
    ctx = get_context()
    if not ctx.is_authenticated:
        return redirect(url_for('auth.login'))
    if ctx.role != Role.ADMIN:
        return "Forbidden", 403


@admin_bp.route('/<int:admin_id>')
def dashboard(admin_id):
    if admin_id != current_user.id:
        return "Forbidden", 403

    stats = {
        'students': User.query.filter_by(role=Role.STUDENT.value).count(),
        'clubs': User.query.filter_by(role=Role.CLUB.value).count(),
        'pending_requests': ClubRequest.query.filter_by(status=REQUEST_PENDING).count(),
        'awaiting_dean': ClubRequest.query.filter_by(status=REQUEST_ADMIN_APPROVED).count(),
        'pending_events': Event.query.filter_by(status=PENDING, approved_by_admin=False).count(),
        'pending_posts': Post.query.filter_by(status=PENDING).count(),
        'approved_events': Event.query.filter_by(status=APPROVED).count(),
        'subscriptions': Subscription.query.count(),
        'applications': Application.query.count(),
    }
    recent = AuditLog.query.order_by(AuditLog.created_at.desc()).limit(10).all()
    return render_template('admin_dashboard.html', stats=stats, recent=recent)


@admin_bp.route('/club-requests')
def club_requests():
    requests_ = (ClubRequest.query.filter(ClubRequest.status.in_((REQUEST_PENDING, REQUEST_ADMIN_APPROVED)))
                 .order_by(ClubRequest.created_at).all())
    return render_template('club_requests.html', requests=requests_, reviewer='admin')


def _get_or_404(model, object_id):
    obj = db.session.get(model, object_id)
    if obj is None:
        return None, (f"{model.__name__} not found", 404)
    return obj, None


@admin_bp.route('/club-requests/<int:request_id>/approve', methods=['POST'])
def approve_club_request(request_id):
    creq, error = _get_or_404(ClubRequest, request_id)
    if error:
        return error
    try:
        user = admin_approve_club_request(current_user, creq)
    except ApprovalError as e:
        flash(str(e), "danger")
        return redirect(url_for('admin.club_requests'))

    if user is None:
        flash(f"{creq.club_name} was forwarded to the dean for final approval.", "success")
    else:
        flash(f"{creq.club_name} has been approved and its account created.", "success")
    return redirect(url_for('admin.club_requests'))


@admin_bp.route('/club-requests/<int:request_id>/reject', methods=['POST'])
def reject_club_request_route(request_id):
    creq, error = _get_or_404(ClubRequest, request_id)
    if error:
        return error
    try:
        reject_club_request(current_user, creq, request.form.get('adminNotes', ''))
        flash(f"{creq.club_name} has been rejected.", "info")
    except ApprovalError as e:
        flash(str(e), "danger")
    return redirect(url_for('admin.club_requests'))


@admin_bp.route('/events')
def events():
    pending = (Event.query.filter_by(status=PENDING, approved_by_admin=False)
               .order_by(Event.created_at).all())
    return render_template('review_events.html', events=pending, reviewer='admin')


@admin_bp.route('/events/<int:event_id>/approve', methods=['POST'])
def approve_event(event_id):
    event, error = _get_or_404(Event, event_id)
    if error:
        return error
    try:
        if admin_approve_event(current_user, event):
            flash(f"{event.title} is now approved.", "success")
        else:
            flash(f"{event.title} was forwarded to the dean.", "success")
    except ApprovalError as e:
        flash(str(e), "danger")
    return redirect(url_for('admin.events'))


@admin_bp.route('/events/<int:event_id>/reject', methods=['POST'])
def reject_event_route(event_id):
    event, error = _get_or_404(Event, event_id)
    if error:
        return error
    try:
        reject_event(current_user, event, request.form.get('adminNotes', ''))
        flash(f"{event.title} has been rejected.", "info")
    except ApprovalError as e:
        flash(str(e), "danger")
    return redirect(url_for('admin.events'))


@admin_bp.route('/posts')
def posts():
    pending = Post.query.filter_by(status=PENDING).order_by(Post.created_at).all()
    return render_template('review_posts.html', posts=pending)


@admin_bp.route('/posts/<int:post_id>/approve', methods=['POST'])
def approve_post_route(post_id):
    post, error = _get_or_404(Post, post_id)
    if error:
        return error
    try:
        approve_post(current_user, post)
        flash("Post approved and published.", "success")
    except ApprovalError as e:
        flash(str(e), "danger")
    return redirect(url_for('admin.posts'))


@admin_bp.route('/posts/<int:post_id>/reject', methods=['POST'])
def reject_post_route(post_id):
    post, error = _get_or_404(Post, post_id)
    if error:
        return error
    try:
        reject_post(current_user, post, request.form.get('adminNotes', ''))
        flash("Post rejected.", "info")
    except ApprovalError as e:
        flash(str(e), "danger")
    return redirect(url_for('admin.posts'))


@admin_bp.route('/audit-log')
def audit_log():
    entries = AuditLog.query.order_by(AuditLog.created_at.desc()).limit(200).all()
    return render_template('audit_log.html', entries=entries)
