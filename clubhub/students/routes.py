import logging
from datetime import datetime
from flask import request, render_template, redirect, url_for, flash
from flask_login import current_user
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from database import db, get_db_session
from clubhub.models import (
    User, Post, Event, Application, Subscription, RSVP,
    APPROVED, APPLICATION_PENDING, APPLICATION_ACCEPTED, APPLICATION_REJECTED, RSVP_GOING, RSVP_STATUSES,
)
from clubhub.roles import Role
from clubhub.utils import login_required, role_required
from clubhub.mailer import send_rsvp_email
from .forms import ApplicationForm
from . import students_bp

logger = logging.getLogger(__name__)

APPLICATION_FIELDS = ('student_name', 'email', 'gender', 'major', 'academic_year', 'skills', 'motivation', 'message')


def _get_student(student_id):
    user = db.session.get(User, student_id)
    if not user or user.role != Role.STUDENT.value:
        return None
    return user


def _get_club(club_id):
    club = db.session.get(User, club_id)
    if not club or club.role != Role.CLUB.value:
        return None
    return club


def _subscribed_club_ids(student_id):
    return [sub.club_id for sub in Subscription.query.filter_by(student_id=student_id).all()]


@students_bp.route('/<int:student_id>/home')
@role_required(['student'], owner_arg='student_id')
def home(student_id):
    student = _get_student(student_id)
    if not student:
        return "Student not found", 404

    club_ids = _subscribed_club_ids(student_id)
    posts = []
    upcoming_events = []
    if club_ids:
        posts = (Post.query.filter(Post.club_id.in_(club_ids), Post.status == APPROVED)
                 .order_by(Post.created_at.desc()).all())
        upcoming_events = (Event.query.filter(Event.club_id.in_(club_ids), Event.status == APPROVED,
                                              or_(Event.starts_at.is_(None), Event.starts_at >= datetime.utcnow()))
                           .order_by(Event.starts_at).all())

    return render_template('student_home.html', user=student, posts=posts, events=upcoming_events)


@students_bp.route('/<int:student_id>')
@login_required
def profile(student_id):
    student = _get_student(student_id)
    if not student:
        return "Student not found", 404
    # Other students cannot browse profiles
    if current_user.role == Role.STUDENT.value and current_user.id != student_id:
        return "Forbidden", 403

    clubs = User.query.filter(User.id.in_(_subscribed_club_ids(student_id))).order_by(User.username).all()
    return render_template('student_profile.html', user=student, profile=student.profile, clubs=clubs,
                           is_owner=current_user.id == student_id)


@students_bp.route('/<int:student_id>/clubs')
@role_required(['student'], owner_arg='student_id')
def club_directory(student_id):
    clubs = User.query.filter_by(role=Role.CLUB.value).order_by(User.username).all()
    subscribed = set(_subscribed_club_ids(student_id))
    return render_template('club_directory.html', clubs=clubs, subscribed=subscribed, student_id=student_id)


@students_bp.route('/<int:student_id>/subscribe/<int:club_id>', methods=['POST'])
@role_required(['student'], owner_arg='student_id')
def subscribe(student_id, club_id):
    club = _get_club(club_id)
    if not club:
        return "Club not found", 404

    try:
        with get_db_session() as s:
            if not s.query(Subscription).filter_by(student_id=student_id, club_id=club_id).first():
                s.add(Subscription(student_id=student_id, club_id=club_id))
                s.commit()
                logger.info(f"Student {student_id} subscribed to club {club_id}")
        flash(f"You are now subscribed to {club.display_name}.", "success")
    except IntegrityError:
        # A concurrent request created the row first
        flash(f"You are already subscribed to {club.display_name}.", "info")
    return redirect(request.referrer or url_for('clubs.profile', club_id=club_id))


@students_bp.route('/<int:student_id>/unsubscribe/<int:club_id>', methods=['POST'])
@role_required(['student'], owner_arg='student_id')
def unsubscribe(student_id, club_id):
    with get_db_session() as s:
        deleted = s.query(Subscription).filter_by(student_id=student_id, club_id=club_id).delete()
        s.commit()
    if deleted:
        logger.info(f"Student {student_id} unsubscribed from club {club_id}")
        flash("You have unsubscribed.", "info")
    return redirect(request.referrer or url_for('students.club_directory', student_id=student_id))


@students_bp.route('/<int:student_id>/apply/<int:club_id>', methods=['GET', 'POST'])
@role_required(['student'], owner_arg='student_id')
def apply(student_id, club_id):
    club = _get_club(club_id)
    if not club:
        return "Club not found", 404

    student = current_user
    existing = Application.query.filter_by(student_id=student_id, club_id=club_id).first()
    if existing and existing.status in (APPLICATION_PENDING, APPLICATION_ACCEPTED):
        flash(f"You already have a {existing.status} application for {club.display_name}.", "warning")
        return redirect(url_for('students.applications', student_id=student_id))

    form = ApplicationForm()
    if request.method == 'GET':
        form.student_name.data = student.display_name
        form.email.data = student.email
        return render_template('application_form.html', form=form, club=club, error=None)

    if not form.validate_on_submit():
        return render_template('application_form.html', form=form, club=club,
                               error="Please fill in all required fields.")

    try:
        with get_db_session() as s:
            # A rejected application is reused rather than duplicated
            application = existing or Application(student_id=student_id, club_id=club_id)
            for field in APPLICATION_FIELDS:
                setattr(application, field, getattr(form, field).data)
            application.status = APPLICATION_PENDING
            application.club_notes = None
            s.add(application)
            s.commit()
            logger.info(f"Student {student_id} applied to club {club_id} (application {application.id})")
    except IntegrityError:
        flash("You already have an application for this club.", "warning")
        return redirect(url_for('students.applications', student_id=student_id))
    except Exception as e:
        logger.error(f"Failed to submit application: {str(e)}")
        return render_template('application_form.html', form=form, club=club, error="Something went wrong!")

    flash("Your application has been submitted!", "success")
    return redirect(url_for('students.applications', student_id=student_id))


@students_bp.route('/<int:student_id>/applications')
@role_required(['student'], owner_arg='student_id')
def applications(student_id):
    my_applications = (Application.query.filter_by(student_id=student_id)
                       .order_by(Application.updated_at.desc()).all())
    return render_template('student_applications.html', applications=my_applications,
                           rejected_status=APPLICATION_REJECTED, student_id=student_id)


@students_bp.route('/<int:student_id>/events')
@role_required(['student'], owner_arg='student_id')
def events(student_id):
    upcoming = (Event.query.filter(Event.status == APPROVED,
                                   or_(Event.starts_at.is_(None), Event.starts_at >= datetime.utcnow()))
                .order_by(Event.starts_at).all())
    my_rsvps = {r.event_id: r.status for r in RSVP.query.filter_by(student_id=student_id).all()}
    going_counts = {event.id: event.going_count() for event in upcoming}
    return render_template('student_events.html', events=upcoming, my_rsvps=my_rsvps,
                           going_counts=going_counts, student_id=student_id, statuses=RSVP_STATUSES)


def _rsvp_refusal(event, existing, status):
    """Reason the RSVP cannot be recorded, or None."""
    if event.status != APPROVED:
        return "You can only RSVP to approved events."
    if event.has_elapsed():
        return "This event has already taken place."
    if status not in RSVP_STATUSES:
        return "Invalid RSVP status."
    already_going = existing is not None and existing.status == RSVP_GOING
    # Count-then-write: concurrent RSVPs may overshoot capacity slightly
    if status == RSVP_GOING and not already_going and event.capacity is not None:
        if event.going_count() >= event.capacity:
            return "Sorry, this event is full."
    return None


@students_bp.route('/<int:student_id>/events/<int:event_id>/rsvp', methods=['POST'])
@role_required(['student'], owner_arg='student_id')
def rsvp(student_id, event_id):
    event = db.session.get(Event, event_id)
    if not event:
        return "Event not found", 404

    status = request.form.get('status', RSVP_GOING)
    existing = RSVP.query.filter_by(student_id=student_id, event_id=event_id).first()
    refusal = _rsvp_refusal(event, existing, status)
    if refusal:
        flash(refusal, "danger")
        return redirect(url_for('students.events', student_id=student_id))

    was_going = existing is not None and existing.status == RSVP_GOING
    try:
        with get_db_session() as s:
            if existing:
                existing.status = status
            else:
                s.add(RSVP(student_id=student_id, event_id=event_id, status=status))
            s.commit()
    except IntegrityError:
        # Lost an insert race against our own earlier request; update the row that won
        existing = RSVP.query.filter_by(student_id=student_id, event_id=event_id).first()
        existing.status = status
        db.session.commit()

    logger.info(f"Student {student_id} RSVP {status} for event {event_id}")
    if status == RSVP_GOING and not was_going:
        send_rsvp_email(current_user.email, event)
    flash(f"Your RSVP has been recorded: {status.replace('_', ' ')}.", "success")
    return redirect(url_for('students.events', student_id=student_id))
