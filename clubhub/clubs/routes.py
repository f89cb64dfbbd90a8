import logging
from flask import request, render_template, redirect, url_for, flash
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from database import db, get_db_session
from clubhub.models import (
    User, Post, Event, EventReport, Application, Subscription, RSVP,
    PENDING, APPROVED, APPLICATION_PENDING, APPLICATION_ACCEPTED, APPLICATION_REJECTED, RSVP_GOING,
)
from clubhub.roles import Role
from clubhub.utils import login_required, role_required, save_upload, save_uploads, media_kind
from clubhub.auth.forms import first_error
from .forms import PostForm, EventForm, EventReportForm
from . import clubs_bp

logger = logging.getLogger(__name__)

EVENT_FIELDS = ('title', 'description', 'category', 'location', 'starts_at', 'ends_at', 'capacity',
                'expected_attendance', 'budget', 'organizer_name', 'organizer_phone', 'requirements')
REPORT_TEXT_FIELDS = ('faculty_adviser_name', 'activity_title', 'activity_date', 'activity_location',
                      'purpose_of_activity', 'activity_description', 'managing_students', 'participating_students',
                      'number_of_attendance', 'evaluation_results', 'recommendations')
REPORT_FILE_FIELDS = ('photos', 'attendance_sheet', 'receipts_and_liquidation', 'activity_proposal',
                      'supporting_documents')


def events_needing_report(club_id):
    """Approved events that have taken place and still have no report."""
    approved = Event.query.filter_by(club_id=club_id, status=APPROVED).order_by(Event.starts_at).all()
    return [event for event in approved if event.needs_report]


def _get_own_event(club_id, event_id):
    event = db.session.get(Event, event_id)
    if event is None:
        return None, ("Event not found", 404)
    if event.club_id != club_id:
        return None, ("Forbidden", 403)
    return event, None


@clubs_bp.route('/<int:club_id>')
@login_required
def profile(club_id):
    club = db.session.get(User, club_id)
    if not club or club.role != Role.CLUB.value:
        return "Club not found", 404

    is_owner = current_user.id == club_id
    posts_query = Post.query.filter_by(club_id=club_id)
    if not is_owner and not Role(current_user.role).is_staff:
        posts_query = posts_query.filter_by(status=APPROVED)
    posts = posts_query.order_by(Post.created_at.desc()).all()

    events = Event.query.filter_by(club_id=club_id, status=APPROVED).order_by(Event.starts_at).all()
    own_events = []
    needing_report = []
    if is_owner:
        own_events = Event.query.filter(Event.club_id == club_id, Event.status != APPROVED) \
            .order_by(Event.created_at.desc()).all()
        needing_report = events_needing_report(club_id)

    is_subscribed = False
    if current_user.role == Role.STUDENT.value:
        is_subscribed = Subscription.query.filter_by(student_id=current_user.id, club_id=club_id).first() is not None
    subscriber_count = Subscription.query.filter_by(club_id=club_id).count()

    return render_template('club_profile.html',
                           user=club,
                           profile=club.profile,
                           posts=posts,
                           events=events,
                           own_events=own_events,
                           needing_report=needing_report,
                           is_owner=is_owner,
                           is_subscribed=is_subscribed,
                           subscriber_count=subscriber_count,
                           post_form=PostForm(formdata=None))


@clubs_bp.route('/<int:club_id>/addPost', methods=['POST'])
@role_required(['club'], owner_arg='club_id')
def add_post(club_id):
    form = PostForm()
    if not form.validate_on_submit():
        flash("Your post could not be saved.", "danger")
        return redirect(url_for('clubs.profile', club_id=club_id))

    text = (form.content.data or '').strip()
    media = form.media.data if form.media.data and form.media.data.filename else None
    if not text and media is None:
        flash("A post needs text or a picture/video.", "danger")
        return redirect(url_for('clubs.profile', club_id=club_id))

    image = video = None
    if media is not None:
        kind = media_kind(media)
        if kind is None:
            flash("Only images and videos can be attached to a post.", "danger")
            return redirect(url_for('clubs.profile', club_id=club_id))
        path = save_upload(media)
        if kind == 'image':
            image = path
        else:
            video = path

    try:
        with get_db_session() as s:
            post = Post(club_id=club_id, text=text, image=image, video=video, status=PENDING)
            s.add(post)
            s.commit()
            logger.info(f"Club {club_id} created post {post.id}, awaiting review")
    except Exception as e:
        logger.error(f"Failed to create post for club {club_id}: {str(e)}")
        return "Server Error", 500

    flash("Your post was submitted and is awaiting admin approval.", "success")
    return redirect(url_for('clubs.profile', club_id=club_id))


@clubs_bp.route('/<int:club_id>/posts/<int:post_id>/delete', methods=['POST'])
@role_required(['club'], owner_arg='club_id')
def delete_post(club_id, post_id):
    post = db.session.get(Post, post_id)
    if not post:
        return "Post not found", 404
    if post.club_id != club_id:
        return "Forbidden", 403

    with get_db_session() as s:
        s.delete(post)
        s.commit()
    logger.info(f"Club {club_id} deleted post {post_id}")
    flash("Post deleted.", "info")
    return redirect(url_for('clubs.profile', club_id=club_id))


@clubs_bp.route('/<int:club_id>/event/new', methods=['GET', 'POST'])
@role_required(['club'], owner_arg='club_id')
def new_event(club_id):
    form = EventForm()
    pending_reports = events_needing_report(club_id)
    if pending_reports:
        titles = ', '.join(event.title for event in pending_reports)
        return render_template('event_form.html', form=form, club_id=club_id,
                               error=f"Submit the report for your past event(s) before requesting a new one: {titles}")

    if request.method == 'GET':
        return render_template('event_form.html', form=form, club_id=club_id, error=None)

    if not form.validate_on_submit():
        return render_template('event_form.html', form=form, club_id=club_id, error=first_error(form))

    try:
        with get_db_session() as s:
            event = Event(club_id=club_id, status=PENDING, attachments=save_uploads(form.attachments.data))
            for field in EVENT_FIELDS:
                value = getattr(form, field).data
                setattr(event, field, value.strip() if isinstance(value, str) else value)
            s.add(event)
            s.commit()
            logger.info(f"Club {club_id} submitted event {event.id} for approval")
    except Exception as e:
        logger.error(f"Failed to create event for club {club_id}: {str(e)}")
        return render_template('event_form.html', form=form, club_id=club_id, error="Something went wrong!")

    flash("Your event request was submitted for approval.", "success")
    return redirect(url_for('clubs.profile', club_id=club_id))


@clubs_bp.route('/<int:club_id>/event/<int:event_id>/delete', methods=['POST'])
@role_required(['club'], owner_arg='club_id')
def delete_event(club_id, event_id):
    event, error = _get_own_event(club_id, event_id)
    if error:
        return error
    if event.report is not None:
        flash("Events with a submitted report are kept on record.", "warning")
        return redirect(url_for('clubs.profile', club_id=club_id))

    with get_db_session() as s:
        s.delete(event)
        s.commit()
    logger.info(f"Club {club_id} deleted event {event_id}")
    flash("Event deleted.", "info")
    return redirect(url_for('clubs.profile', club_id=club_id))


@clubs_bp.route('/<int:club_id>/event/<int:event_id>/report', methods=['GET', 'POST'])
@role_required(['club'], owner_arg='club_id')
def event_report(club_id, event_id):
    event, error = _get_own_event(club_id, event_id)
    if error:
        return error
    if event.report is not None:
        flash("A report was already submitted for this event.", "info")
        return redirect(url_for('clubs.profile', club_id=club_id))
    if event.status != APPROVED or not event.has_elapsed():
        flash("Reports can only be submitted for approved events that have taken place.", "warning")
        return redirect(url_for('clubs.profile', club_id=club_id))

    form = EventReportForm()
    if request.method == 'GET':
        form.activity_title.data = event.title
        form.activity_location.data = event.location
        if event.starts_at:
            form.activity_date.data = event.starts_at.date()
        return render_template('event_report_form.html', form=form, event=event, error=None)

    if not form.validate_on_submit():
        return render_template('event_report_form.html', form=form, event=event, error=first_error(form))

    try:
        with get_db_session() as s:
            report = EventReport(event_id=event.id, club_id=club_id, club_name=current_user.display_name)
            for field in REPORT_TEXT_FIELDS:
                value = getattr(form, field).data
                setattr(report, field, value.strip() if isinstance(value, str) else value)
            for field in REPORT_FILE_FIELDS:
                setattr(report, field, save_uploads(getattr(form, field).data))
            s.add(report)
            s.commit()
            logger.info(f"Club {club_id} submitted report {report.id} for event {event_id}")
    except IntegrityError:
        flash("A report was already submitted for this event.", "info")
        return redirect(url_for('clubs.profile', club_id=club_id))
    except Exception as e:
        logger.error(f"Failed to save report for event {event_id}: {str(e)}")
        return render_template('event_report_form.html', form=form, event=event, error="Something went wrong!")

    flash("Event report submitted.", "success")
    return redirect(url_for('clubs.profile', club_id=club_id))


@clubs_bp.route('/<int:club_id>/event/<int:event_id>/rsvps')
@role_required(['club'], owner_arg='club_id')
def event_rsvps(club_id, event_id):
    event, error = _get_own_event(club_id, event_id)
    if error:
        return error
    rsvps = RSVP.query.filter_by(event_id=event_id).order_by(RSVP.status, RSVP.created_at).all()
    return render_template('event_rsvps.html', event=event, rsvps=rsvps,
                           going_count=sum(1 for r in rsvps if r.status == RSVP_GOING))


@clubs_bp.route('/<int:club_id>/applications')
@role_required(['club'], owner_arg='club_id')
def applications(club_id):
    pending = (Application.query.filter_by(club_id=club_id, status=APPLICATION_PENDING)
               .order_by(Application.created_at).all())
    return render_template('club_applications.html', applications=pending, club_id=club_id)


def _get_own_application(club_id, app_id):
    application = db.session.get(Application, app_id)
    if not application:
        return None, ("Application not found", 404)
    if application.club_id != club_id:
        return None, ("Forbidden", 403)
    return application, None


@clubs_bp.route('/<int:club_id>/applications/<int:app_id>/approve', methods=['POST'])
@role_required(['club'], owner_arg='club_id')
def approve_application(club_id, app_id):
    application, error = _get_own_application(club_id, app_id)
    if error:
        return error
    if application.status != APPLICATION_PENDING:
        flash(f"This application is already {application.status}.", "info")
        return redirect(url_for('clubs.applications', club_id=club_id))

    try:
        with get_db_session() as s:
            application.status = APPLICATION_ACCEPTED
            if not s.query(Subscription).filter_by(student_id=application.student_id, club_id=club_id).first():
                s.add(Subscription(student_id=application.student_id, club_id=club_id))
            s.commit()
    except IntegrityError:
        # The student subscribed in the meantime; acceptance still stands
        with get_db_session() as s:
            application.status = APPLICATION_ACCEPTED
            s.commit()

    logger.info(f"Club {club_id} accepted application {app_id}")
    flash(f"{application.student_name} has been accepted.", "success")
    return redirect(url_for('clubs.applications', club_id=club_id))


@clubs_bp.route('/<int:club_id>/applications/<int:app_id>/reject', methods=['POST'])
@role_required(['club'], owner_arg='club_id')
def reject_application(club_id, app_id):
    application, error = _get_own_application(club_id, app_id)
    if error:
        return error
    if application.status != APPLICATION_PENDING:
        flash(f"This application is already {application.status}.", "info")
        return redirect(url_for('clubs.applications', club_id=club_id))

    with get_db_session() as s:
        application.status = APPLICATION_REJECTED
        application.club_notes = request.form.get('clubNotes', '')
        s.commit()
    logger.info(f"Club {club_id} rejected application {app_id}")
    flash(f"{application.student_name}'s application was rejected.", "info")
    return redirect(url_for('clubs.applications', club_id=club_id))


@clubs_bp.route('/<int:club_id>/subscribers')
@role_required(['club'], owner_arg='club_id')
def subscribers(club_id):
    students = (User.query.join(Subscription, Subscription.student_id == User.id)
                .filter(Subscription.club_id == club_id).order_by(User.username).all())
    return render_template('club_subscribers.html', students=students, club_id=club_id)
