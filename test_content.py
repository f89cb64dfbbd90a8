#!/usr/bin/env python3
"""
Club content and student participation: posts, events, reports,
subscriptions, applications and RSVPs.
"""

import io
import os
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import make_student, make_club, make_event, subscribe, login, STUDENT_PASSWORD, CLUB_PASSWORD
from clubhub.models import Post, Event, EventReport, Application, Subscription, RSVP, PENDING
from clubhub.clubs.routes import events_needing_report
from database import db

APPLICATION = {
    'student_name': 'Sara Ahmed',
    'email': '201012345@psu.edu.sa',
    'gender': 'Female',
    'major': 'Software Engineering',
    'academic_year': 'Junior',
    'skills': 'Python, soldering',
    'motivation': 'I want to build robots',
    'message': '',
}

REPORT = {
    'faculty_adviser_name': 'Dr. Khalid',
    'activity_title': 'Robot Wars',
    'activity_date': '2026-03-01',
    'activity_location': 'Hall A',
    'purpose_of_activity': 'Practice',
    'activity_description': 'Robots fought',
    'managing_students': 'Sara, Omar',
    'participating_students': 'Forty students',
    'number_of_attendance': '40',
    'evaluation_results': 'Great',
    'recommendations': 'Bigger hall',
}


def login_club(client):
    return login(client, 'robotics@psu.edu.sa', CLUB_PASSWORD)


def login_student(client, email='201012345@psu.edu.sa'):
    return login(client, email, STUDENT_PASSWORD)


def test_subscribe_is_idempotent_and_unsubscribe_removes_it(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    login_student(client)

    client.post(f'/student/{student_id}/subscribe/{club_id}')
    client.post(f'/student/{student_id}/subscribe/{club_id}')
    with app.app_context():
        assert Subscription.query.filter_by(student_id=student_id, club_id=club_id).count() == 1

    client.post(f'/student/{student_id}/unsubscribe/{club_id}')
    with app.app_context():
        assert Subscription.query.filter_by(student_id=student_id, club_id=club_id).count() == 0


def test_subscription_pair_is_unique_in_the_database(app):
    club_id = make_club(app)
    student_id = make_student(app)
    subscribe(app, student_id, club_id)
    with app.app_context():
        db.session.add(Subscription(student_id=student_id, club_id=club_id))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()
        assert Subscription.query.filter_by(student_id=student_id, club_id=club_id).count() == 1


def test_students_act_only_for_themselves(app, client):
    club_id = make_club(app)
    make_student(app)
    other_id = make_student(app, email='201099999@psu.edu.sa', name='Other')
    login_student(client)

    assert client.post(f'/student/{other_id}/subscribe/{club_id}').status_code == 403
    assert client.get(f'/student/{other_id}').status_code == 403
    assert client.get(f'/student/{other_id}/home').status_code == 403


def test_club_directory_and_profile(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    login_student(client)

    response = client.get(f'/student/{student_id}/clubs')
    assert b'Robotics Club' in response.data
    response = client.get(f'/club/{club_id}')
    assert response.status_code == 200
    assert b'Robotics Club at PSU' in response.data
    assert client.get('/club/9999').status_code == 404


def test_application_is_accepted_and_subscribes_the_student(app, client):
    club_id = make_club(app)
    student_id = make_student(app)

    login_student(client)
    response = client.post(f'/student/{student_id}/apply/{club_id}', data=APPLICATION, follow_redirects=True)
    assert b'Your application has been submitted!' in response.data
    client.get('/logout')

    with app.app_context():
        application = Application.query.filter_by(student_id=student_id, club_id=club_id).one()
        app_id = application.id
        assert application.status == 'pending'

    login_club(client)
    assert b'I want to build robots' in client.get(f'/club/{club_id}/applications').data
    client.post(f'/club/{club_id}/applications/{app_id}/approve')

    with app.app_context():
        assert db.session.get(Application, app_id).status == 'accepted'
        assert Subscription.query.filter_by(student_id=student_id, club_id=club_id).count() == 1


def test_duplicate_application_is_refused_while_pending(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    login_student(client)

    client.post(f'/student/{student_id}/apply/{club_id}', data=APPLICATION)
    response = client.post(f'/student/{student_id}/apply/{club_id}', data=APPLICATION, follow_redirects=True)
    assert b'You already have a pending application' in response.data
    with app.app_context():
        assert Application.query.filter_by(student_id=student_id, club_id=club_id).count() == 1


def test_rejected_application_can_be_resubmitted(app, client):
    club_id = make_club(app)
    student_id = make_student(app)

    login_student(client)
    client.post(f'/student/{student_id}/apply/{club_id}', data=APPLICATION)
    client.get('/logout')
    with app.app_context():
        app_id = Application.query.filter_by(student_id=student_id).one().id

    login_club(client)
    client.post(f'/club/{club_id}/applications/{app_id}/reject', data={'clubNotes': 'Team is full'})
    client.get('/logout')
    with app.app_context():
        rejected = db.session.get(Application, app_id)
        assert rejected.status == 'rejected'
        assert rejected.club_notes == 'Team is full'

    login_student(client)
    assert b'Team is full' in client.get(f'/student/{student_id}/applications').data
    client.post(f'/student/{student_id}/apply/{club_id}', data=dict(APPLICATION, motivation='Second try'))
    with app.app_context():
        applications = Application.query.filter_by(student_id=student_id, club_id=club_id).all()
        assert len(applications) == 1
        assert applications[0].id == app_id
        assert applications[0].status == 'pending'
        assert applications[0].motivation == 'Second try'
        assert applications[0].club_notes is None


def test_club_cannot_touch_another_clubs_applications(app, client):
    club_id = make_club(app)
    other_club_id = make_club(app, name='Drama Club', email='drama@psu.edu.sa')
    student_id = make_student(app)
    with app.app_context():
        application = Application(student_id=student_id, club_id=other_club_id, **{
            k: v for k, v in APPLICATION.items() if k != 'message'})
        db.session.add(application)
        db.session.commit()
        app_id = application.id

    login_club(client)
    assert client.post(f'/club/{other_club_id}/applications/{app_id}/approve').status_code == 403
    assert client.post(f'/club/{club_id}/applications/{app_id}/approve').status_code == 403
    with app.app_context():
        assert db.session.get(Application, app_id).status == 'pending'


def test_post_with_image_upload(app, client):
    club_id = make_club(app)
    login_club(client)

    data = {'content': 'Our new robot', 'media': (io.BytesIO(b'\x89PNG fake'), 'robot.png', 'image/png')}
    client.post(f'/club/{club_id}/addPost', data=data, content_type='multipart/form-data')

    with app.app_context():
        post = Post.query.filter_by(club_id=club_id).one()
        assert post.status == PENDING
        assert post.image.startswith('/uploads/')
        assert post.image.endswith('robot.png')
        assert post.video is None
        assert os.path.exists(os.path.join(app.config['UPLOAD_FOLDER'], post.image.rsplit('/', 1)[1]))


def test_empty_post_is_refused(app, client):
    club_id = make_club(app)
    login_club(client)
    response = client.post(f'/club/{club_id}/addPost', data={'content': '   '}, follow_redirects=True)
    assert b'A post needs text or a picture/video.' in response.data
    with app.app_context():
        assert Post.query.count() == 0


def test_club_cannot_post_as_another_club(app, client):
    make_club(app)
    other_club_id = make_club(app, name='Drama Club', email='drama@psu.edu.sa')
    login_club(client)
    assert client.post(f'/club/{other_club_id}/addPost', data={'content': 'hi'}).status_code == 403


def test_new_event_is_pending(app, client):
    club_id = make_club(app)
    login_club(client)
    response = client.post(f'/club/{club_id}/event/new', data={
        'title': 'Robot Wars',
        'description': 'Bring your robot',
        'location': 'Hall A',
        'starts_at': '2030-05-01T18:00',
        'ends_at': '2030-05-01T21:00',
        'capacity': '50',
    })
    assert response.status_code == 302
    with app.app_context():
        event = Event.query.filter_by(club_id=club_id).one()
        assert event.status == PENDING
        assert event.approved_by_admin is False
        assert event.capacity == 50
        assert event.starts_at.hour == 18


def test_event_end_before_start_is_refused(app, client):
    club_id = make_club(app)
    login_club(client)
    response = client.post(f'/club/{club_id}/event/new', data={
        'title': 'Backwards', 'starts_at': '2030-05-01T18:00', 'ends_at': '2030-05-01T17:00',
    })
    assert b'End time must be after the start time.' in response.data
    with app.app_context():
        assert Event.query.count() == 0


def test_report_is_required_before_the_next_event(app, client):
    club_id = make_club(app)
    past_event_id = make_event(app, club_id, starts_in=timedelta(days=-2))
    with app.app_context():
        assert [e.id for e in events_needing_report(club_id)] == [past_event_id]

    login_club(client)
    assert b'Reports due' in client.get(f'/club/{club_id}').data
    response = client.post(f'/club/{club_id}/event/new', data={'title': 'Robot Wars II'})
    assert b'Submit the report for your past event(s)' in response.data
    with app.app_context():
        assert Event.query.filter_by(title='Robot Wars II').first() is None

    data = dict(REPORT, photos=(io.BytesIO(b'jpeg'), 'crowd.jpg', 'image/jpeg'))
    response = client.post(f'/club/{club_id}/event/{past_event_id}/report', data=data,
                           content_type='multipart/form-data')
    assert response.status_code == 302

    with app.app_context():
        report = EventReport.query.filter_by(event_id=past_event_id).one()
        assert report.club_name == 'Robotics Club'
        assert report.number_of_attendance == 40
        assert len(report.photos) == 1
        assert report.attendance_sheet == []
        assert events_needing_report(club_id) == []
    assert b'Reports due' not in client.get(f'/club/{club_id}').data

    client.post(f'/club/{club_id}/event/new', data={'title': 'Robot Wars II'})
    with app.app_context():
        assert Event.query.filter_by(title='Robot Wars II').count() == 1


def test_report_only_once_and_only_after_the_event(app, client):
    club_id = make_club(app)
    upcoming_id = make_event(app, club_id, starts_in=timedelta(days=3))
    past_id = make_event(app, club_id, title='Old', starts_in=timedelta(days=-3))
    login_club(client)

    client.post(f'/club/{club_id}/event/{upcoming_id}/report', data=REPORT)
    client.post(f'/club/{club_id}/event/{past_id}/report', data=REPORT)
    response = client.post(f'/club/{club_id}/event/{past_id}/report', data=REPORT, follow_redirects=True)
    assert b'A report was already submitted for this event.' in response.data

    with app.app_context():
        assert EventReport.query.filter_by(event_id=upcoming_id).count() == 0
        assert EventReport.query.filter_by(event_id=past_id).count() == 1


def test_undated_event_never_needs_a_report(app, client):
    club_id = make_club(app)
    make_event(app, club_id, starts_in=None)
    with app.app_context():
        assert events_needing_report(club_id) == []


def test_event_with_report_cannot_be_deleted(app, client):
    club_id = make_club(app)
    event_id = make_event(app, club_id, starts_in=timedelta(days=-2))
    login_club(client)
    client.post(f'/club/{club_id}/event/{event_id}/report', data=REPORT)

    client.post(f'/club/{club_id}/event/{event_id}/delete')
    with app.app_context():
        assert db.session.get(Event, event_id) is not None

    pending_id = make_event(app, club_id, title='Draft', status=PENDING)
    client.post(f'/club/{club_id}/event/{pending_id}/delete')
    with app.app_context():
        assert db.session.get(Event, pending_id) is None


def test_rsvp_upserts_and_confirms_by_email(app, client, outbox):
    club_id = make_club(app)
    student_id = make_student(app)
    event_id = make_event(app, club_id)
    login_student(client)

    client.post(f'/student/{student_id}/events/{event_id}/rsvp', data={'status': 'interested'})
    assert outbox == []
    client.post(f'/student/{student_id}/events/{event_id}/rsvp', data={'status': 'going'})
    client.post(f'/student/{student_id}/events/{event_id}/rsvp', data={'status': 'going'})

    with app.app_context():
        rsvps = RSVP.query.filter_by(student_id=student_id, event_id=event_id).all()
        assert len(rsvps) == 1
        assert rsvps[0].status == 'going'
    assert [m['subject'] for m in outbox] == ['RSVP Confirmed: Robot Wars']


def test_rsvp_respects_capacity(app, client):
    club_id = make_club(app)
    first_id = make_student(app)
    second_id = make_student(app, email='201099999@psu.edu.sa', name='Other')
    event_id = make_event(app, club_id, capacity=1)

    login_student(client)
    client.post(f'/student/{first_id}/events/{event_id}/rsvp', data={'status': 'going'})
    client.get('/logout')

    login_student(client, email='201099999@psu.edu.sa')
    response = client.post(f'/student/{second_id}/events/{event_id}/rsvp', data={'status': 'going'},
                           follow_redirects=True)
    assert b'Sorry, this event is full.' in response.data
    client.post(f'/student/{second_id}/events/{event_id}/rsvp', data={'status': 'interested'})

    with app.app_context():
        assert db.session.get(Event, event_id).going_count() == 1
        assert RSVP.query.filter_by(student_id=second_id).one().status == 'interested'


def test_rsvp_refused_for_unapproved_or_past_events(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    pending_id = make_event(app, club_id, status=PENDING)
    past_id = make_event(app, club_id, title='Old', starts_in=timedelta(days=-1))
    login_student(client)

    response = client.post(f'/student/{student_id}/events/{pending_id}/rsvp', data={'status': 'going'},
                           follow_redirects=True)
    assert b'You can only RSVP to approved events.' in response.data
    response = client.post(f'/student/{student_id}/events/{past_id}/rsvp', data={'status': 'going'},
                           follow_redirects=True)
    assert b'This event has already taken place.' in response.data
    with app.app_context():
        assert RSVP.query.count() == 0


def test_club_sees_rsvps_and_subscribers(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    subscribe(app, student_id, club_id)
    event_id = make_event(app, club_id)
    with app.app_context():
        db.session.add(RSVP(student_id=student_id, event_id=event_id, status='going'))
        db.session.commit()

    login_club(client)
    response = client.get(f'/club/{club_id}/event/{event_id}/rsvps')
    assert b'1 going' in response.data
    assert b'Sara Ahmed' in response.data
    assert b'201012345@psu.edu.sa' in client.get(f'/club/{club_id}/subscribers').data
