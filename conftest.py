import re
import logging
from datetime import datetime, timedelta

import pytest

from config import Config
from clubhub import create_app
from clubhub.models import User, Event, Subscription, APPROVED
from clubhub.profiles import StudentProfile, ClubProfile
from database import db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

STUDENT_PASSWORD = 'abcdef12'
CLUB_PASSWORD = 'clubpass1'


@pytest.fixture
def app(tmp_path):
    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'clubhub-test.db'}"
        WTF_CSRF_ENABLED = False
        MAIL_BACKEND = 'log'
        MAIL_ASYNC = False
        SESSION_COOKIE_SECURE = False
        UPLOAD_FOLDER = str(tmp_path / 'uploads')
        APP_URL = 'http://testserver'

    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def outbox(app):
    return app.extensions['mailer'].outbox


def token_from(mail, path):
    match = re.search(rf"{re.escape(path)}\?token=([0-9a-f]+)", mail['html'])
    assert match, f"no {path} link in {mail['subject']!r}"
    return match.group(1)


def make_student(app, email='201012345@psu.edu.sa', name='Sara Ahmed', verified=True):
    with app.app_context():
        user = User(username=name, email=email, role='student', is_verified=verified)
        user.set_password(STUDENT_PASSWORD)
        user.profile = StudentProfile(full_name=name, email=email)
        db.session.add(user)
        db.session.commit()
        return user.id


def make_club(app, name='Robotics Club', email='robotics@psu.edu.sa', kind='Non Academic'):
    with app.app_context():
        user = User(username=name, email=email, role='club', is_verified=True)
        user.set_password(CLUB_PASSWORD)
        user.profile = ClubProfile(club_name=name, club_description=f'{name} at PSU', club_kind=kind, email=email)
        db.session.add(user)
        db.session.commit()
        return user.id


def make_event(app, club_id, title='Robot Wars', status=APPROVED, starts_in=timedelta(days=7), capacity=None):
    with app.app_context():
        starts_at = datetime.utcnow() + starts_in if starts_in is not None else None
        event = Event(club_id=club_id, title=title, description='Bring your robot', location='Hall A',
                      starts_at=starts_at, capacity=capacity, status=status,
                      approved_by_admin=status == APPROVED, approved_by_dean=status == APPROVED)
        db.session.add(event)
        db.session.commit()
        return event.id


def subscribe(app, student_id, club_id):
    with app.app_context():
        db.session.add(Subscription(student_id=student_id, club_id=club_id))
        db.session.commit()


def staff_id(app, role):
    with app.app_context():
        return User.query.filter_by(role=role).first().id


def login(client, email, password):
    return client.post('/login', data={'email': email, 'password': password})


def login_admin(client, app):
    return login(client, app.config['ADMIN_EMAIL'], app.config['ADMIN_PASSWORD'])


def login_dean(client, app):
    return login(client, app.config['DEAN_EMAIL'], app.config['DEAN_PASSWORD'])
