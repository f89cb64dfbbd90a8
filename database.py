# database.py

import logging
from contextlib import contextmanager

from flask_sqlalchemy import SQLAlchemy

logger = logging.getLogger(__name__)

# Initialize SQLAlchemy without an app yet. We will init_app later.
db = SQLAlchemy()


def init_db(app):
    """
    Creates the tables for every registered model and seeds the staff
    accounts (admin and dean) configured for this deployment.
    Should be called once at application startup.
    """
    with app.app_context():
        logger.info(f"Ensuring tables at {app.config['SQLALCHEMY_DATABASE_URI']}...")
        db.create_all()
        logger.info("Tables ensured.")

        seed_staff_account(app.config['ADMIN_EMAIL'], app.config['ADMIN_PASSWORD'], 'admin', 'Super Admin')
        seed_staff_account(app.config['DEAN_EMAIL'], app.config['DEAN_PASSWORD'], 'dean', 'Dean of Student Affairs')


def seed_staff_account(email, password, role, display_name, reset_password=False):
    """
    Creates a verified staff account if no user owns `email` yet.
    With `reset_password` an existing account gets the new password instead.
    Returns the user.
    """
    from clubhub.models import User
    from clubhub.profiles import AdminProfile

    if not email or not password:
        logger.warning(f"No credentials configured for the {role} account, skipping seed.")
        return None

    email = email.strip().lower()
    with get_db_session() as s:
        user = s.query(User).filter_by(email=email).first()
        if user:
            if user.role != role:
                raise ValueError(f"{email} already belongs to a {user.role} account")
            if reset_password:
                user.set_password(password)
                s.commit()
                logger.info(f"Password reset for {role} account {email}")
            return user

        user = User(
            username=display_name,
            email=email,
            role=role,
            is_verified=True,
            is_approved=True,
        )
        user.set_password(password)
        user.profile = AdminProfile(full_name=display_name, title=display_name)
        s.add(user)
        s.commit()
        logger.info(f"Default {role} account created: {email}")
        return user


@contextmanager
def get_db_session():
    """
    Provides the request-scoped SQLAlchemy session.
    Any exception escaping the block rolls the session back before it is re-raised.
    """
    session = db.session
    try:
        yield session
    except Exception as e:
        logger.error(f"Database session error: {str(e)}")
        logger.error(f"Error type: {type(e).__name__}")
        session.rollback()
        raise


@contextmanager
def atomic():
    """
    Runs the block as a single unit of work: commit on success, rollback on any error.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except Exception as e:
        logger.error(f"Transaction rolled back: {str(e)}")
        session.rollback()
        raise
