# clubhub/auth/routes.py

import time
import logging
from datetime import datetime
from flask import Blueprint, request, render_template, redirect, url_for, session, flash, current_app
from flask_login import login_user, logout_user, current_user
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from database import db, get_db_session
from clubhub.models import User, ClubRequest, OPEN_REQUEST_STATUSES
from clubhub.profiles import StudentProfile, ClubProfile, AdminProfile
from clubhub.roles import Role, home_url_for, strategy_for
from clubhub.utils import (
    login_required, password_policy_error, is_valid_student_email, normalize_email, generate_token, save_upload,
)
from clubhub.workflow import email_in_use, club_name_in_use
from clubhub.mailer import send_verification_email, send_password_reset_email
from .forms import (
    StudentSignupForm, ClubSignupForm, LoginForm, EmailForm, ResetPasswordForm,
    StudentProfileForm, ClubProfileForm, StaffProfileForm, first_error,
)

logger = logging.getLogger(__name__)

# Define the Blueprint
auth_bp = Blueprint('auth', __name__)

CLUB_REQUEST_FIELDS = (
    'club_description', 'representative_name', 'club_kind', 'club_status', 'club_vision', 'club_activities',
    'president_name', 'president_student_id', 'president_phone', 'president_college',
    'vp_name', 'vp_student_id', 'vp_phone',
    'member1', 'member2', 'member3', 'member4', 'member5',
    'advisor_name', 'advisor_email', 'advisor_signature',
    'club_socials', 'club_members_count', 'club_fair', 'dsa_name', 'dsa_signature',
)

PROFILE_FORMS = {
    StudentProfile: StudentProfileForm,
    ClubProfile: ClubProfileForm,
    AdminProfile: StaffProfileForm,
}


def _render_signup(error=None, message=None, status=200):
    return render_template('signup.html', error=error, message=message,
                           student_form=StudentSignupForm(formdata=None),
                           club_form=ClubSignupForm(formdata=None)), status


@auth_bp.route('/')
def index():
    if current_user.is_authenticated:
        return redirect(home_url_for(current_user))
    return redirect(url_for('auth.login'))


@auth_bp.route('/signup', methods=['GET', 'POST'])
def signup():
    if request.method == 'GET':
        return _render_signup()

    role = request.form.get('role')
    try:
        if role == Role.STUDENT.value:
            return _signup_student()
        elif role == Role.CLUB.value:
            return _signup_club()
        return _render_signup(error="Please select a role")
    except IntegrityError:
        db.session.rollback()
        return _render_signup(error="Email already exists!")
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error in signup route: {str(e)}")
        logger.error(f"Error type: {type(e).__name__}")
        return _render_signup(error="Something went wrong!")


def _signup_student():
    form = StudentSignupForm()
    if not form.validate_on_submit():
        return _render_signup(error=first_error(form))

    email = normalize_email(form.student_email.data)
    full_name = form.full_name.data.strip()

    if not is_valid_student_email(email):
        return _render_signup(error="Invalid PSU email format!")
    policy_error = password_policy_error(form.password.data, form.confirm_password.data)
    if policy_error:
        return _render_signup(error=policy_error)
    if email_in_use(email):
        return _render_signup(error="Email already exists!")

    with get_db_session() as s:
        user = User(
            username=full_name,
            email=email,
            role=Role.STUDENT.value,
            is_verified=False,
            verification_token=generate_token(),
        )
        user.set_password(form.password.data)
        user.profile = StudentProfile(full_name=full_name, email=email)
        s.add(user)
        s.commit()
        logger.info(f"Student account {user.id} created for {email}, awaiting verification")

    send_verification_email(user.email, user.verification_token)
    return _render_signup(message="Account created! Check your email to verify your account before logging in.")


def _signup_club():
    form = ClubSignupForm()
    if not form.validate_on_submit():
        return _render_signup(error=first_error(form))

    email = normalize_email(form.club_email.data)
    club_name = form.club_name.data.strip()

    policy_error = password_policy_error(form.password.data, form.confirm_password.data)
    if policy_error:
        return _render_signup(error=policy_error)
    if email_in_use(email):
        return _render_signup(error="Email already exists!")
    if club_name_in_use(club_name):
        return _render_signup(error="A club with this name already exists or is awaiting approval!")

    with get_db_session() as s:
        creq = ClubRequest(
            club_name=club_name,
            club_email=email,
            status='pending',
            verification_token=generate_token(),
            club_logo=save_upload(form.club_logo.data),
        )
        for field in CLUB_REQUEST_FIELDS:
            value = getattr(form, field).data
            setattr(creq, field, value.strip() if isinstance(value, str) else value)
        creq.password_hash = generate_password_hash(form.password.data)
        s.add(creq)
        s.commit()
        logger.info(f"Club request {creq.id} submitted for {club_name}")

    send_verification_email(creq.club_email, creq.verification_token)
    return _render_signup(
        message="Your club request has been submitted. Please verify your email and wait for admin approval.")


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    form = LoginForm()
    if request.method == 'GET':
        if current_user.is_authenticated:
            return redirect(home_url_for(current_user))
        return render_template('login.html', form=form, error=None)

    if not form.validate_on_submit():
        return render_template('login.html', form=form, error="All fields are required.")

    email = normalize_email(form.email.data)
    try:
        user = User.query.filter_by(email=email).first()
        if not user:
            return render_template('login.html', form=form, error="No account found with this email.")
        if not user.is_verified:
            return render_template('login.html', form=form, error="Please verify your email before logging in.",
                                   can_resend=True)
        if not user.check_password(form.password.data):
            return render_template('login.html', form=form, error="Invalid credentials!")
        if not user.is_approved:
            return render_template('login.html', form=form, error="Account is inactive. Please contact support.")

        login_user(user)
        session.permanent = True
        session['last_seen'] = time.time()
        logger.info(f"User {user.id} ({user.role}) logged in")
        return redirect(home_url_for(user))
    except Exception as e:
        logger.error(f"Error in login route: {str(e)}")
        return render_template('login.html', form=form, error="Something went wrong!")


@auth_bp.route('/logout')
def logout():
    logout_user()
    session.clear()
    return redirect(url_for('auth.login'))


@auth_bp.route('/verify-email')
def verify_email():
    token = request.args.get('token')
    if not token:
        return render_template('verify_result.html', success=False, message="Invalid or expired verification link.")

    with get_db_session() as s:
        user = s.query(User).filter_by(verification_token=token).first()
        if user:
            user.is_verified = True
            user.verification_token = None
            s.commit()
            logger.info(f"User {user.id} verified their email")
            return render_template('verify_result.html', success=True,
                                   message="Your email has been verified. You can now log in.")

        creq = s.query(ClubRequest).filter_by(verification_token=token).first()
        if creq and creq.status in OPEN_REQUEST_STATUSES:
            creq.is_verified = True
            creq.verification_token = None
            s.commit()
            logger.info(f"Club request {creq.id} verified its email")
            return render_template('verify_result.html', success=True,
                                   message="Your email has been verified. Your club request is now awaiting review.")

    return render_template('verify_result.html', success=False, message="Invalid or expired verification link.")


@auth_bp.route('/resend-verification', methods=['GET', 'POST'])
def resend_verification():
    form = EmailForm()
    if form.validate_on_submit():
        email = normalize_email(form.email.data)
        with get_db_session() as s:
            user = s.query(User).filter_by(email=email, is_verified=False).first()
            if user:
                user.verification_token = generate_token()
                s.commit()
                send_verification_email(user.email, user.verification_token)
        flash("If an unverified account exists for that email, a new verification link has been sent.", "info")
        return redirect(url_for('auth.login'))
    return render_template('email_form.html', form=form, title="Resend verification email",
                           action=url_for('auth.resend_verification'))


@auth_bp.route('/forgot-password', methods=['GET', 'POST'])
def forgot_password():
    form = EmailForm()
    if form.validate_on_submit():
        email = normalize_email(form.email.data)
        with get_db_session() as s:
            user = s.query(User).filter_by(email=email).first()
            if user:
                user.reset_token = generate_token()
                user.reset_token_expires = datetime.utcnow() + current_app.config['RESET_TOKEN_LIFETIME']
                s.commit()
                send_password_reset_email(user.email, user.reset_token)
                logger.info(f"Password reset requested for user {user.id}")
        flash("If an account exists for that email, a reset link has been sent.", "info")
        return redirect(url_for('auth.login'))
    return render_template('email_form.html', form=form, title="Forgot your password?",
                           action=url_for('auth.forgot_password'))


@auth_bp.route('/reset-password', methods=['GET', 'POST'])
def reset_password():
    token = request.args.get('token', '')
    user = User.query.filter_by(reset_token=token).first() if token else None
    if not user or not user.reset_token_expires or user.reset_token_expires < datetime.utcnow():
        return render_template('verify_result.html', success=False, message="Invalid or expired reset link.")

    form = ResetPasswordForm()
    if request.method == 'POST':
        error = first_error(form) if not form.validate_on_submit() else \
            password_policy_error(form.password.data, form.confirm_password.data)
        if error:
            return render_template('reset_password.html', form=form, token=token, error=error)

        with get_db_session() as s:
            user.set_password(form.password.data)
            user.reset_token = None
            user.reset_token_expires = None
            s.commit()
        logger.info(f"Password reset completed for user {user.id}")
        flash("Your password has been reset. Please log in.", "success")
        return redirect(url_for('auth.login'))

    return render_template('reset_password.html', form=form, token=token, error=None)


@auth_bp.route('/updateProfile', methods=['GET', 'POST'])
@login_required
def update_profile():
    user = current_user
    strategy = strategy_for(user.role)
    form_cls = PROFILE_FORMS[strategy.profile_type]
    profile = user.profile

    if request.method == 'GET':
        form = form_cls(data=vars(profile))
        return render_template('edit_profile.html', form=form, user=user, error=None)

    form = form_cls()
    if not form.validate_on_submit():
        return render_template('edit_profile.html', form=form, user=user, error=first_error(form))

    try:
        with get_db_session() as s:
            if strategy.profile_type is StudentProfile:
                profile = StudentProfile(
                    full_name=form.full_name.data.strip(),
                    bio=form.bio.data or '',
                    email=user.email,
                    phone=form.phone.data or '',
                    linkedin=form.linkedin.data or '',
                    profile_pic=save_upload(form.profile_pic.data) or profile.profile_pic,
                    cv=save_upload(form.cv.data) or profile.cv,
                )
                user.username = profile.full_name
            elif strategy.profile_type is ClubProfile:
                club_name = form.club_name.data.strip()
                if club_name.lower() != (user.username or '').lower() and club_name_in_use(club_name):
                    return render_template('edit_profile.html', form=form, user=user,
                                           error="A club with this name already exists!")
                profile = ClubProfile(
                    club_name=club_name,
                    club_description=form.club_description.data or '',
                    representative_name=form.representative_name.data or '',
                    club_kind=profile.club_kind,
                    email=form.email.data or '',
                    phone=form.phone.data or '',
                    linkedin=form.linkedin.data or '',
                    instagram=form.instagram.data or '',
                    tiktok=form.tiktok.data or '',
                    x=form.x.data or '',
                    logo=profile.logo,
                )
                user.username = club_name
            else:
                profile = AdminProfile(full_name=form.full_name.data.strip(), title=form.title.data or '')
                user.username = profile.full_name

            user.profile = profile
            s.commit()
            logger.info(f"Profile updated for user {user.id}")
    except Exception as e:
        logger.error(f"Failed to update profile for user {user.id}: {str(e)}")
        return render_template('edit_profile.html', form=form, user=user, error="Something went wrong!")

    flash("Your profile has been updated.", "success")
    if strategy.profile_type is StudentProfile:
        return redirect(url_for('students.profile', student_id=user.id))
    return redirect(home_url_for(user))
