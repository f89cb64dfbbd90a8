# clubhub/utils.py

import os
import re
import secrets
import logging
from datetime import datetime
from functools import wraps

from flask import current_app, redirect, url_for
from werkzeug.utils import secure_filename

from clubhub.context import get_context
from clubhub.roles import Role

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8


def login_required(f):
    """
    Decorator to ensure a user is logged in before accessing a route.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not get_context().is_authenticated:
            return redirect(url_for('auth.login'))
        return f(*args, **kwargs)
    return decorated_function


def role_required(roles, owner_arg=None):
    """
    Decorator to ensure a logged-in user has one of the specified roles.
    With `owner_arg`, the route argument of that name must also be the caller's own id.
    """
    allowed = {Role(r) for r in roles}

    def decorator(f):
        @wraps(f)
        @login_required  # Ensure user is logged in first
        def decorated_function(*args, **kwargs):
            ctx = get_context()
            if ctx.role not in allowed:
                return "Forbidden", 403
            if owner_arg is not None and int(kwargs[owner_arg]) != ctx.user_id:
                return "Forbidden", 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def password_policy_error(password, confirm_password):
    """Returns the first password policy violation as a message, or None."""
    password = password or ''
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters!"
    if not re.search(r'[A-Za-z]', password) or not re.search(r'\d', password):
        return "Password must contain both letters and numbers!"
    if password != confirm_password:
        return "Passwords do not match!"
    return None


def is_valid_student_email(email):
    return re.match(current_app.config['STUDENT_EMAIL_PATTERN'], email or '') is not None


def normalize_email(email):
    return (email or '').strip().lower()


def generate_token():
    return secrets.token_hex(20)


def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in current_app.config['ALLOWED_UPLOAD_EXTENSIONS']


def save_upload(file_storage):
    """
    Stores an uploaded file in UPLOAD_FOLDER under a timestamped name and
    returns its web path, or None when nothing usable was uploaded.
    """
    if file_storage is None or not file_storage.filename:
        return None
    filename = secure_filename(file_storage.filename)
    if not filename or not allowed_file(filename):
        logger.warning(f"Rejected upload with disallowed name: {file_storage.filename}")
        return None

    upload_dir = current_app.config['UPLOAD_FOLDER']
    os.makedirs(upload_dir, exist_ok=True)
    stored_name = f"{int(datetime.utcnow().timestamp() * 1000)}-{secrets.token_hex(4)}-{filename}"
    file_storage.save(os.path.join(upload_dir, stored_name))
    logger.info(f"Stored upload {stored_name}")
    return f"/uploads/{stored_name}"


def save_uploads(file_storages, limit=5):
    paths = []
    for file_storage in (file_storages or [])[:limit]:
        path = save_upload(file_storage)
        if path:
            paths.append(path)
    return paths


def media_kind(file_storage):
    """'image' or 'video' from the upload's mimetype, None otherwise."""
    mimetype = (file_storage.mimetype or '') if file_storage else ''
    if mimetype.startswith('image/'):
        return 'image'
    if mimetype.startswith('video/'):
        return 'video'
    return None


def format_datetime(value, fmt='%b %d, %Y %I:%M %p'):
    if value is None:
        return 'TBA'
    return value.strftime(fmt)
