# clubhub/mailer.py
"""
Transactional email: verification, password reset, RSVP confirmation and
new-content notifications.

Sending is best effort. Every failure is logged and swallowed so the request
that triggered the mail never sees it, and nothing is retried.
"""

import logging
import threading

import requests
from flask import current_app
from markupsafe import escape

logger = logging.getLogger(__name__)


class LogBackend:
    """Writes messages to the log and keeps them in `outbox`. Used in development and tests."""

    def __init__(self, app):
        self.outbox = []

    def send(self, sender, to, subject, html):
        self.outbox.append({'from': sender, 'to': to, 'subject': subject, 'html': html})
        logger.info(f"[mail:log] to={to} subject={subject!r}")


class ResendBackend:
    """Posts messages to the Resend HTTP API."""

    def __init__(self, app):
        self.api_key = app.config.get('RESEND_API_KEY')
        self.api_url = app.config['RESEND_API_URL']
        if not self.api_key:
            logger.warning("RESEND_API_KEY is not set, outgoing mail will be rejected by the provider")

    def send(self, sender, to, subject, html):
        response = requests.post(
            self.api_url,
            json={'from': sender, 'to': [to], 'subject': subject, 'html': html},
            headers={'Authorization': f'Bearer {self.api_key}'},
            timeout=10,
        )
        response.raise_for_status()
        logger.info(f"[mail:resend] to={to} subject={subject!r} status={response.status_code}")


BACKENDS = {
    'log': LogBackend,
    'resend': ResendBackend,
}


class Mailer:

    def __init__(self, app=None):
        self.backend = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        backend_name = app.config.get('MAIL_BACKEND', 'log')
        if backend_name not in BACKENDS:
            raise ValueError(f"Unknown MAIL_BACKEND: {backend_name}")
        self.backend = BACKENDS[backend_name](app)
        self.sender = app.config['MAIL_FROM']
        self.run_async = app.config.get('MAIL_ASYNC', True)
        app.extensions['mailer'] = self
        logger.info(f"Mailer initialized with '{backend_name}' backend")

    @property
    def outbox(self):
        return getattr(self.backend, 'outbox', [])

    def _deliver(self, to, subject, html):
        try:
            self.backend.send(self.sender, to, subject, html)
        except Exception as e:
            logger.error(f"Failed to send email to {to}: {str(e)}")
            logger.error(f"Error type: {type(e).__name__}")

    def send(self, to, subject, html):
        if not to:
            return
        if self.run_async:
            threading.Thread(target=self._deliver, args=(to, subject, html), daemon=True).start()
        else:
            self._deliver(to, subject, html)


mailer = Mailer()


def _app_url(path):
    return f"{current_app.config['APP_URL'].rstrip('/')}{path}"


def send_verification_email(to, token):
    url = _app_url(f"/verify-email?token={token}")
    mailer.send(
        to,
        'Verify your email for ClubHub',
        f'Please click this link to verify your email: <a href="{url}">{url}</a>',
    )


def send_password_reset_email(to, token):
    url = _app_url(f"/reset-password?token={token}")
    mailer.send(
        to,
        'Reset your password - ClubHub',
        f'You requested a password reset. Click to reset: <a href="{url}">{url}</a>. '
        "If you didn't request this, ignore this email.",
    )


def send_rsvp_email(to, event):
    when = event.starts_at.strftime('%b %d, %Y %I:%M %p') if event.starts_at else 'TBA'
    mailer.send(
        to,
        f'RSVP Confirmed: {event.title}',
        f'You RSVPed for <strong>{escape(event.title)}</strong> at {escape(event.location or "TBA")} on {when}.',
    )


def send_notification_email(to, club_name, item_type, item_title=None, item_description=None):
    html = f"<p>Hello,</p><p>{escape(club_name)} has posted a new {item_type}:</p>"
    if item_title:
        html += f"<p><strong>Title:</strong> {escape(item_title)}</p>"
    if item_description:
        html += f"<p><strong>Description:</strong> {escape(item_description)}</p>"
    html += "<p>Check it out on the platform!</p>"
    mailer.send(to, f'New {item_type} from {club_name}', html)
