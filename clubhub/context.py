# clubhub/context.py
"""
Per-request view of who is calling, built once in a before_request hook and
kept on flask.g as `g.ctx`. Route decorators and the page layout read identity
from here instead of poking at the session.
"""

from dataclasses import dataclass

from flask import g
from flask_login import current_user

from clubhub.roles import Role


@dataclass
class RequestContext:
    user_id: int = None
    role: Role = None
    username: str = None

    @classmethod
    def from_current_user(cls):
        if not current_user.is_authenticated:
            return cls()
        return cls(user_id=current_user.id, role=Role(current_user.role), username=current_user.display_name)

    @property
    def is_authenticated(self):
        return self.user_id is not None

    @property
    def is_staff(self):
        return self.role is not None and self.role.is_staff


def get_context():
    ctx = getattr(g, 'ctx', None)
    if ctx is None:
        ctx = g.ctx = RequestContext.from_current_user()
    return ctx
