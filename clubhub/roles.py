# clubhub/roles.py

import enum
from dataclasses import dataclass

from flask import url_for

from clubhub.profiles import StudentProfile, ClubProfile, AdminProfile


class Role(str, enum.Enum):
    STUDENT = 'student'
    CLUB = 'club'
    ADMIN = 'admin'
    DEAN = 'dean'

    @property
    def is_staff(self):
        return self in (Role.ADMIN, Role.DEAN)


@dataclass(frozen=True)
class RoleStrategy:
    home_endpoint: str
    # Endpoint argument carrying the user id, None when the page is not user-scoped
    id_argument: str
    # Dataclass that User.profile_data is read into
    profile_type: type
    # Broadcast audience the role listens to, None for roles that only send broadcasts
    broadcast_audience: str = None
    reads_all_broadcasts: bool = False

    def home_url(self, user_id):
        if self.id_argument is None:
            return url_for(self.home_endpoint)
        return url_for(self.home_endpoint, **{self.id_argument: user_id})

    def can_read_broadcast(self, audience):
        return self.reads_all_broadcasts or audience == self.broadcast_audience


STRATEGIES = {
    Role.STUDENT: RoleStrategy('students.home', 'student_id', StudentProfile, broadcast_audience='students'),
    Role.CLUB: RoleStrategy('clubs.profile', 'club_id', ClubProfile, broadcast_audience='clubs'),
    Role.ADMIN: RoleStrategy('admin.dashboard', 'admin_id', AdminProfile, reads_all_broadcasts=True),
    Role.DEAN: RoleStrategy('dean.dashboard', None, AdminProfile, reads_all_broadcasts=True),
}


def strategy_for(role):
    return STRATEGIES[Role(role)]


def home_url_for(user):
    return strategy_for(user.role).home_url(user.id)
