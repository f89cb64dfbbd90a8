# clubhub/profiles.py
"""
Role-specific profile records stored in User.profile_data.

The JSON column keeps a plain dict; these dataclasses are the typed view of it,
selected through the owner's role strategy so callers never have to guess
which keys exist.
"""

from dataclasses import dataclass, asdict, fields


@dataclass
class StudentProfile:
    full_name: str = ''
    bio: str = ''
    email: str = ''
    phone: str = ''
    linkedin: str = ''
    profile_pic: str = ''
    cv: str = ''


@dataclass
class ClubProfile:
    club_name: str = ''
    club_description: str = ''
    representative_name: str = ''
    club_kind: str = 'Non Academic'
    email: str = ''
    phone: str = ''
    linkedin: str = ''
    instagram: str = ''
    tiktok: str = ''
    x: str = ''
    logo: str = ''

    @property
    def is_academic(self):
        return self.club_kind == 'Academic'


@dataclass
class AdminProfile:
    full_name: str = ''
    title: str = ''


def profile_from_dict(profile_cls, data):
    """Builds a `profile_cls` from stored data, ignoring keys it does not define."""
    known = {f.name for f in fields(profile_cls)}
    values = {k: v for k, v in (data or {}).items() if k in known and v is not None}
    return profile_cls(**values)


def profile_to_dict(profile):
    return asdict(profile)
