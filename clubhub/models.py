from datetime import datetime

from database import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from sqlalchemy.orm import relationship, validates

from clubhub.profiles import profile_from_dict, profile_to_dict
from clubhub.roles import strategy_for

# ClubRequest.status
REQUEST_PENDING = 'pending'
REQUEST_ADMIN_APPROVED = 'admin_approved'
REQUEST_APPROVED = 'approved'
REQUEST_REJECTED = 'rejected'
OPEN_REQUEST_STATUSES = (REQUEST_PENDING, REQUEST_ADMIN_APPROVED)

# Post.status and Event.status
PENDING = 'pending'
APPROVED = 'approved'
REJECTED = 'rejected'

# Application.status
APPLICATION_PENDING = 'pending'
APPLICATION_ACCEPTED = 'accepted'
APPLICATION_REJECTED = 'rejected'

# RSVP.status
RSVP_GOING = 'going'
RSVP_INTERESTED = 'interested'
RSVP_NOT_GOING = 'not_going'
RSVP_STATUSES = (RSVP_GOING, RSVP_INTERESTED, RSVP_NOT_GOING)

CLUB_KIND_ACADEMIC = 'Academic'
CLUB_KIND_NON_ACADEMIC = 'Non Academic'


class User(db.Model, UserMixin):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(150), index=True, unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False)  # 'student', 'club', 'admin', 'dean'
    profile_data = db.Column(db.JSON, default=dict)
    is_verified = db.Column(db.Boolean, default=False, nullable=False)
    verification_token = db.Column(db.String(64), index=True)
    reset_token = db.Column(db.String(64), index=True)
    reset_token_expires = db.Column(db.DateTime)
    is_approved = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    posts = db.relationship('Post', backref='club', lazy=True, order_by='Post.created_at.desc()')
    events = db.relationship('Event', backref='club', lazy=True)

    @validates('role')
    def validate_role(self, key, role):
        if self.role is not None and self.role != role:
            raise ValueError("A user's role cannot change after creation")
        return role

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def profile(self):
        return profile_from_dict(strategy_for(self.role).profile_type, self.profile_data)

    @profile.setter
    def profile(self, profile):
        # Reassign so the JSON column is flagged dirty
        self.profile_data = profile_to_dict(profile)

    @property
    def is_active(self):
        return self.is_approved

    @property
    def display_name(self):
        return self.username or self.email

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'


class ClubRequest(db.Model):
    __tablename__ = 'club_request'
    id = db.Column(db.Integer, primary_key=True)
    club_name = db.Column(db.String(150), nullable=False)
    club_email = db.Column(db.String(150), index=True, nullable=False)
    club_description = db.Column(db.Text)
    representative_name = db.Column(db.String(150))
    password_hash = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), default=REQUEST_PENDING, nullable=False)
    admin_notes = db.Column(db.Text)

    club_kind = db.Column(db.String(20))  # 'Academic', 'Non Academic'
    club_status = db.Column(db.String(20))  # 'Existing', 'New'
    club_vision = db.Column(db.Text)
    club_activities = db.Column(db.Text)

    president_name = db.Column(db.String(150))
    president_student_id = db.Column(db.String(50))
    president_phone = db.Column(db.String(50))
    president_college = db.Column(db.String(100))

    vp_name = db.Column(db.String(150))
    vp_student_id = db.Column(db.String(50))
    vp_phone = db.Column(db.String(50))

    member1 = db.Column(db.String(150))
    member2 = db.Column(db.String(150))
    member3 = db.Column(db.String(150))
    member4 = db.Column(db.String(150))
    member5 = db.Column(db.String(150))

    advisor_name = db.Column(db.String(150))
    advisor_email = db.Column(db.String(150))
    advisor_signature = db.Column(db.Text)

    club_socials = db.Column(db.Text)
    club_members_count = db.Column(db.Integer)
    club_fair = db.Column(db.String(3))  # 'Yes', 'No'
    club_logo = db.Column(db.String(255))

    dean_name = db.Column(db.String(150))
    dean_signature = db.Column(db.Text)
    dean_approval_date = db.Column(db.DateTime)
    dean_approved = db.Column(db.Boolean, default=False, nullable=False)
    dean_notes = db.Column(db.Text)

    dsa_name = db.Column(db.String(150))
    dsa_signature = db.Column(db.Text)
    dsa_approval_date = db.Column(db.DateTime)

    approved_by_admin = db.Column(db.Boolean, default=False, nullable=False)
    admin_approval_date = db.Column(db.DateTime)

    is_verified = db.Column(db.Boolean, default=False, nullable=False)
    verification_token = db.Column(db.String(64), index=True)

    # Set once the request has been materialized into a club account
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True)
    user = relationship('User')

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_academic(self):
        return self.club_kind == CLUB_KIND_ACADEMIC

    @property
    def members(self):
        return [m for m in (self.member1, self.member2, self.member3, self.member4, self.member5) if m]

    def __repr__(self):
        return f'<ClubRequest {self.club_name} [{self.status}]>'


class Post(db.Model):
    __tablename__ = 'post'
    id = db.Column(db.Integer, primary_key=True)
    club_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    text = db.Column(db.Text)
    image = db.Column(db.String(255))
    video = db.Column(db.String(255))
    status = db.Column(db.String(20), default=PENDING, nullable=False)
    admin_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Post {self.id} by {self.club_id} [{self.status}]>'


class Event(db.Model):
    __tablename__ = 'event'
    id = db.Column(db.Integer, primary_key=True)
    club_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(100))
    location = db.Column(db.String(200))
    starts_at = db.Column(db.DateTime)
    ends_at = db.Column(db.DateTime)
    capacity = db.Column(db.Integer)  # None means unlimited
    expected_attendance = db.Column(db.Integer)
    budget = db.Column(db.Float)
    organizer_name = db.Column(db.String(150))
    organizer_phone = db.Column(db.String(50))
    requirements = db.Column(db.Text)
    attachments = db.Column(db.JSON, default=list)

    approved_by_admin = db.Column(db.Boolean, default=False, nullable=False)
    approved_by_dean = db.Column(db.Boolean, default=False, nullable=False)
    status = db.Column(db.String(20), default=PENDING, nullable=False)
    admin_notes = db.Column(db.Text)
    dean_notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    report = relationship('EventReport', uselist=False, back_populates='event')
    rsvps = db.relationship('RSVP', backref='event', lazy=True, cascade='all, delete-orphan')

    def has_elapsed(self, now=None):
        finished_at = self.ends_at or self.starts_at
        if finished_at is None:
            return False
        return finished_at < (now or datetime.utcnow())

    @property
    def needs_report(self):
        return self.status == APPROVED and self.has_elapsed() and self.report is None

    def going_count(self):
        return RSVP.query.filter_by(event_id=self.id, status=RSVP_GOING).count()

    def __repr__(self):
        return f'<Event {self.title} [{self.status}]>'


class EventReport(db.Model):
    __tablename__ = 'event_report'
    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey('event.id'), unique=True, nullable=False)
    club_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)

    club_name = db.Column(db.String(150), nullable=False)
    faculty_adviser_name = db.Column(db.String(150), nullable=False)
    activity_title = db.Column(db.String(200), nullable=False)
    activity_date = db.Column(db.Date, nullable=False)
    activity_location = db.Column(db.String(200), nullable=False)

    purpose_of_activity = db.Column(db.Text, nullable=False)
    activity_description = db.Column(db.Text, nullable=False)
    managing_students = db.Column(db.Text, nullable=False)
    participating_students = db.Column(db.Text, nullable=False)
    number_of_attendance = db.Column(db.Integer, nullable=False)
    evaluation_results = db.Column(db.Text, nullable=False)
    recommendations = db.Column(db.Text, nullable=False)

    photos = db.Column(db.JSON, default=list)
    attendance_sheet = db.Column(db.JSON, default=list)
    receipts_and_liquidation = db.Column(db.JSON, default=list)
    activity_proposal = db.Column(db.JSON, default=list)
    supporting_documents = db.Column(db.JSON, default=list)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    event = relationship('Event', back_populates='report')

    def __repr__(self):
        return f'<EventReport event={self.event_id}>'


class Application(db.Model):
    __tablename__ = 'application'
    __table_args__ = (db.UniqueConstraint('student_id', 'club_id', name='uq_application_student_club'),)
    id = db.Column(db.Integer, primary_key=True)
    club_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)

    email = db.Column(db.String(150), nullable=False)
    student_name = db.Column(db.String(150), nullable=False)
    gender = db.Column(db.String(10), nullable=False)  # 'Male', 'Female', 'Other'
    major = db.Column(db.String(150), nullable=False)
    academic_year = db.Column(db.String(20), nullable=False)
    skills = db.Column(db.Text, nullable=False)
    motivation = db.Column(db.Text, nullable=False)
    message = db.Column(db.Text)

    status = db.Column(db.String(20), default=APPLICATION_PENDING, nullable=False)
    club_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship('User', foreign_keys=[student_id])
    club = relationship('User', foreign_keys=[club_id])

    def __repr__(self):
        return f'<Application {self.student_id} -> {self.club_id} [{self.status}]>'


class Subscription(db.Model):
    __tablename__ = 'subscription'
    __table_args__ = (db.UniqueConstraint('student_id', 'club_id', name='uq_subscription_student_club'),)
    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    club_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    student = relationship('User', foreign_keys=[student_id])
    club = relationship('User', foreign_keys=[club_id])

    def __repr__(self):
        return f'<Subscription {self.student_id} -> {self.club_id}>'


class RSVP(db.Model):
    __tablename__ = 'rsvp'
    __table_args__ = (db.UniqueConstraint('student_id', 'event_id', name='uq_rsvp_student_event'),)
    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    event_id = db.Column(db.Integer, db.ForeignKey('event.id'), nullable=False, index=True)
    status = db.Column(db.String(20), default=RSVP_GOING, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship('User')

    def __repr__(self):
        return f'<RSVP {self.student_id} -> {self.event_id} [{self.status}]>'


class Message(db.Model):
    __tablename__ = 'message'
    __table_args__ = (
        db.Index('ix_message_club_timestamp', 'club_id', 'timestamp'),
        db.Index('ix_message_type_timestamp', 'message_type', 'timestamp'),
    )
    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    receiver_id = db.Column(db.Integer, db.ForeignKey('user.id'), index=True)  # direct messages only
    club_id = db.Column(db.Integer, db.ForeignKey('user.id'), index=True)  # club room messages only
    admin_target = db.Column(db.String(10), index=True)  # 'students', 'clubs' for broadcasts
    message_type = db.Column(db.String(10), default='direct', nullable=False)  # 'direct', 'group', 'broadcast'
    body = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    sender = relationship('User', foreign_keys=[sender_id])

    def to_dict(self):
        return {
            'id': self.id,
            'senderId': self.sender_id,
            'senderName': self.sender.display_name if self.sender else None,
            'senderRole': self.sender.role if self.sender else None,
            'receiverId': self.receiver_id,
            'clubId': self.club_id,
            'adminTarget': self.admin_target,
            'messageType': self.message_type,
            'message': self.body,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f'<Message {self.id} {self.message_type} from {self.sender_id}>'


class AuditLog(db.Model):
    __tablename__ = 'audit_log'
    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    action = db.Column(db.String(100), nullable=False)
    target_type = db.Column(db.String(50), nullable=False)
    target_id = db.Column(db.Integer, nullable=False)
    details = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    actor = relationship('User')

    def __repr__(self):
        return f'<AuditLog {self.action} {self.target_type}:{self.target_id}>'
