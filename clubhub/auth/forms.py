from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileAllowed
from wtforms import StringField, PasswordField, TextAreaField, SelectField, IntegerField, SubmitField
from wtforms.validators import DataRequired, Length, Optional, NumberRange

IMAGE_EXTENSIONS = ['png', 'jpg', 'jpeg', 'gif', 'webp']
DOCUMENT_EXTENSIONS = ['pdf', 'doc', 'docx']


def first_error(form):
    """The first validation message of a form, prefixed with the field label."""
    for field_name, errors in form.errors.items():
        if errors:
            field = getattr(form, field_name, None)
            label = field.label.text if field is not None else field_name
            return f"{label}: {errors[0]}"
    return "Please check the form and try again."


class StudentSignupForm(FlaskForm):
    full_name = StringField('Full Name', validators=[DataRequired(), Length(max=100)])
    student_email = StringField('University Email', validators=[DataRequired(), Length(max=150)])
    password = PasswordField('Password', validators=[DataRequired()])
    confirm_password = PasswordField('Confirm Password', validators=[DataRequired()])
    submit = SubmitField('Sign Up')


class ClubSignupForm(FlaskForm):
    club_name = StringField('Club Name', validators=[DataRequired(), Length(max=150)])
    club_email = StringField('Club Email', validators=[DataRequired(), Length(max=150)])
    club_description = TextAreaField('Club Description', validators=[Optional()])
    representative_name = StringField('Representative Name', validators=[Optional(), Length(max=150)])
    password = PasswordField('Password', validators=[DataRequired()])
    confirm_password = PasswordField('Confirm Password', validators=[DataRequired()])

    club_kind = SelectField('Club Kind', choices=[('Academic', 'Academic'), ('Non Academic', 'Non Academic')],
                            default='Non Academic')
    club_status = SelectField('Club Status', choices=[('New', 'New'), ('Existing', 'Existing')], default='New')
    club_vision = TextAreaField('Vision', validators=[Optional()])
    club_activities = TextAreaField('Planned Activities', validators=[Optional()])

    president_name = StringField('President Name', validators=[Optional(), Length(max=150)])
    president_student_id = StringField('President Student ID', validators=[Optional(), Length(max=50)])
    president_phone = StringField('President Phone', validators=[Optional(), Length(max=50)])
    president_college = StringField('President College', validators=[Optional(), Length(max=100)])

    vp_name = StringField('Vice President Name', validators=[Optional(), Length(max=150)])
    vp_student_id = StringField('Vice President Student ID', validators=[Optional(), Length(max=50)])
    vp_phone = StringField('Vice President Phone', validators=[Optional(), Length(max=50)])

    member1 = StringField('Member 1', validators=[Optional(), Length(max=150)])
    member2 = StringField('Member 2', validators=[Optional(), Length(max=150)])
    member3 = StringField('Member 3', validators=[Optional(), Length(max=150)])
    member4 = StringField('Member 4', validators=[Optional(), Length(max=150)])
    member5 = StringField('Member 5', validators=[Optional(), Length(max=150)])

    advisor_name = StringField('Advisor Name', validators=[Optional(), Length(max=150)])
    advisor_email = StringField('Advisor Email', validators=[Optional(), Length(max=150)])
    advisor_signature = TextAreaField('Advisor Signature', validators=[Optional()])

    club_socials = TextAreaField('Social Media Links', validators=[Optional()])
    club_members_count = IntegerField('Number of Members', validators=[Optional(), NumberRange(min=0)])
    club_fair = SelectField('Join the Club Fair?', choices=[('Yes', 'Yes'), ('No', 'No')], default='No')
    club_logo = FileField('Club Logo', validators=[Optional(), FileAllowed(IMAGE_EXTENSIONS, 'Images only!')])

    dsa_name = StringField('DSA Name', validators=[Optional(), Length(max=150)])
    dsa_signature = TextAreaField('DSA Signature', validators=[Optional()])
    submit = SubmitField('Submit Club Request')


class LoginForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired()])
    password = PasswordField('Password', validators=[DataRequired()])
    submit = SubmitField('Log In')


class EmailForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired()])
    submit = SubmitField('Send Link')


class ResetPasswordForm(FlaskForm):
    password = PasswordField('New Password', validators=[DataRequired()])
    confirm_password = PasswordField('Confirm Password', validators=[DataRequired()])
    submit = SubmitField('Reset Password')


class StudentProfileForm(FlaskForm):
    full_name = StringField('Full Name', validators=[DataRequired(), Length(max=100)])
    bio = TextAreaField('Bio', validators=[Optional()])
    phone = StringField('Phone', validators=[Optional(), Length(max=50)])
    linkedin = StringField('LinkedIn', validators=[Optional(), Length(max=255)])
    profile_pic = FileField('Profile Picture', validators=[Optional(), FileAllowed(IMAGE_EXTENSIONS, 'Images only!')])
    cv = FileField('CV', validators=[Optional(), FileAllowed(DOCUMENT_EXTENSIONS, 'Documents only!')])
    submit = SubmitField('Save')


class ClubProfileForm(FlaskForm):
    club_name = StringField('Club Name', validators=[DataRequired(), Length(max=150)])
    club_description = TextAreaField('Description', validators=[Optional()])
    representative_name = StringField('Representative', validators=[Optional(), Length(max=150)])
    email = StringField('Contact Email', validators=[Optional(), Length(max=150)])
    phone = StringField('Phone', validators=[Optional(), Length(max=50)])
    linkedin = StringField('LinkedIn', validators=[Optional(), Length(max=255)])
    instagram = StringField('Instagram', validators=[Optional(), Length(max=255)])
    tiktok = StringField('TikTok', validators=[Optional(), Length(max=255)])
    x = StringField('X', validators=[Optional(), Length(max=255)])
    submit = SubmitField('Save')


class StaffProfileForm(FlaskForm):
    full_name = StringField('Full Name', validators=[DataRequired(), Length(max=100)])
    title = StringField('Title', validators=[Optional(), Length(max=150)])
    submit = SubmitField('Save')
