from flask_wtf import FlaskForm
from flask_wtf.file import FileField, MultipleFileField
from wtforms import StringField, TextAreaField, IntegerField, FloatField, DateField, DateTimeLocalField, SubmitField
from wtforms.validators import DataRequired, InputRequired, Length, Optional, NumberRange, ValidationError


class PostForm(FlaskForm):
    content = TextAreaField('What would you like to share?', validators=[Optional(), Length(max=5000)])
    media = FileField('Image or Video', validators=[Optional()])
    submit = SubmitField('Post')


class EventForm(FlaskForm):
    title = StringField('Title', validators=[DataRequired(), Length(max=200)])
    description = TextAreaField('Description', validators=[Optional()])
    category = StringField('Category', validators=[Optional(), Length(max=100)])
    location = StringField('Location', validators=[Optional(), Length(max=200)])
    starts_at = DateTimeLocalField('Starts At', format='%Y-%m-%dT%H:%M', validators=[Optional()])
    ends_at = DateTimeLocalField('Ends At', format='%Y-%m-%dT%H:%M', validators=[Optional()])
    capacity = IntegerField('Capacity', validators=[Optional(), NumberRange(min=1)])
    expected_attendance = IntegerField('Expected Attendance', validators=[Optional(), NumberRange(min=0)])
    budget = FloatField('Budget', validators=[Optional(), NumberRange(min=0)])
    organizer_name = StringField('Organizer', validators=[Optional(), Length(max=150)])
    organizer_phone = StringField('Organizer Phone', validators=[Optional(), Length(max=50)])
    requirements = TextAreaField('Logistics Requirements', validators=[Optional()])
    attachments = MultipleFileField('Attachments', validators=[Optional()])
    submit = SubmitField('Submit for Approval')

    def validate_ends_at(self, field):
        if field.data and self.starts_at.data and field.data < self.starts_at.data:
            raise ValidationError('End time must be after the start time.')


class EventReportForm(FlaskForm):
    faculty_adviser_name = StringField('Faculty Adviser', validators=[DataRequired(), Length(max=150)])
    activity_title = StringField('Activity Title', validators=[DataRequired(), Length(max=200)])
    activity_date = DateField('Activity Date', format='%Y-%m-%d', validators=[DataRequired()])
    activity_location = StringField('Activity Location', validators=[DataRequired(), Length(max=200)])
    purpose_of_activity = TextAreaField('Purpose of the Activity', validators=[DataRequired()])
    activity_description = TextAreaField('Description of the Activity', validators=[DataRequired()])
    managing_students = TextAreaField('Managing Students', validators=[DataRequired()])
    participating_students = TextAreaField('Participating Students', validators=[DataRequired()])
    number_of_attendance = IntegerField('Number of Attendees', validators=[InputRequired(), NumberRange(min=0)])
    evaluation_results = TextAreaField('Evaluation Results', validators=[DataRequired()])
    recommendations = TextAreaField('Recommendations', validators=[DataRequired()])

    photos = MultipleFileField('Photos', validators=[Optional()])
    attendance_sheet = MultipleFileField('Attendance Sheet', validators=[Optional()])
    receipts_and_liquidation = MultipleFileField('Receipts and Liquidation', validators=[Optional()])
    activity_proposal = MultipleFileField('Activity Proposal', validators=[Optional()])
    supporting_documents = MultipleFileField('Supporting Documents', validators=[Optional()])
    submit = SubmitField('Submit Report')
