from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField, SelectField, SubmitField
from wtforms.validators import DataRequired, Length, Optional


class ApplicationForm(FlaskForm):
    student_name = StringField('Full Name', validators=[DataRequired(), Length(max=150)])
    email = StringField('Email', validators=[DataRequired(), Length(max=150)])
    gender = SelectField('Gender', choices=[('Male', 'Male'), ('Female', 'Female'), ('Other', 'Other')],
                         validators=[DataRequired()])
    major = StringField('Major', validators=[DataRequired(), Length(max=150)])
    academic_year = SelectField('Academic Year',
                                choices=[(y, y) for y in ('Freshman', 'Sophomore', 'Junior', 'Senior', 'Graduate')],
                                validators=[DataRequired()])
    skills = TextAreaField('Skills', validators=[DataRequired()])
    motivation = TextAreaField('Why do you want to join?', validators=[DataRequired()])
    message = TextAreaField('Anything else?', validators=[Optional()])
    submit = SubmitField('Submit Application')
