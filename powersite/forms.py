"""Flask-WTF forms for the public contact form and the admin screens.

Each admin form is the editable copy of a stored record: it is filled from
the row on GET and written back only when the admin saves.
"""
from flask_wtf import FlaskForm
from flask_wtf.file import FileField
from wtforms import BooleanField, HiddenField, IntegerField, PasswordField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, Regexp, ValidationError

from .bootstrap import PASSWORD_MIN_LENGTH
from .models import PRODUCT_CATEGORIES, SERVICE_STATUSES
from .utils import is_valid_email


class _BaseForm(FlaskForm):
    class Meta:
        # The project already enforces CSRF globally in app.before_request.
        csrf = False


def _email_check(form, field):
    if field.data and not is_valid_email(field.data.strip()):
        raise ValidationError('Please enter a valid email address')


_password_rules = [
    DataRequired(message='Password is required'),
    Length(min=PASSWORD_MIN_LENGTH, message=f'Password must be at least {PASSWORD_MIN_LENGTH} characters'),
]
_image_url_rule = Regexp(
    r'^(https?://|/)\S*$',
    message='Image URL must be an http(s) URL or a site path.',
)


class LoginForm(_BaseForm):
    email = StringField('Email Address', validators=[DataRequired(message='Email is required'), Length(max=255), _email_check])
    password = PasswordField('Password', validators=_password_rules)


class SetupForm(_BaseForm):
    email = StringField('Admin Email', validators=[DataRequired(message='Email is required'), Length(max=255), _email_check])
    password = PasswordField('Password', validators=_password_rules)
    secret_key = PasswordField('Setup Secret Key', validators=[DataRequired(message='Setup secret key is required')])


class ContactForm(_BaseForm):
    name = StringField('Your Name', validators=[DataRequired(), Length(max=200)])
    phone = StringField('Phone Number', validators=[DataRequired(), Length(max=50)])
    message = TextAreaField('Your Message', validators=[DataRequired(), Length(max=5000)])


class HeroForm(_BaseForm):
    heading = TextAreaField('Heading', validators=[DataRequired(), Length(max=500)])
    subheading = TextAreaField('Subheading', validators=[DataRequired(), Length(max=1000)])
    cta_button_text = StringField('CTA Button Text', validators=[DataRequired(), Length(max=120)])
    cta_phone = StringField('CTA Phone Number', validators=[DataRequired(), Length(max=40)])


class ServiceForm(_BaseForm):
    title = StringField('Title', validators=[DataRequired(), Length(max=200)])
    description = TextAreaField('Description', validators=[DataRequired(), Length(max=10000)])
    image_url = HiddenField('Image URL', validators=[Optional(), Length(max=500), _image_url_rule])
    image = FileField('Image')
    remove_image = BooleanField('Remove current image')
    status = SelectField('Status', choices=[(status, status.title()) for status in SERVICE_STATUSES], default='active')
    sort_order = IntegerField('Sort Order', validators=[Optional(), NumberRange(min=-100000, max=100000)])


class ProductForm(_BaseForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=200)])
    category = SelectField(
        'Category',
        choices=[('', 'Select category')] + [(category, category) for category in PRODUCT_CATEGORIES],
        validators=[DataRequired(message='Please choose a category.')],
    )
    description = TextAreaField('Description', validators=[DataRequired(), Length(max=10000)])
    image_url = HiddenField('Image URL', validators=[Optional(), Length(max=500), _image_url_rule])
    image = FileField('Image')
    remove_image = BooleanField('Remove current image')
    featured = BooleanField('Featured')
