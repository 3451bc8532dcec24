# controllers/forms.py
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import StringField, EmailField
from wtforms.validators import DataRequired, Email, Optional, Length, ValidationError


class RegistrationForm(FlaskForm):
    """Attendee registration - matches POST /api/attendees and /register."""

    name = StringField('Full Name', validators=[
        DataRequired(message="Name is required"),
        Length(min=2, max=120, message="Name must be between 2 and 120 characters")
    ])

    email = EmailField('Email Address', validators=[
        DataRequired(message="Email address is required"),
        Email(message="Please enter a valid email address", check_deliverability=False),
        Length(max=120, message="Email must be less than 120 characters")
    ])

    barcode = StringField('Barcode', validators=[
        Optional(),
        Length(min=4, max=64, message="Barcode must be between 4 and 64 characters")
    ])

    table_number = StringField('Table', validators=[
        Optional(),
        Length(max=20, message="Table must be less than 20 characters")
    ])

    seat_number = StringField('Seat', validators=[
        Optional(),
        Length(max=20, message="Seat must be less than 20 characters")
    ])

    def validate_barcode(self, field):
        if field.data and any(ch.isspace() for ch in field.data.strip()):
            raise ValidationError("Barcode cannot contain spaces")


class AttendeeUpdateForm(FlaskForm):
    """Partial administrative edit - matches PATCH /api/attendees/<id>."""

    name = StringField('Full Name', validators=[
        Optional(),
        Length(min=2, max=120, message="Name must be between 2 and 120 characters")
    ])

    email = EmailField('Email Address', validators=[
        Optional(),
        Email(message="Please enter a valid email address", check_deliverability=False),
        Length(max=120, message="Email must be less than 120 characters")
    ])

    table_number = StringField('Table', validators=[
        Optional(),
        Length(max=20, message="Table must be less than 20 characters")
    ])

    seat_number = StringField('Seat', validators=[
        Optional(),
        Length(max=20, message="Seat must be less than 20 characters")
    ])


def json_form(form_class, data):
    """Bind a form to a JSON payload; CSRF does not apply to JSON clients."""
    formdata = MultiDict({key: '' if value is None else str(value) for key, value in (data or {}).items()})
    return form_class(formdata=formdata, meta={'csrf': False})


def form_errors(form):
    """Flatten WTForms errors to {field: first message}."""
    return {field: messages[0] for field, messages in form.errors.items() if messages}
