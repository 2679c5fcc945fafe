"""Forms for super-admin management endpoints.

Flask-WTF reads these from JSON request bodies as well as form posts.
"""

from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import BooleanField, DateField, EmailField, IntegerField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, NumberRange, Optional


class EventYearForm(FlaskForm):
    """Create or edit an event year."""

    year = IntegerField(
        "Year",
        validators=[DataRequired(), NumberRange(min=2023, max=2030)],
    )
    name = StringField("Name", validators=[Optional(), Length(max=255)])
    event_start_date = DateField("Event Start", validators=[DataRequired()])
    event_end_date = DateField("Event End", validators=[DataRequired()])
    registration_open_date = DateField("Registration Opens", validators=[Optional()])
    registration_close_date = DateField("Registration Closes", validators=[Optional()])
    location = StringField("Location", validators=[Optional(), Length(max=255)])
    description = TextAreaField("Description", validators=[Optional()])
    is_active = BooleanField("Active")

    def to_data(self) -> dict:
        return {
            'year': self.year.data,
            'name': self.name.data or None,
            'event_start_date': self.event_start_date.data,
            'event_end_date': self.event_end_date.data,
            'registration_open_date': self.registration_open_date.data,
            'registration_close_date': self.registration_close_date.data,
            'location': self.location.data or None,
            'description': self.description.data or None,
            'is_active': bool(self.is_active.data),
        }


class SuperAdminForm(FlaskForm):
    """Invite a platform super admin."""

    name = StringField("Name", validators=[DataRequired(), Length(min=1, max=64)])
    email = EmailField("Email", validators=[DataRequired(), Email()])
    send_invite = BooleanField("Send invite email", default=True)


class SponsorshipForm(FlaskForm):
    """Sponsorship invoice for an organization."""

    org_id = StringField("Organization", validators=[Optional(), Length(max=36)])
    base_amount = StringField("Amount", validators=[DataRequired()])
    description = TextAreaField("Description", validators=[Optional(), Length(max=500)])


def form_errors(form: FlaskForm) -> str:
    """First validation message of a form, prefixed with the field label."""
    for field_name, messages in form.errors.items():
        field = getattr(form, field_name, None)
        label = field.label.text if field is not None else field_name
        return f"{label}: {messages[0]}"
    return "Invalid input"


__all__ = ['EventYearForm', 'SuperAdminForm', 'SponsorshipForm', 'form_errors']
