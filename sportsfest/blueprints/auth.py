"""Authentication blueprint for SportsFest."""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request, session
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf import FlaskForm
from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import DataRequired, Email

from sportsfest.extensions import db, limiter
from sportsfest.forms.admin import form_errors
from sportsfest.models import User
from sportsfest.security.config import auth_rate_limit
from sportsfest.services.audit import log_security_event
from sportsfest.services.super_admins import complete_password_setup
from sportsfest.services.timeutils import utcnow


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember me")


class PasswordSetupForm(FlaskForm):
    password = PasswordField("New Password", validators=[DataRequired()])
    password_confirm = PasswordField("Confirm Password", validators=[DataRequired()])


auth_bp = Blueprint("auth", __name__)


def _find_login_user(email: str) -> User | None:
    """Super admins log in platform-wide; members log in to their organization."""
    matches = User.query.filter(User.email.ilike(email)).all()
    if len(matches) == 1:
        return matches[0]

    for user in matches:
        if user.is_super_admin:
            return user

    org = getattr(g, "org", None)
    if org is not None:
        return next((user for user in matches if user.org_id == org.id), None)
    return None


def serialize_session_user(user: User) -> dict:
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role.value,
        'is_super_admin': user.is_super_admin,
        'org_id': user.org_id,
    }


@auth_bp.route("/login", methods=["POST"])
@limiter.limit(auth_rate_limit)
def login():
    if current_user.is_authenticated:
        return jsonify({'success': True, 'user': serialize_session_user(current_user)})

    form = LoginForm()
    if not form.validate_on_submit():
        return jsonify({'success': False, 'error': form_errors(form)}), 400

    email = form.email.data.strip().lower()
    user = _find_login_user(email)
    if user is None or not user.check_password(form.password.data):
        return jsonify({'success': False, 'error': 'Invalid email or password'}), 401

    if not user.is_active:
        return jsonify({'success': False, 'error': 'Account is inactive. Contact your administrator.'}), 403

    user.last_login_at = utcnow()
    user.last_login_ip = request.remote_addr
    db.session.commit()

    login_user(user, remember=form.remember_me.data)
    if user.organization is not None:
        session['org_slug'] = user.organization.slug
    log_security_event(user, 'login')

    return jsonify({'success': True, 'user': serialize_session_user(user)})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    log_security_event(current_user, 'logout')
    logout_user()
    session.pop('org_slug', None)
    return jsonify({'success': True})


@auth_bp.route("/setup-password/<token>", methods=["POST"])
@limiter.limit("10 per hour")
def setup_password(token):
    """Choose a password from an invite or reset link."""
    form = PasswordSetupForm()
    if not form.validate_on_submit():
        return jsonify({'success': False, 'error': form_errors(form)}), 400
    if form.password.data != form.password_confirm.data:
        return jsonify({'success': False, 'error': 'Passwords do not match'}), 400

    user, error = complete_password_setup(token, form.password.data)
    if error:
        return jsonify({'success': False, 'error': error}), 400

    return jsonify({'success': True, 'email': user.email})
