"""Platform super admin accounts: invite, re-invite, revoke."""
from __future__ import annotations

import secrets
from datetime import timedelta
from typing import Any

from email_validator import EmailNotValidError, validate_email
from flask import current_app
from sqlalchemy import func

from sportsfest.extensions import db
from sportsfest.models import User, UserRole
from sportsfest.security import is_super_admin
from sportsfest.security.config import is_password_strong
from sportsfest.services.audit import log_admin_action, log_security_event
from sportsfest.services.email import send_super_admin_invite_email
from sportsfest.services.timeutils import ensure_utc, utcnow

INVITE_EXPIRY = timedelta(days=7)
MAX_NAME_LENGTH = 64
NOT_ALLOWED = "Only super admins can manage super admin accounts"


def normalize_email(email: str | None) -> tuple[str | None, str | None]:
    if not email or not email.strip():
        return None, "Email is required"
    try:
        result = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        return None, "Email is invalid"
    return result.normalized.lower(), None


def issue_reset_token(user: User) -> str:
    token = secrets.token_urlsafe(32)
    user.password_reset_token = token
    user.password_reset_expires = utcnow() + INVITE_EXPIRY
    return token


def create_super_admin(
    name: str,
    email: str,
    actor: User,
    send_invite: bool = True,
) -> tuple[User | None, str | None]:
    """Create a password-less super admin and mail them a setup link."""
    if not is_super_admin(actor):
        return None, NOT_ALLOWED

    name = (name or '').strip()
    if not name:
        return None, "Name is required"
    if len(name) > MAX_NAME_LENGTH:
        return None, f"Name must be {MAX_NAME_LENGTH} characters or less"

    email, error = normalize_email(email)
    if error:
        return None, error

    try:
        if User.query.filter(func.lower(User.email) == email).first():
            return None, "Email address is already taken"

        user = User(
            org_id=None,
            name=name,
            email=email,
            password_hash=None,
            role=UserRole.ADMIN,
            is_super_admin=True,
            active=True,
        )
        token = issue_reset_token(user)
        db.session.add(user)
        db.session.commit()

        log_admin_action(
            actor,
            'super_admin_created',
            'user',
            user.id,
            metadata={'reason': f"Super admin account created for {name} ({email})"},
            org_id=None,
        )

        if send_invite and not send_super_admin_invite_email(user, token, invited_by=actor.name or actor.email):
            current_app.logger.warning(f"Super admin {email} created but the invite email was not sent")

        return user, None

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create super admin: {e}")
        return None, "Failed to create super admin"


def resend_invite(user_id: str, actor: User) -> tuple[str | None, str | None]:
    """Issue a fresh setup token and resend the invite; returns the email."""
    if not is_super_admin(actor):
        return None, NOT_ALLOWED

    try:
        user = db.session.get(User, user_id)
        if user is None:
            return None, "User not found"
        if not user.email:
            return None, "User has no email address"

        token = issue_reset_token(user)
        db.session.commit()

        if not send_super_admin_invite_email(user, token, invited_by=actor.name or actor.email):
            return None, "Failed to send invite email"

        log_admin_action(
            actor,
            'super_admin_invite_resent',
            'user',
            user.id,
            metadata={'reason': f"Sign-in link resent to {user.name} ({user.email})"},
            org_id=None,
        )
        return user.email, None

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to resend super admin invite: {e}")
        return None, "Failed to resend invite"


def revoke_super_admin(user_id: str, actor: User, reason: str | None = None) -> tuple[bool, str | None]:
    if not is_super_admin(actor):
        return False, NOT_ALLOWED
    if actor.id == user_id:
        return False, "Cannot revoke your own super admin access"

    try:
        user = db.session.get(User, user_id)
        if user is None:
            return False, "User not found"
        if not user.is_super_admin:
            return False, "User is not a super admin"

        user.is_super_admin = False
        db.session.commit()

        log_admin_action(
            actor,
            'super_admin_revoked',
            'user',
            user.id,
            metadata={'reason': reason},
            org_id=None,
        )
        return True, None

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to revoke super admin: {e}")
        return False, "Failed to revoke super admin access"


def list_super_admins() -> list[User]:
    try:
        return (
            User.query
            .filter_by(is_super_admin=True)
            .order_by(User.created_at.desc())
            .all()
        )
    except Exception as e:
        current_app.logger.error(f"Failed to list super admins: {e}")
        return []


def complete_password_setup(token: str, password: str) -> tuple[User | None, str | None]:
    """Set the password for an invited (or reset) account."""
    try:
        user = User.query.filter_by(password_reset_token=token).first() if token else None
        if user is None:
            return None, "Invalid or expired link"
        if user.password_reset_expires is None or ensure_utc(user.password_reset_expires) < utcnow():
            return None, "Invalid or expired link"

        ok, message = is_password_strong(password or '')
        if not ok:
            return None, message

        user.set_password(password)
        user.password_reset_token = None
        user.password_reset_expires = None
        db.session.commit()

        log_security_event(user, 'password_setup')
        return user, None

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to set password: {e}")
        return None, "Failed to set password"


def serialize_super_admin(user: User) -> dict[str, Any]:
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'active': user.active,
        'pending_setup': user.password_hash is None,
        'created_at': user.created_at.isoformat() if user.created_at else None,
    }


__all__ = [
    'create_super_admin',
    'resend_invite',
    'revoke_super_admin',
    'list_super_admins',
    'complete_password_setup',
    'serialize_super_admin',
    'normalize_email',
    'issue_reset_token',
]
