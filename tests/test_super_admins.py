"""Super admin invitations, revocation and password setup."""

from datetime import timedelta

import pytest

from sportsfest.extensions import db
from sportsfest.models import AuditLog, EmailMessage, UserRole
from sportsfest.services.super_admins import (
    NOT_ALLOWED,
    complete_password_setup,
    create_super_admin,
    list_super_admins,
    resend_invite,
    revoke_super_admin,
    serialize_super_admin,
)
from sportsfest.services.timeutils import utcnow


@pytest.fixture
def root(ctx, factory):
    return factory.super_admin()


def test_create_super_admin_sends_invite(root):
    user, error = create_super_admin('Dana Ops', ' Dana.Ops@SportsFest.io ', root)

    assert error is None
    assert user.email == 'dana.ops@sportsfest.io'
    assert user.is_super_admin is True
    assert user.role == UserRole.ADMIN
    assert user.org_id is None
    assert user.password_hash is None
    assert user.password_reset_token
    assert serialize_super_admin(user)['pending_setup'] is True

    invite = EmailMessage.query.filter_by(template_key='super_admin_invite').one()
    assert invite.to_email == 'dana.ops@sportsfest.io'
    assert user.password_reset_token in invite.context['setup_url']
    assert AuditLog.query.filter_by(action='super_admin_created').count() == 1


def test_create_super_admin_validation(root, factory):
    org = factory.org()
    owner = factory.user(org)

    assert create_super_admin('Dana', 'dana@sportsfest.io', owner) == (None, NOT_ALLOWED)
    assert create_super_admin('', 'dana@sportsfest.io', root) == (None, "Name is required")
    assert create_super_admin('x' * 65, 'dana@sportsfest.io', root) == (None, "Name must be 64 characters or less")
    assert create_super_admin('Dana', 'not-an-email', root) == (None, "Email is invalid")
    assert create_super_admin('Dana', owner.email.upper(), root) == (None, "Email address is already taken")


def test_resend_invite_rotates_token(root):
    user, _ = create_super_admin('Dana Ops', 'dana@sportsfest.io', root)
    first_token = user.password_reset_token

    assert resend_invite(user.id, root) == ('dana@sportsfest.io', None)
    assert user.password_reset_token != first_token
    assert EmailMessage.query.filter_by(template_key='super_admin_invite').count() == 2
    assert resend_invite('missing', root) == (None, "User not found")


def test_revoke_super_admin(root, factory):
    user, _ = create_super_admin('Dana Ops', 'dana@sportsfest.io', root)

    assert revoke_super_admin(root.id, root) == (False, "Cannot revoke your own super admin access")
    assert revoke_super_admin(user.id, root, reason='Left the company') == (True, None)
    assert user.is_super_admin is False
    assert revoke_super_admin(user.id, root) == (False, "User is not a super admin")
    assert [u.id for u in list_super_admins()] == [root.id]


def test_complete_password_setup(root):
    user, _ = create_super_admin('Dana Ops', 'dana@sportsfest.io', root)
    token = user.password_reset_token

    assert complete_password_setup(token, 'weak') == (None, "Password must be at least 8 characters long")
    assert complete_password_setup('nope', 'Str0ngPassword') == (None, "Invalid or expired link")

    updated, error = complete_password_setup(token, 'Str0ngPassword')
    assert error is None
    assert updated.check_password('Str0ngPassword')
    assert updated.password_reset_token is None
    # Tokens are single use
    assert complete_password_setup(token, 'Str0ngPassword') == (None, "Invalid or expired link")


def test_expired_setup_link(root):
    user, _ = create_super_admin('Dana Ops', 'dana@sportsfest.io', root)
    user.password_reset_expires = utcnow() - timedelta(minutes=1)
    db.session.commit()

    assert complete_password_setup(user.password_reset_token, 'Str0ngPassword') == (None, "Invalid or expired link")
