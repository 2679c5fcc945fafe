"""User management CLI commands."""

import click
from flask.cli import with_appcontext
from sqlalchemy import func

from sportsfest.extensions import db
from sportsfest.models import Organization, User, UserRole
from sportsfest.security.config import is_password_strong
from sportsfest.services.email import send_super_admin_invite_email
from sportsfest.services.super_admins import MAX_NAME_LENGTH, issue_reset_token, normalize_email


def _get_org_by_slug(slug: str) -> Organization | None:
    return db.session.query(Organization).filter_by(slug=slug).first()


@click.group('user')
def user_commands():
    """User management commands."""
    pass


@user_commands.command('create')
@click.option('--org', 'org_slug', required=True, help='Organization slug')
@click.option('--email', required=True, help='User email')
@click.option('--password', required=True, help='User password')
@click.option('--name', help='Display name')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.MEMBER.value, show_default=True)
@with_appcontext
def create_user(org_slug, email, password, name, role):
    """Create a user in an organization."""
    org = _get_org_by_slug(org_slug)
    if not org:
        click.echo(click.style(f'Error: Organization with slug "{org_slug}" not found', fg='red'))
        return

    email = email.strip().lower()
    existing = db.session.query(User).filter_by(org_id=org.id, email=email).first()
    if existing:
        click.echo(click.style(f'Error: User with email "{email}" already exists in org "{org_slug}"', fg='red'))
        return

    ok, message = is_password_strong(password)
    if not ok:
        click.echo(click.style(f'Error: {message}', fg='red'))
        return

    user = User(org_id=org.id, name=name, email=email, role=UserRole(role), active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    click.echo(click.style('User created successfully!', fg='green'))
    click.echo(f'  Org: {org.slug} ({org.name})')
    click.echo(f'  Email: {email}')
    click.echo(f'  Role: {role}')


@user_commands.command('set-password')
@click.option('--email', required=True, help='User email')
@click.option('--password', required=True, help='New password')
@click.option('--org', 'org_slug', help='Organization slug (omit for super admins)')
@with_appcontext
def set_password(email, password, org_slug):
    """Set or reset a user's password."""
    query = db.session.query(User).filter(func.lower(User.email) == email.strip().lower())
    if org_slug:
        org = _get_org_by_slug(org_slug)
        if not org:
            click.echo(click.style(f'Error: Organization with slug "{org_slug}" not found', fg='red'))
            return
        query = query.filter(User.org_id == org.id)
    else:
        query = query.filter(User.is_super_admin.is_(True))

    user = query.first()
    if not user:
        click.echo(click.style(f'Error: No user {email} found', fg='red'))
        return

    ok, message = is_password_strong(password)
    if not ok:
        click.echo(click.style(f'Error: {message}', fg='red'))
        return

    user.set_password(password)
    user.password_reset_token = None
    user.password_reset_expires = None
    db.session.commit()
    click.echo(click.style('Password updated.', fg='green'))


@user_commands.command('create-super-admin')
@click.option('--email', required=True, help='Super admin email')
@click.option('--name', required=True, help='Display name')
@click.option('--password', help='Password; when omitted an invite link is emailed instead')
@with_appcontext
def create_super_admin(email, name, password):
    """Bootstrap a platform super admin account."""
    name = name.strip()
    if not name or len(name) > MAX_NAME_LENGTH:
        click.echo(click.style(f'Error: Name must be 1-{MAX_NAME_LENGTH} characters', fg='red'))
        return

    email, error = normalize_email(email)
    if error:
        click.echo(click.style(f'Error: {error}', fg='red'))
        return

    if db.session.query(User).filter(func.lower(User.email) == email).first():
        click.echo(click.style('Error: Email address is already taken', fg='red'))
        return

    user = User(
        org_id=None,
        name=name,
        email=email,
        role=UserRole.ADMIN,
        is_super_admin=True,
        active=True,
    )
    token = None
    if password:
        ok, message = is_password_strong(password)
        if not ok:
            click.echo(click.style(f'Error: {message}', fg='red'))
            return
        user.set_password(password)
    else:
        token = issue_reset_token(user)

    db.session.add(user)
    db.session.commit()

    click.echo(click.style('Super admin created successfully!', fg='green'))
    click.echo(f'  Email: {email}')
    if token:
        if send_super_admin_invite_email(user, token):
            click.echo('  Invite email sent.')
        else:
            click.echo(click.style('  Warning: invite email could not be sent', fg='yellow'))
