"""Organization management CLI commands."""

import click
from flask.cli import with_appcontext

from sportsfest.extensions import db
from sportsfest.models import Organization, User
from sportsfest.services.organization import create_organization


@click.group('org')
def org_commands():
    """Organization management commands."""
    pass


@org_commands.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--slug', help='Organization slug (derived from the name when omitted)')
@click.option('--owner-email', help='Owner user email (optional)')
@click.option('--owner-password', help='Owner user password (optional)')
@click.option('--owner-name', help='Owner display name (optional)')
@with_appcontext
def create_org(name, slug, owner_email, owner_password, owner_name):
    """Create a new organization.

    Example:
        flask org create --name "Acme Corp" --slug acme
        flask org create --name "Acme Corp" --owner-email owner@acme.com --owner-password 'Secret123!'
    """
    if bool(owner_email) != bool(owner_password):
        click.echo(click.style('Error: --owner-email and --owner-password must be given together', fg='red'))
        return

    org, error = create_organization(
        name,
        slug=slug,
        owner_email=owner_email,
        owner_password=owner_password,
        owner_name=owner_name,
    )
    if error:
        click.echo(click.style(f'Error: {error}', fg='red'))
        return

    click.echo(click.style('✓ Organization created successfully!', fg='green'))
    click.echo(f'  Name: {org.name}')
    click.echo(f'  Slug: {org.slug}')
    click.echo(f'  ID: {org.id}')
    if owner_email:
        click.echo(f'  Owner Email: {owner_email.strip().lower()}')


@org_commands.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.name).all()

    if not orgs:
        click.echo('No organizations found.')
        return

    click.echo(f'Found {len(orgs)} organization(s):\n')

    for org in orgs:
        user_count = db.session.query(User).filter_by(org_id=org.id).count()

        click.echo(f'• {org.name}')
        click.echo(f'  Slug: {org.slug}')
        click.echo(f'  ID: {org.id}')
        click.echo(f'  Users: {user_count}')
        click.echo(f'  Created: {org.created_at.strftime("%Y-%m-%d %H:%M")}')
        click.echo()
