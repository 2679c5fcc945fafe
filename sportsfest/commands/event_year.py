"""Event year CLI commands."""

import click
from flask.cli import with_appcontext

from sportsfest.models import EventYear
from sportsfest.services.event_years import EventYearService


@click.group('event-year')
def event_year_commands():
    """Event year management commands."""
    pass


@event_year_commands.command('create')
@click.option('--year', required=True, type=int, help='Calendar year of the event')
@click.option('--start', 'start_date', required=True, type=click.DateTime(formats=['%Y-%m-%d']),
              help='Event start date (YYYY-MM-DD)')
@click.option('--end', 'end_date', required=True, type=click.DateTime(formats=['%Y-%m-%d']),
              help='Event end date (YYYY-MM-DD)')
@click.option('--name', help='Display name (default: "SportsFest <year>")')
@click.option('--location', help='Event location')
@click.option('--activate', is_flag=True, help='Make this the active event year')
@with_appcontext
def create_event_year(year, start_date, end_date, name, location, activate):
    """Create an event year.

    Example:
        flask event-year create --year 2026 --start 2026-08-15 --end 2026-08-16 --activate
    """
    event_year, error = EventYearService.create_event_year({
        'year': year,
        'name': name,
        'event_start_date': start_date.date(),
        'event_end_date': end_date.date(),
        'location': location,
        'is_active': activate,
    })
    if error:
        click.echo(click.style(f'Error: {error}', fg='red'))
        return

    click.echo(click.style(f'✓ Event year {event_year.year} created', fg='green'))
    click.echo(f'  Name: {event_year.name}')
    click.echo(f'  ID: {event_year.id}')
    click.echo(f'  Active: {"yes" if event_year.is_active else "no"}')


@event_year_commands.command('activate')
@click.argument('year', type=int)
@with_appcontext
def activate_event_year(year):
    """Make YEAR the active event year."""
    event_year = EventYear.query.filter_by(year=year, is_deleted=False).first()
    if event_year is None:
        click.echo(click.style(f'Error: No event year {year} found', fg='red'))
        return

    _, error = EventYearService.set_active(event_year.id)
    if error:
        click.echo(click.style(f'Error: {error}', fg='red'))
        return
    click.echo(click.style(f'✓ {event_year.name} is now the active event year', fg='green'))


@event_year_commands.command('list')
@with_appcontext
def list_event_years():
    """List event years, newest first."""
    years = EventYearService.list_event_years()
    if not years:
        click.echo('No event years found.')
        return

    for event_year in years:
        marker = click.style(' (active)', fg='green') if event_year.is_active else ''
        click.echo(f'• {event_year.year} {event_year.name}{marker}')
        click.echo(f'  Dates: {event_year.event_start_date} to {event_year.event_end_date}')
        click.echo(f'  ID: {event_year.id}')
