"""Data seeding CLI commands."""

import random
from datetime import date, timedelta
from decimal import Decimal

import click
from flask.cli import with_appcontext

from sportsfest.extensions import db
from sportsfest.models import (
    CompanyTeam,
    EventType,
    Gender,
    Organization,
    Player,
    PlayerEventInterest,
    Product,
    ProductType,
)
from sportsfest.services.event_years import MAX_EVENT_YEAR, MIN_EVENT_YEAR, EventYearService
from sportsfest.services.organization import create_organization
from sportsfest.services.rosters import TeamRosterService

FIRST_NAMES = {
    Gender.MALE: ['James', 'Miguel', 'Arjun', 'Liam', 'Noah', 'Kenji', 'Omar', 'Lucas', 'Ethan', 'Mateo'],
    Gender.FEMALE: ['Olivia', 'Priya', 'Sofia', 'Emma', 'Aiko', 'Zara', 'Mia', 'Chloe', 'Amara', 'Lena'],
}
LAST_NAMES = ['Smith', 'Garcia', 'Patel', 'Nguyen', 'Johnson', 'Kim', 'Brown', 'Lopez', 'Okafor', 'Rossi']

DEMO_PRODUCTS = [
    {'name': 'Team Registration', 'type': ProductType.TEAM_REGISTRATION, 'price': Decimal('1500.00'),
     'max_quantity_per_org': 4},
    {'name': 'Beach Tent Rental', 'type': ProductType.TENT_RENTAL, 'price': Decimal('250.00'),
     'requires_deposit': True, 'deposit_amount': Decimal('100.00'), 'total_inventory': 40},
    {'name': 'Team T-Shirt', 'type': ProductType.MERCHANDISE, 'price': Decimal('20.00')},
]


@click.group('seed')
def seed_commands():
    """Data seeding commands."""
    pass


def _demo_event_year():
    event_year = EventYearService.get_active()
    if event_year is not None:
        return event_year, None

    year = min(max(date.today().year, MIN_EVENT_YEAR), MAX_EVENT_YEAR)
    start = date(year, 8, 15)
    return EventYearService.create_event_year({
        'year': year,
        'event_start_date': start,
        'event_end_date': start + timedelta(days=1),
        'registration_open_date': start - timedelta(days=120),
        'registration_close_date': start - timedelta(days=14),
        'location': 'Demo Beach',
        'is_active': True,
    })


@seed_commands.command('demo')
@click.option('--org', 'org_slug', default='demo', show_default=True, help='Organization slug to seed')
@click.option('--teams', default=2, show_default=True, help='Number of teams to create')
@click.option('--players', default=40, show_default=True, help='Number of players to register')
@click.option('--assign/--no-assign', default=True, show_default=True, help='Auto-assign players to teams')
@click.option('--seed', 'random_seed', type=int, help='Random seed for reproducible data')
@with_appcontext
def seed_demo(org_slug, teams, players, assign, random_seed):
    """Seed demo data: an organization, an active event year, teams and players.

    Example:
        flask seed demo
        flask seed demo --org acme --teams 3 --players 60
    """
    rng = random.Random(random_seed)

    organization = db.session.query(Organization).filter_by(slug=org_slug).first()
    if organization is None:
        organization, error = create_organization(
            f'{org_slug.replace("-", " ").title()} Company',
            slug=org_slug,
            owner_email=f'owner@{org_slug}.example.com',
            owner_password='DemoPass123',
            owner_name='Demo Owner',
        )
        if error:
            click.echo(click.style(f'Error: {error}', fg='red'))
            return
        click.echo(f'Created organization {organization.name} (owner@{org_slug}.example.com / DemoPass123)')

    event_year, error = _demo_event_year()
    if error:
        click.echo(click.style(f'Error: {error}', fg='red'))
        return

    click.echo(f'Seeding demo data for {organization.name} in {event_year.name}')

    try:
        if not Product.query.filter_by(event_year_id=event_year.id).first():
            for product in DEMO_PRODUCTS:
                db.session.add(Product(event_year_id=event_year.id, **product))

        existing = CompanyTeam.query.filter_by(org_id=organization.id, event_year_id=event_year.id).count()
        for number in range(existing + 1, existing + teams + 1):
            db.session.add(CompanyTeam(
                org_id=organization.id,
                event_year_id=event_year.id,
                team_number=number,
                name=f'{organization.name} Team {number}',
            ))

        for index in range(players):
            gender = Gender.MALE if index % 2 == 0 else Gender.FEMALE
            first = rng.choice(FIRST_NAMES[gender])
            last = rng.choice(LAST_NAMES)
            player = Player(
                org_id=organization.id,
                event_year_id=event_year.id,
                first_name=first,
                last_name=last,
                email=f'{first.lower()}.{last.lower()}{index}@{org_slug}.example.com',
                gender=gender,
                waiver_signed=True,
                accuracy_confirmed=True,
            )
            for event_type in EventType:
                player.interests.append(PlayerEventInterest(
                    event_type=event_type,
                    interest_rating=rng.randint(1, 5),
                ))
            db.session.add(player)

        db.session.commit()
    except Exception as e:
        db.session.rollback()
        click.echo(click.style(f'Error seeding demo data: {str(e)}', fg='red'))
        return

    click.echo(f'  Teams: {teams}')
    click.echo(f'  Players: {players}')

    if assign:
        result, error = TeamRosterService.auto_generate_team_rosters(organization.id)
        if error:
            click.echo(click.style(f'Warning: {error}', fg='yellow'))
        else:
            click.echo(f"  Assigned {result['players_assigned']} players across {result['teams']} teams")

    click.echo(click.style('✓ Demo data seeded successfully!', fg='green'))
