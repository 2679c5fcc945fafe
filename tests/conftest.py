from datetime import date
from decimal import Decimal

import pytest

from sportsfest import create_app
from sportsfest.config import Config
from sportsfest.extensions import db
from sportsfest.models import (
    CompanyTeam,
    EventYear,
    Gender,
    Organization,
    Player,
    PlayerEventInterest,
    Product,
    ProductType,
    TeamRoster,
    User,
    UserRole,
)


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    ALLOW_ORG_FALLBACK = False
    DEFAULT_ORG_SLUG = None
    TENANT_BASE_DOMAIN = None
    EMAIL_ENABLED = False
    EMAIL_QUEUE_ENABLED = False
    CRON_SECRET = 'cron-secret'
    PAYMENT_API_BASE = 'https://payments.test/v1'
    PAYMENT_SECRET_KEY = 'sk_test_123'
    PAYMENT_WEBHOOK_SECRET = 'whsec_test'
    DIGEST_RECIPIENTS = ['ops@sportsfest.test']


@pytest.fixture
def app(tmp_path):
    """Application backed by an in-memory database."""
    TestConfig.EXPORT_DIR = str(tmp_path / 'exports')
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Keep an application context open for service-level tests."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class Factory:
    """Build and commit model instances; needs an application context."""

    def __init__(self):
        self._player_seq = 0

    def org(self, name='Acme Corp', slug='acme'):
        org = Organization(name=name, slug=slug, contact_email=f'contact@{slug}.com')
        db.session.add(org)
        db.session.commit()
        return org

    def event_year(self, year=2027, active=True, **kwargs):
        event_year = EventYear(
            year=year,
            name=kwargs.pop('name', f'SportsFest {year}'),
            event_start_date=kwargs.pop('event_start_date', date(year, 8, 15)),
            event_end_date=kwargs.pop('event_end_date', date(year, 8, 16)),
            is_active=active,
            **kwargs,
        )
        db.session.add(event_year)
        db.session.commit()
        return event_year

    def user(self, org, email=None, role=UserRole.OWNER, password='Password123', name='Test User'):
        user = User(
            org_id=org.id,
            name=name,
            email=email or f'{role.value}@{org.slug}.com',
            role=role,
            active=True,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    def super_admin(self, email='root@sportsfest.test', name='Platform Admin', password='Password123'):
        user = User(
            org_id=None,
            name=name,
            email=email,
            role=UserRole.ADMIN,
            is_super_admin=True,
            active=True,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    def team(self, org, event_year, number=1, name=None):
        team = CompanyTeam(
            org_id=org.id,
            event_year_id=event_year.id,
            team_number=number,
            name=name or f'{org.name} Team {number}',
        )
        db.session.add(team)
        db.session.commit()
        return team

    def player(self, org, event_year, gender=Gender.MALE, first_name=None, last_name='Player', interests=None, **kwargs):
        self._player_seq += 1
        player = Player(
            org_id=org.id,
            event_year_id=event_year.id,
            first_name=first_name or f'{gender.value.title()}{self._player_seq:02d}',
            last_name=last_name,
            email=f'player{self._player_seq}@{org.slug}.com',
            gender=gender,
            **kwargs,
        )
        for event_type, rating in (interests or {}).items():
            player.interests.append(PlayerEventInterest(event_type=event_type, interest_rating=rating))
        db.session.add(player)
        db.session.commit()
        return player

    def roster(self, team, players, captain=None):
        for player in players:
            db.session.add(TeamRoster(team_id=team.id, player_id=player.id, is_captain=player is captain))
        db.session.commit()

    def product(self, event_year, name='Team Registration', type=ProductType.TEAM_REGISTRATION,
                price='1500.00', **kwargs):
        product = Product(
            event_year_id=event_year.id,
            name=name,
            type=type,
            price=Decimal(price),
            **kwargs,
        )
        db.session.add(product)
        db.session.commit()
        return product


@pytest.fixture
def factory():
    return Factory()


def login(client, user_id):
    """Mark a user as logged in on the test client's session."""
    with client.session_transaction() as sess:
        sess['_user_id'] = user_id
        sess['_fresh'] = True
