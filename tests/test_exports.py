"""CSV exports."""

import csv
import io
from datetime import timedelta
from decimal import Decimal

import pytest

from sportsfest.extensions import db
from sportsfest.models import (
    EventRoster,
    EventType,
    Gender,
    InvoiceStatus,
    Order,
    OrderInvoice,
    OrderPayment,
    OrderStatus,
    PaymentStatus,
    PaymentType,
)
from sportsfest.services.exports import (
    export_invoices_csv,
    export_payments_csv,
    export_team_roster_csv,
    generate_filename,
    write_export,
)
from sportsfest.services.rosters import TEAM_NOT_FOUND
from sportsfest.services.timeutils import today, utcnow


def _read(content):
    return list(csv.DictReader(io.StringIO(content)))


def test_team_roster_csv(ctx, factory):
    org = factory.org()
    event_year = factory.event_year()
    team = factory.team(org, event_year)
    captain = factory.player(org, event_year, Gender.FEMALE, first_name='Ada', last_name='Lovelace')
    other = factory.player(org, event_year, Gender.MALE, first_name='Alan', last_name='Turing')
    factory.roster(team, [captain, other], captain=captain)
    db.session.add_all([
        EventRoster(team_id=team.id, player_id=captain.id, event_type=EventType.CORN_TOSS,
                    is_starter=True, squad_leader=True),
        EventRoster(team_id=team.id, player_id=other.id, event_type=EventType.TUG_OF_WAR, is_starter=False),
    ])
    db.session.commit()

    content, error = export_team_roster_csv(org.id, team.id)

    assert error is None
    rows = _read(content)
    assert rows[0]['team'] == 'Acme Corp Team 1'
    assert (rows[0]['first_name'], rows[0]['captain'], rows[0]['gender']) == ('Ada', 'yes', 'female')
    assert rows[0]['Corn Toss'] == 'starter (leader)'
    assert rows[0]['Tug of War'] == ''
    assert (rows[1]['last_name'], rows[1]['captain']) == ('Turing', 'no')
    assert rows[1]['Tug of War'] == 'substitute'
    assert 'Beach Volleyball' in rows[0]


def test_team_roster_csv_is_tenant_scoped(ctx, factory):
    org = factory.org()
    other = factory.org('Globex', 'globex')
    team = factory.team(org, factory.event_year())

    assert export_team_roster_csv(other.id, team.id) == (None, TEAM_NOT_FOUND)


@pytest.fixture
def billing(ctx, factory):
    org = factory.org()
    event_year = factory.event_year()
    order = Order(
        org_id=org.id,
        event_year_id=event_year.id,
        order_number='ORD-1-ABCDEF',
        status=OrderStatus.DEPOSIT_PAID,
        total_amount=Decimal('1500.00'),
        balance_owed=Decimal('1000.00'),
    )
    order.invoices.append(OrderInvoice(
        invoice_number='INV-1-ABCDEF',
        total_amount=Decimal('1500.00'),
        paid_amount=Decimal('500.00'),
        balance_owed=Decimal('1000.00'),
        status=InvoiceStatus.SENT,
        due_date=today() + timedelta(days=30),
    ))
    order.payments.append(OrderPayment(
        type=PaymentType.DEPOSIT_PAYMENT,
        status=PaymentStatus.COMPLETED,
        amount=Decimal('500.00'),
        payment_intent_id='pi_abc',
        payment_method_type='card',
        processed_at=utcnow(),
    ))
    order.payments.append(OrderPayment(
        type=PaymentType.BALANCE_PAYMENT,
        status=PaymentStatus.FAILED,
        amount=Decimal('1000.00'),
        failure_reason='Insufficient funds',
        processed_at=utcnow(),
    ))
    db.session.add(order)
    db.session.commit()
    return order


def test_invoices_csv(billing):
    rows = _read(export_invoices_csv())

    assert len(rows) == 1
    assert rows[0]['invoice_number'] == 'INV-1-ABCDEF'
    assert rows[0]['organization'] == 'Acme Corp'
    assert rows[0]['status'] == 'partial'
    assert rows[0]['paid_amount'] == '500.00'

    assert _read(export_invoices_csv(status='paid')) == []


def test_payments_csv(billing):
    rows = _read(export_payments_csv())
    assert {row['status'] for row in rows} == {'completed', 'failed'}

    failed = _read(export_payments_csv(status='failed'))
    assert len(failed) == 1
    assert failed[0]['failure_reason'] == 'Insufficient funds'
    assert failed[0]['amount'] == '1000.00'


def test_write_export(ctx, tmp_path):
    filename = generate_filename('Acme Corp/2027', 'roster')
    assert filename.startswith('Acme_Corp_2027_roster_')
    assert filename.endswith('.csv')

    path = write_export('a,b\n1,2\n', filename)

    assert path.parent == tmp_path / 'exports'
    assert path.read_text(encoding='utf-8') == 'a,b\n1,2\n'
