"""Super admin endpoints."""

from decimal import Decimal

import pytest

from conftest import Factory, login
from sportsfest.extensions import db
from sportsfest.models import (
    Coupon,
    EventYear,
    InvoiceStatus,
    Order,
    OrderInvoice,
    OrderStatus,
    User,
    UserRole,
)


@pytest.fixture
def platform(app):
    factory = Factory()
    with app.app_context():
        org = factory.org()
        factory.event_year()
        return {
            'org_id': org.id,
            'root_id': factory.super_admin().id,
            'owner_id': factory.user(org, role=UserRole.OWNER).id,
        }


@pytest.fixture
def admin_client(client, platform):
    login(client, platform['root_id'])
    return client


def test_requires_super_admin(client, platform):
    assert client.get('/admin/coupons').status_code == 401

    login(client, platform['owner_id'])
    assert client.get('/admin/coupons').status_code == 403


def test_coupon_crud(admin_client, app):
    resp = admin_client.post('/admin/coupons', json={
        'code': 'early-bird',
        'discount_type': 'fixed_amount',
        'discount_value': '100',
        'max_uses': 10,
    })
    assert resp.status_code == 201
    coupon = resp.get_json()['coupon']
    assert coupon['code'] == 'EARLY-BIRD'
    assert coupon['discount_value'] == 100.0

    resp = admin_client.post('/admin/coupons', json={'code': 'EARLY-BIRD', 'discount_type': 'fixed_amount',
                                                     'discount_value': '5'})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Coupon code already exists'

    resp = admin_client.patch(f"/admin/coupons/{coupon['id']}", json={'description': 'Spring promo'})
    assert resp.get_json()['coupon']['description'] == 'Spring promo'

    resp = admin_client.post(f"/admin/coupons/{coupon['id']}/toggle")
    assert resp.get_json() == {'success': True, 'is_active': False}

    assert [c['code'] for c in admin_client.get('/admin/coupons').get_json()['items']] == ['EARLY-BIRD']

    assert admin_client.delete(f"/admin/coupons/{coupon['id']}").get_json() == {'success': True}
    assert admin_client.delete(f"/admin/coupons/{coupon['id']}").status_code == 404

    with app.app_context():
        assert Coupon.query.count() == 0


def test_sponsorship_endpoints(admin_client, app, platform):
    resp = admin_client.post('/admin/sponsorships', json={
        'org_id': platform['org_id'],
        'base_amount': '1000',
        'description': 'Gold sponsor',
    })
    assert resp.status_code == 201
    sponsorship = resp.get_json()['sponsorship']
    assert sponsorship['total_amount'] == 1029.3
    assert sponsorship['invoice_status'] == 'sent'

    resp = admin_client.post('/admin/sponsorships', json={'base_amount': '1000'})
    assert resp.get_json()['error'] == 'Organization is required'

    resp = admin_client.put(f"/admin/sponsorships/{sponsorship['order_id']}",
                            json={'base_amount': '100', 'description': 'Silver sponsor'})
    assert resp.get_json()['sponsorship']['total_amount'] == 103.2

    resp = admin_client.post(f"/admin/sponsorships/{sponsorship['order_id']}/resend")
    assert resp.get_json() == {'success': True, 'sent': 1}

    assert len(admin_client.get('/admin/sponsorships').get_json()['items']) == 1

    resp = admin_client.delete(f"/admin/sponsorships/{sponsorship['order_id']}", json={})
    assert resp.get_json() == {'success': True, 'action': 'deleted'}
    assert admin_client.delete(f"/admin/sponsorships/{sponsorship['order_id']}").status_code == 404


def test_invoice_endpoints(admin_client, app, platform):
    with app.app_context():
        event_year = EventYear.query.filter_by(is_active=True).one()
        order = Order(
            org_id=platform['org_id'],
            event_year_id=event_year.id,
            order_number='ORD-9-ABCDEF',
            status=OrderStatus.PENDING,
            total_amount=Decimal('400.00'),
            balance_owed=Decimal('400.00'),
        )
        order.invoices.append(OrderInvoice(
            invoice_number='INV-9-ABCDEF',
            total_amount=Decimal('400.00'),
            paid_amount=Decimal('0.00'),
            balance_owed=Decimal('400.00'),
            status=InvoiceStatus.SENT,
        ))
        db.session.add(order)
        db.session.commit()
        invoice_id = order.invoices[0].id

    items = admin_client.get('/admin/invoices').get_json()['items']
    assert [i['invoice_number'] for i in items] == ['INV-9-ABCDEF']
    assert admin_client.get('/admin/invoices?status=bogus').status_code == 400

    detail = admin_client.get(f'/admin/invoices/{invoice_id}').get_json()
    assert detail['organization_name'] == 'Acme Corp'
    assert admin_client.get('/admin/invoices/missing').status_code == 404

    resp = admin_client.post(f'/admin/invoices/{invoice_id}/payments', json={'amount': '150'})
    invoice = resp.get_json()['invoice']
    assert (invoice['paid_amount'], invoice['status']) == (150.0, 'partial')

    resp = admin_client.post(f'/admin/invoices/{invoice_id}/payments', json={})
    assert resp.get_json()['error'] == 'amount is required'

    resp = admin_client.get('/admin/exports/invoices.csv')
    assert resp.mimetype == 'text/csv'
    assert 'INV-9-ABCDEF' in resp.get_data(as_text=True)

    assert admin_client.get('/admin/payments').get_json() == {'items': []}
    assert admin_client.get('/admin/exports/payments.csv').get_data(as_text=True).startswith('order_number,')

    resp = admin_client.get(f'/admin/invoices/{invoice_id}/invoice.pdf')
    assert resp.mimetype == 'application/pdf'
    assert resp.data.startswith(b'%PDF')
    assert admin_client.get('/admin/invoices/missing/invoice.pdf').status_code == 404

    for report in ('invoices', 'payments'):
        resp = admin_client.get(f'/admin/exports/{report}.pdf')
        assert resp.status_code == 200
        assert resp.data.startswith(b'%PDF')
    assert admin_client.get('/admin/exports/invoices.pdf?status=bogus').status_code == 400


def test_event_year_endpoints(admin_client, app):
    resp = admin_client.post('/admin/event-years', json={
        'year': 2028,
        'event_start_date': '2028-08-12',
        'event_end_date': '2028-08-13',
        'registration_close_date': '2028-07-31',
        'is_active': True,
    })
    assert resp.status_code == 201
    created = resp.get_json()['event_year']
    assert created['name'] == 'SportsFest 2028'
    assert created['is_active'] is True

    resp = admin_client.post('/admin/event-years', json={
        'year': 2028, 'event_start_date': '2028-08-12', 'event_end_date': '2028-08-13',
    })
    assert resp.get_json()['error'] == 'An event year for 2028 already exists'

    resp = admin_client.post('/admin/event-years', json={'year': 2040, 'event_start_date': '2040-08-12',
                                                         'event_end_date': '2040-08-13'})
    assert resp.status_code == 400
    assert resp.get_json()['error'].startswith('Year:')

    resp = admin_client.patch(f"/admin/event-years/{created['id']}", json={'event_end_date': 'soon'})
    assert resp.get_json()['error'] == 'Invalid date for event end date'

    resp = admin_client.patch(f"/admin/event-years/{created['id']}", json={'location': 'Clearwater'})
    assert resp.get_json()['event_year']['location'] == 'Clearwater'

    years = admin_client.get('/admin/event-years').get_json()['items']
    assert [y['year'] for y in years] == [2028, 2027]
    previous = years[1]['id']

    resp = admin_client.post(f'/admin/event-years/{previous}/activate')
    assert resp.get_json()['event_year']['is_active'] is True

    assert admin_client.delete(f"/admin/event-years/{created['id']}").get_json() == {'success': True}
    assert admin_client.delete(f"/admin/event-years/{created['id']}").status_code == 404


def test_revenue_endpoints(admin_client):
    trends = admin_client.get('/admin/revenue/trends?period=weekly').get_json()
    assert trends['period'] == 'weekly'
    assert trends['event_year']['year'] == 2027

    assert admin_client.get('/admin/revenue/trends?period=hourly').status_code == 400

    stats = admin_client.get('/admin/revenue/stats').get_json()
    assert stats['total_revenue'] == 0.0
    assert stats['current_year'] == 2027


def test_super_admin_endpoints(admin_client, app, platform):
    resp = admin_client.post('/admin/super-admins', json={
        'name': 'Dana Ops',
        'email': 'dana@sportsfest.io',
        'send_invite': True,
    })
    assert resp.status_code == 201
    user = resp.get_json()['user']
    assert user['pending_setup'] is True

    resp = admin_client.post('/admin/super-admins', json={'name': 'Dana', 'email': 'nope'})
    assert resp.status_code == 400

    emails = {u['email'] for u in admin_client.get('/admin/super-admins').get_json()['items']}
    assert emails == {'root@sportsfest.test', 'dana@sportsfest.io'}

    resp = admin_client.post(f"/admin/super-admins/{user['id']}/resend")
    assert resp.get_json() == {'success': True, 'email': 'dana@sportsfest.io'}

    resp = admin_client.post(f"/admin/super-admins/{platform['root_id']}/revoke", json={})
    assert resp.get_json()['error'] == 'Cannot revoke your own super admin access'

    resp = admin_client.post(f"/admin/super-admins/{user['id']}/revoke", json={'reason': 'Rotation'})
    assert resp.get_json() == {'success': True}

    with app.app_context():
        assert db.session.get(User, user['id']).is_super_admin is False


def test_cleanup_endpoint(admin_client):
    resp = admin_client.post('/admin/orders/cleanup', json={'older_than_hours': 12})
    assert resp.get_json() == {
        'success': True,
        'found': 0,
        'deleted': 0,
        'dry_run': True,
        'older_than_hours': 12,
        'orders': [],
    }

    resp = admin_client.post('/admin/orders/cleanup', json={'older_than_hours': 'soon'})
    assert resp.get_json()['error'] == 'older_than_hours must be a number'
