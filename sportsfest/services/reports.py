"""PDF reports for rosters, invoices and payments.

Each report renders a Jinja2 template from ``templates/reports`` and converts
the HTML with xhtml2pdf.
"""
from __future__ import annotations

import io
from decimal import Decimal
from typing import Any

from flask import current_app, render_template
from xhtml2pdf import pisa

from sportsfest.models import CompanyTeam, EventType, OrderInvoice, PaymentStatus
from sportsfest.services.event_config import get_event_display_name
from sportsfest.services.event_rosters import EventRosterService
from sportsfest.services.event_years import EventYearService
from sportsfest.services.invoices import effective_status, get_invoice_details, list_invoices
from sportsfest.services.orders import list_payments
from sportsfest.services.rosters import TEAM_NOT_FOUND, TeamRosterService
from sportsfest.services.timeutils import ensure_utc, utcnow

INVOICE_NOT_FOUND = "Invoice not found"
RENDER_FAILED = "Failed to generate PDF report"


class ReportError(Exception):
    """Raised when xhtml2pdf cannot convert a report."""
    pass


def format_money(value: Decimal | float | int | None) -> str:
    return f"${Decimal(value or 0):,.2f}"


def format_date(value: Any) -> str:
    if value is None:
        return ''
    return value.strftime('%b %d, %Y')


def render_pdf(html: str) -> bytes:
    output = io.BytesIO()
    result = pisa.CreatePDF(src=html, dest=output, encoding='utf-8')
    if result.err:
        raise ReportError(f"xhtml2pdf reported {result.err} error(s)")
    return output.getvalue()


def _render(template_name: str, **context) -> str:
    return render_template(
        f'reports/{template_name}',
        app_name=current_app.config.get('FROM_NAME', 'SportsFest'),
        generated_at=utcnow(),
        money=format_money,
        date=format_date,
        **context,
    )


def _to_pdf(html: str | None, error: str | None, report: str) -> tuple[bytes | None, str | None]:
    if error:
        return None, error
    try:
        return render_pdf(html), None
    except Exception as e:
        current_app.logger.error(f"Failed to render {report} PDF: {e}")
        return None, RENDER_FAILED


def _team_members(roster: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {
            'name': f"{entry.player.first_name} {entry.player.last_name}",
            'phone': entry.player.phone or '',
            'email': entry.player.email or '',
            'gender': entry.player.gender.value.title(),
            'role': 'Captain' if entry.is_captain else 'Player',
        }
        for entry in roster['entries']
    ]


# Rosters --------------------------------------------------------------------

def render_team_roster_html(org_id: str, team_id: str) -> tuple[str | None, str | None]:
    roster = TeamRosterService.get_team_roster(org_id, team_id)
    if roster is None:
        return None, TEAM_NOT_FOUND

    team: CompanyTeam = roster['team']
    return _render(
        'team_roster.html',
        title=team.event_year.name,
        subtitle='Team Roster Report',
        organization_name=team.organization.name,
        team_name=team.display_name,
        members=_team_members(roster),
        member_count=roster['member_count'],
        male_count=roster['male_count'],
        female_count=roster['female_count'],
    ), None


def team_roster_pdf(org_id: str, team_id: str) -> tuple[bytes | None, str | None]:
    html, error = render_team_roster_html(org_id, team_id)
    return _to_pdf(html, error, 'team roster')


def render_event_roster_html(org_id: str, team_id: str, event_value: EventType | str) -> tuple[str | None, str | None]:
    roster, error = EventRosterService.get_event_roster(org_id, team_id, event_value)
    if error:
        return None, error

    team: CompanyTeam = roster['team']
    players = [
        {
            'name': f"{row.player.first_name} {row.player.last_name}",
            'phone': row.player.phone or '',
            'gender': row.player.gender.value.title(),
            'position': 'Starter' if row.is_starter else 'Substitute',
            'squad_leader': row.squad_leader,
        }
        for row in roster['rows']
    ]
    return _render(
        'event_roster.html',
        title=team.event_year.name,
        subtitle='Event Roster Report',
        organization_name=team.organization.name,
        team_name=team.display_name,
        event_name=roster['display_name'],
        requirements=roster['requirements'],
        starters=roster['starters'],
        substitutes=roster['substitutes'],
        players=players,
        counts=roster['counts'],
    ), None


def event_roster_pdf(org_id: str, team_id: str, event_value: EventType | str) -> tuple[bytes | None, str | None]:
    html, error = render_event_roster_html(org_id, team_id, event_value)
    return _to_pdf(html, error, 'event roster')


def render_all_rosters_html(org_id: str, event_year_id: str | None = None) -> tuple[str | None, str | None]:
    """Every team of the organization with its members and event assignments."""
    if event_year_id is None:
        event_year = EventYearService.get_active()
        if event_year is None:
            return None, "No active event year"
        event_year_id = event_year.id

    teams = (
        CompanyTeam.query
        .filter_by(org_id=org_id, event_year_id=event_year_id)
        .order_by(CompanyTeam.team_number)
        .all()
    )
    if not teams:
        return None, "No teams found for this organization"

    sections = []
    for team in teams:
        roster = TeamRosterService.get_team_roster(org_id, team.id)
        assignments: dict[str, list[str]] = {}
        for row in team.event_rosters:
            label = get_event_display_name(row.event_type)
            assignments.setdefault(row.player_id, []).append(label if row.is_starter else f"{label} (sub)")
        members = _team_members(roster)
        for member, entry in zip(members, roster['entries']):
            member['events'] = ', '.join(sorted(assignments.get(entry.player_id, [])))
        sections.append({
            'team_name': team.display_name,
            'members': members,
            'male_count': roster['male_count'],
            'female_count': roster['female_count'],
        })

    return _render(
        'all_rosters.html',
        title=teams[0].event_year.name,
        subtitle='All Team Rosters',
        organization_name=teams[0].organization.name,
        sections=sections,
    ), None


def all_rosters_pdf(org_id: str, event_year_id: str | None = None) -> tuple[bytes | None, str | None]:
    html, error = render_all_rosters_html(org_id, event_year_id)
    return _to_pdf(html, error, 'all rosters')


# Invoices and payments ------------------------------------------------------

def _invoice_context(invoice: OrderInvoice) -> dict[str, Any]:
    order = invoice.order
    items = [
        {
            'description': item.product.name if item.product else 'Unknown Product',
            'quantity': item.quantity,
            'unit_price': item.unit_price,
            'total': item.total_price,
        }
        for item in order.items
    ]
    payments = sorted(order.payments, key=lambda p: ensure_utc(p.processed_at or p.created_at))
    return {
        'invoice': invoice,
        'order': order,
        'status': effective_status(invoice).value.replace('_', ' ').title(),
        'items': items,
        'subtotal': invoice.total_amount + (order.discount_amount or Decimal('0.00')),
        'discount': order.discount_amount or Decimal('0.00'),
        'coupon_code': order.coupon_code,
        'payments': [
            {
                'date': payment.processed_at or payment.created_at,
                'method': payment.payment_method_type or payment.type.value.replace('_', ' '),
                'status': payment.status.value.title(),
                'amount': payment.amount,
            }
            for payment in payments
        ],
    }


def render_invoice_html(invoice_id: str, org_id: str | None = None) -> tuple[str | None, str | None]:
    """One invoice; ``org_id`` limits the lookup to that organization's orders."""
    invoice = get_invoice_details(invoice_id)
    if invoice is None or invoice.order is None:
        return None, INVOICE_NOT_FOUND
    if org_id is not None and invoice.order.org_id != org_id:
        return None, INVOICE_NOT_FOUND

    order = invoice.order
    return _render(
        'invoice.html',
        title=order.event_year.name if order.event_year else 'SportsFest',
        subtitle=f"Invoice {invoice.invoice_number}",
        organization_name=order.organization.name if order.organization else 'Unknown Organization',
        **_invoice_context(invoice),
    ), None


def invoice_pdf(invoice_id: str, org_id: str | None = None) -> tuple[bytes | None, str | None]:
    html, error = render_invoice_html(invoice_id, org_id)
    return _to_pdf(html, error, 'invoice')


def render_invoice_list_html(event_year_id: str | None = None, status: str | None = None) -> str:
    invoices = list_invoices(event_year_id, status)
    rows = [
        {
            'invoice_number': invoice.invoice_number,
            'organization': invoice.order.organization.name if invoice.order.organization else '',
            'status': effective_status(invoice).value.title(),
            'total_amount': invoice.total_amount,
            'paid_amount': invoice.paid_amount,
            'balance_owed': invoice.balance_owed,
            'due_date': invoice.due_date,
        }
        for invoice in invoices
    ]
    return _render(
        'invoice_list.html',
        title='Invoices',
        subtitle=f"Status: {status.title()}" if status else 'All invoices',
        organization_name=None,
        rows=rows,
        totals={
            'total_amount': sum((row['total_amount'] for row in rows), Decimal('0.00')),
            'paid_amount': sum((row['paid_amount'] for row in rows), Decimal('0.00')),
            'balance_owed': sum((row['balance_owed'] for row in rows), Decimal('0.00')),
        },
    )


def invoice_list_pdf(event_year_id: str | None = None, status: str | None = None) -> tuple[bytes | None, str | None]:
    return _to_pdf(render_invoice_list_html(event_year_id, status), None, 'invoice list')


def render_payments_html(event_year_id: str | None = None, status: str | None = None) -> str:
    payments = list_payments(event_year_id, status)
    rows = [
        {
            'date': payment.processed_at or payment.created_at,
            'order_number': payment.order.order_number,
            'organization': payment.order.organization.name if payment.order.organization else '',
            'type': payment.type.value.replace('_', ' ').title(),
            'status': payment.status.value.title(),
            'amount': payment.amount,
        }
        for payment in payments
    ]
    collected = sum(
        (payment.amount for payment in payments if payment.status == PaymentStatus.COMPLETED),
        Decimal('0.00'),
    )
    return _render(
        'payments.html',
        title='Payments',
        subtitle=f"Status: {status.title()}" if status else 'All payments',
        organization_name=None,
        rows=rows,
        collected=collected,
    )


def payments_pdf(event_year_id: str | None = None, status: str | None = None) -> tuple[bytes | None, str | None]:
    return _to_pdf(render_payments_html(event_year_id, status), None, 'payments')


__all__ = [
    'ReportError',
    'render_pdf',
    'render_team_roster_html',
    'team_roster_pdf',
    'render_event_roster_html',
    'event_roster_pdf',
    'render_all_rosters_html',
    'all_rosters_pdf',
    'render_invoice_html',
    'invoice_pdf',
    'render_invoice_list_html',
    'invoice_list_pdf',
    'render_payments_html',
    'payments_pdf',
]
