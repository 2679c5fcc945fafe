"""CSV reports for rosters, invoices and payments."""
from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from flask import current_app

from sportsfest.models import CompanyTeam, EventRoster, EventType
from sportsfest.services.event_config import get_event_display_name
from sportsfest.services.invoices import effective_status, list_invoices
from sportsfest.services.orders import list_payments
from sportsfest.services.rosters import TEAM_NOT_FOUND, TeamRosterService

ROSTER_FIELDS = ['team', 'first_name', 'last_name', 'email', 'gender', 'status', 'captain']
INVOICE_FIELDS = [
    'invoice_number', 'order_number', 'organization', 'status', 'total_amount',
    'paid_amount', 'balance_owed', 'due_date', 'sent_at', 'created_at',
]
PAYMENT_FIELDS = [
    'order_number', 'organization', 'type', 'status', 'amount',
    'payment_method_type', 'payment_intent_id', 'failure_reason', 'processed_at',
]


def _cell(value: Any) -> Any:
    if value is None:
        return ''
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, bool):
        return 'yes' if value else 'no'
    return value


def rows_to_csv(fieldnames: list[str], rows: Iterable[dict[str, Any]]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=fieldnames)
    writer.writeheader()
    for row in rows:
        writer.writerow({key: _cell(row.get(key)) for key in fieldnames})
    return output.getvalue()


def export_team_roster_csv(org_id: str, team_id: str) -> tuple[str | None, str | None]:
    """Team roster with one yes/starter/sub column per event."""
    roster = TeamRosterService.get_team_roster(org_id, team_id)
    if roster is None:
        return None, TEAM_NOT_FOUND

    team: CompanyTeam = roster['team']
    assignments: dict[str, dict[EventType, EventRoster]] = {}
    for row in EventRoster.query.filter_by(team_id=team.id).all():
        assignments.setdefault(row.player_id, {})[row.event_type] = row

    event_columns = [(event, get_event_display_name(event)) for event in EventType]
    fieldnames = ROSTER_FIELDS + [label for _, label in event_columns]

    rows = []
    for entry in roster['entries']:
        player = entry.player
        row = {
            'team': team.display_name,
            'first_name': player.first_name,
            'last_name': player.last_name,
            'email': player.email,
            'gender': player.gender,
            'status': player.status,
            'captain': entry.is_captain,
        }
        for event, label in event_columns:
            slot = assignments.get(player.id, {}).get(event)
            if slot is None:
                row[label] = ''
            else:
                role = 'starter' if slot.is_starter else 'substitute'
                row[label] = f"{role} (leader)" if slot.squad_leader else role
        rows.append(row)

    return rows_to_csv(fieldnames, rows), None


def export_invoices_csv(event_year_id: str | None = None, status: str | None = None) -> str:
    rows = []
    for invoice in list_invoices(event_year_id, status):
        order = invoice.order
        rows.append({
            'invoice_number': invoice.invoice_number,
            'order_number': order.order_number if order else None,
            'organization': order.organization.name if order and order.organization else None,
            'status': effective_status(invoice),
            'total_amount': invoice.total_amount,
            'paid_amount': invoice.paid_amount,
            'balance_owed': invoice.balance_owed,
            'due_date': invoice.due_date,
            'sent_at': invoice.sent_at,
            'created_at': invoice.created_at,
        })
    return rows_to_csv(INVOICE_FIELDS, rows)


def export_payments_csv(event_year_id: str | None = None, status: str | None = None) -> str:
    rows = []
    for payment in list_payments(event_year_id, status):
        order = payment.order
        rows.append({
            'order_number': order.order_number if order else None,
            'organization': order.organization.name if order and order.organization else None,
            'type': payment.type,
            'status': payment.status,
            'amount': payment.amount,
            'payment_method_type': payment.payment_method_type,
            'payment_intent_id': payment.payment_intent_id,
            'failure_reason': payment.failure_reason,
            'processed_at': payment.processed_at,
        })
    return rows_to_csv(PAYMENT_FIELDS, rows)


def ensure_export_dir(output_dir: str | None = None) -> Path:
    """Ensure the export directory exists."""
    export_dir = Path(output_dir or current_app.config.get('EXPORT_DIR', '/tmp/exports'))
    export_dir.mkdir(parents=True, exist_ok=True)
    return export_dir


def generate_filename(prefix: str, data_type: str, extension: str = 'csv') -> str:
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    safe_prefix = prefix.replace(' ', '_').replace('/', '_')
    return f"{safe_prefix}_{data_type}_{timestamp}.{extension}"


def write_export(content: str | bytes, filename: str, output_dir: str | None = None) -> Path:
    path = ensure_export_dir(output_dir) / filename
    if isinstance(content, bytes):
        path.write_bytes(content)
        return path
    with open(path, 'w', newline='', encoding='utf-8') as handle:
        handle.write(content)
    return path


__all__ = [
    'rows_to_csv',
    'export_team_roster_csv',
    'export_invoices_csv',
    'export_payments_csv',
    'ensure_export_dir',
    'generate_filename',
    'write_export',
]
