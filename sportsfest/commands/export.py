"""CSV and PDF export CLI commands."""

import click
from flask.cli import with_appcontext

from sportsfest.extensions import db
from sportsfest.models import CompanyTeam, InvoiceStatus
from sportsfest.services.exports import (
    export_invoices_csv,
    export_payments_csv,
    export_team_roster_csv,
    generate_filename,
    write_export,
)
from sportsfest.services.reports import invoice_list_pdf, payments_pdf, team_roster_pdf

FORMATS = click.Choice(['csv', 'pdf'])


@click.group('export')
def export_commands():
    """CSV and PDF export commands."""
    pass


@export_commands.command('roster')
@click.option('--team', 'team_id', required=True, help='Team ID to export')
@click.option('--format', 'fmt', type=FORMATS, default='csv', show_default=True, help='Output format')
@click.option('--output-dir', help='Custom output directory (default: EXPORT_DIR)')
@with_appcontext
def export_roster(team_id, fmt, output_dir):
    """Export a team roster with each player's event assignments.

    Example:
        flask export roster --team <id> --format pdf
    """
    team = db.session.get(CompanyTeam, team_id)
    if team is None:
        click.echo(click.style(f'Error: Team with ID "{team_id}" not found', fg='red'))
        return

    if fmt == 'pdf':
        content, error = team_roster_pdf(team.org_id, team.id)
    else:
        content, error = export_team_roster_csv(team.org_id, team.id)
    if error:
        click.echo(click.style(f'Error: {error}', fg='red'))
        return

    filename = generate_filename(team.organization.slug, f'team{team.team_number}_roster', fmt)
    path = write_export(content, filename, output_dir)
    click.echo(click.style('✓ Export completed successfully!', fg='green'))
    click.echo(f'  • {path}')


@export_commands.command('invoices')
@click.option('--event-year', 'event_year_id', help='Event year ID (default: active year)')
@click.option('--status', type=click.Choice([s.value for s in InvoiceStatus]), help='Only invoices in this status')
@click.option('--with-payments', is_flag=True, help='Also export the payment ledger')
@click.option('--format', 'fmt', type=FORMATS, default='csv', show_default=True, help='Output format')
@click.option('--output-dir', help='Custom output directory (default: EXPORT_DIR)')
@with_appcontext
def export_invoices(event_year_id, status, with_payments, fmt, output_dir):
    """Export invoices (and optionally payments) to CSV or PDF."""
    if fmt == 'pdf':
        reports = [('invoices', invoice_list_pdf(event_year_id, status))]
        if with_payments:
            reports.append(('payments', payments_pdf(event_year_id)))
    else:
        reports = [('invoices', (export_invoices_csv(event_year_id, status), None))]
        if with_payments:
            reports.append(('payments', (export_payments_csv(event_year_id), None)))

    exported_files = []
    for data_type, (content, error) in reports:
        if error:
            click.echo(click.style(f'Error: {error}', fg='red'))
            return
        exported_files.append(write_export(content, generate_filename('sportsfest', data_type, fmt), output_dir))

    click.echo(click.style('✓ Export completed successfully!', fg='green'))
    click.echo('\nGenerated files:')
    for file_path in exported_files:
        click.echo(f'  • {file_path}')
