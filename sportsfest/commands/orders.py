"""Order maintenance and scheduled report CLI commands."""

import click
from flask.cli import with_appcontext

from sportsfest.services.analytics import get_daily_digest_stats
from sportsfest.services.email import send_daily_digest_email
from sportsfest.services.orders import OrderService


@click.group('orders')
def order_commands():
    """Order maintenance commands."""
    pass


@order_commands.command('cleanup')
@click.option('--hours', default=24, show_default=True, help='Only pending orders older than this many hours')
@click.option('--execute', is_flag=True, help='Delete the orders (default is a dry run)')
@click.option('--event-year', 'event_year_id', help='Event year ID (default: active year)')
@with_appcontext
def cleanup_orders(hours, execute, event_year_id):
    """Remove abandoned pending orders that never received a payment."""
    result, error = OrderService.cleanup_abandoned_orders(
        older_than_hours=hours,
        execute=execute,
        event_year_id=event_year_id,
    )
    if error:
        click.echo(click.style(f'Error: {error}', fg='red'))
        return

    for order_number in result['orders']:
        click.echo(f"  • {order_number}")

    if result['dry_run']:
        click.echo(click.style(
            f"Dry run: {result['found']} abandoned order(s) older than {hours}h. Use --execute to delete.",
            fg='yellow',
        ))
    else:
        click.echo(click.style(f"✓ Deleted {result['deleted']} of {result['found']} abandoned order(s)", fg='green'))


@order_commands.command('digest')
@click.option('--dry-run', is_flag=True, help='Print the stats without sending email')
@with_appcontext
def send_digest(dry_run):
    """Send the admin daily digest for yesterday."""
    stats = get_daily_digest_stats()
    click.echo(f"Digest for {stats['date']}:")
    click.echo(f"  New sign-ups: {stats['new_sign_ups']['count']}")
    click.echo(f"  New organizations: {stats['new_organizations']['count']}")
    click.echo(f"  Orders: {stats['orders']['total_count']}")
    click.echo(f"  Revenue: ${stats['total_revenue']:.2f}")

    if dry_run:
        return

    sent = send_daily_digest_email(stats)
    if sent:
        click.echo(click.style(f'✓ Digest sent to {sent} recipient(s)', fg='green'))
    else:
        click.echo(click.style('No digest sent (no recipients configured or delivery failed)', fg='yellow'))
