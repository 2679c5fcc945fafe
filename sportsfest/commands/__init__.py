"""CLI commands for SportsFest."""

from .event_year import event_year_commands
from .export import export_commands
from .org import org_commands
from .orders import order_commands
from .seed import seed_commands
from .user import user_commands


def register_commands(app):
    """Register all CLI command groups with the Flask app."""
    app.cli.add_command(org_commands)
    app.cli.add_command(user_commands)
    app.cli.add_command(event_year_commands)
    app.cli.add_command(seed_commands)
    app.cli.add_command(order_commands)
    app.cli.add_command(export_commands)
