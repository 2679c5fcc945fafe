"""Team and event roster endpoints for organization members."""

from __future__ import annotations

from flask import Blueprint, Response, g, jsonify, request
from flask_login import current_user

from sportsfest.blueprints.common.tenant import tenant_required
from sportsfest.models import UserRole
from sportsfest.security import roles_required
from sportsfest.services.event_rosters import (
    EventRosterService,
    serialize_event_roster,
    serialize_event_roster_row,
)
from sportsfest.services.exports import export_team_roster_csv
from sportsfest.services.reports import all_rosters_pdf, event_roster_pdf, team_roster_pdf
from sportsfest.services.rosters import (
    TEAM_NOT_FOUND,
    TeamRosterService,
    serialize_roster_entry,
    serialize_transfer_warning,
)

teams_bp = Blueprint('teams', __name__)

MEMBER_ROLES = (UserRole.OWNER, UserRole.ADMIN, UserRole.MEMBER)
MANAGER_ROLES = (UserRole.OWNER, UserRole.ADMIN)


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _error(message: str, status: int = 400):
    if message == TEAM_NOT_FOUND:
        status = 404
    return jsonify({'success': False, 'error': message}), status


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content,
        mimetype='application/pdf',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


def _can_manage() -> bool:
    return current_user.is_super_admin or current_user.has_role(*MANAGER_ROLES)


def _flag(data: dict, key: str, default: bool | None = None) -> bool | None:
    """A JSON boolean from the payload; None when present but not a boolean."""
    value = data.get(key, default)
    return value if isinstance(value, bool) else None


# Team roster ----------------------------------------------------------------

@teams_bp.route('/<team_id>/roster', methods=['GET'])
@tenant_required
@roles_required(*MEMBER_ROLES)
def get_roster(team_id):
    roster = TeamRosterService.get_team_roster(g.org.id, team_id)
    if roster is None:
        return _error(TEAM_NOT_FOUND)
    return jsonify({
        'team': {
            'id': roster['team'].id,
            'name': roster['team'].display_name,
            'team_number': roster['team'].team_number,
            'is_paid': roster['team'].is_paid,
        },
        'players': [serialize_roster_entry(entry) for entry in roster['entries']],
        'member_count': roster['member_count'],
        'male_count': roster['male_count'],
        'female_count': roster['female_count'],
    })


@teams_bp.route('/<team_id>/roster', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def add_to_roster(team_id):
    player_id = _payload().get('player_id')
    if not player_id:
        return _error('player_id is required')

    entry, error = TeamRosterService.add_player(g.org.id, team_id, player_id)
    if error:
        return _error(error)
    return jsonify({'success': True, 'player': serialize_roster_entry(entry)}), 201


@teams_bp.route('/<team_id>/roster/<player_id>', methods=['DELETE'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def remove_from_roster(team_id, player_id):
    removed, error = TeamRosterService.remove_player(g.org.id, team_id, player_id)
    if error:
        return _error(error)
    return jsonify({'success': True, 'event_rosters_removed': removed})


@teams_bp.route('/<team_id>/roster/<player_id>/captain', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def toggle_captain(team_id, player_id):
    data = _payload()
    if data.get('is_captain') is not None and _flag(data, 'is_captain') is None:
        return _error('is_captain must be true or false')

    is_captain, error = TeamRosterService.toggle_captain(
        g.org.id, team_id, player_id, data.get('is_captain')
    )
    if error:
        return _error(error)
    return jsonify({'success': True, 'is_captain': is_captain})


@teams_bp.route('/roster/transfer', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def transfer_player():
    data = _payload()
    if not data.get('player_id') or not data.get('to_team_id'):
        return _error('player_id and to_team_id are required')

    removed, error = TeamRosterService.transfer_player(g.org.id, data['player_id'], data['to_team_id'])
    if error:
        return _error(error)
    return jsonify({'success': True, 'team_id': data['to_team_id'], 'event_rosters_removed': removed})


@teams_bp.route('/roster/auto-generate', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def auto_generate_rosters():
    result, error = TeamRosterService.auto_generate_team_rosters(g.org.id)
    if error:
        return _error(error)
    return jsonify({'success': True, **result})


@teams_bp.route('/transfer-warnings', methods=['GET', 'POST'])
@tenant_required
@roles_required(*MEMBER_ROLES)
def transfer_warnings():
    """GET lists stale event roster spots; POST clears them."""
    player_id = request.args.get('player_id') or _payload().get('player_id')
    if request.method == 'POST':
        if not _can_manage():
            return _error('Only team managers can resolve transfer warnings', 403)
        resolved, error = TeamRosterService.resolve_transfer_warnings(g.org.id, player_id)
        if error:
            return _error(error)
        return jsonify({'success': True, 'resolved': resolved})

    warnings = TeamRosterService.get_transfer_warnings(g.org.id, player_id)
    return jsonify({'items': [serialize_transfer_warning(entry) for entry in warnings]})


@teams_bp.route('/<team_id>/export.csv', methods=['GET'])
@tenant_required
@roles_required(*MEMBER_ROLES)
def export_roster(team_id):
    content, error = export_team_roster_csv(g.org.id, team_id)
    if error:
        return _error(error)
    return Response(
        content,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename=team_{team_id}_roster.csv'},
    )


@teams_bp.route('/<team_id>/roster.pdf', methods=['GET'])
@tenant_required
@roles_required(*MEMBER_ROLES)
def roster_pdf(team_id):
    content, error = team_roster_pdf(g.org.id, team_id)
    if error:
        return _error(error)
    return _pdf_response(content, f'team_{team_id}_roster.pdf')


@teams_bp.route('/rosters.pdf', methods=['GET'])
@tenant_required
@roles_required(*MEMBER_ROLES)
def all_rosters_report():
    content, error = all_rosters_pdf(g.org.id, request.args.get('event_year_id'))
    if error:
        return _error(error)
    return _pdf_response(content, f'{g.org.slug}_rosters.pdf')


# Event rosters --------------------------------------------------------------

@teams_bp.route('/<team_id>/events/<event_type>', methods=['GET'])
@tenant_required
@roles_required(*MEMBER_ROLES)
def get_event_roster(team_id, event_type):
    roster, error = EventRosterService.get_event_roster(g.org.id, team_id, event_type)
    if error:
        return _error(error)
    return jsonify(serialize_event_roster(roster))


@teams_bp.route('/<team_id>/events/<event_type>/players', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def add_event_player(team_id, event_type):
    data = _payload()
    if not data.get('player_id'):
        return _error('player_id is required')

    is_starter = _flag(data, 'is_starter', True)
    if is_starter is None:
        return _error('is_starter must be true or false')

    entry, error = EventRosterService.add_player_to_event(
        g.org.id, team_id, data['player_id'], event_type, is_starter
    )
    if error:
        return _error(error)
    return jsonify({'success': True, 'player': serialize_event_roster_row(entry)}), 201


@teams_bp.route('/<team_id>/events/<event_type>/players/<player_id>', methods=['DELETE'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def remove_event_player(team_id, event_type, player_id):
    _, error = EventRosterService.remove_player_from_event(g.org.id, team_id, player_id, event_type)
    if error:
        return _error(error)
    return jsonify({'success': True})


@teams_bp.route('/<team_id>/events/<event_type>/players/<player_id>/starter', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def toggle_starter(team_id, event_type, player_id):
    is_starter, error = EventRosterService.toggle_starter(g.org.id, team_id, player_id, event_type)
    if error:
        return _error(error)
    return jsonify({'success': True, 'is_starter': is_starter})


@teams_bp.route('/<team_id>/events/<event_type>/players/<player_id>/move', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def move_player(team_id, event_type, player_id):
    data = _payload()
    if 'to_starter' not in data:
        return _error('to_starter is required')
    to_starter = _flag(data, 'to_starter')
    if to_starter is None:
        return _error('to_starter must be true or false')

    entry, error = EventRosterService.move_player(
        g.org.id, team_id, player_id, event_type, to_starter
    )
    if error:
        return _error(error)
    return jsonify({'success': True, 'player': serialize_event_roster_row(entry)})


@teams_bp.route('/<team_id>/events/<event_type>/players/<player_id>/squad-leader', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def toggle_squad_leader(team_id, event_type, player_id):
    data = _payload()
    if data.get('squad_leader') is not None and _flag(data, 'squad_leader') is None:
        return _error('squad_leader must be true or false')

    is_leader, error = EventRosterService.toggle_squad_leader(
        g.org.id, team_id, player_id, event_type, data.get('squad_leader')
    )
    if error:
        return _error(error)
    return jsonify({'success': True, 'squad_leader': is_leader})


@teams_bp.route('/<team_id>/events/<event_type>/swap', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def swap_players(team_id, event_type):
    data = _payload()
    if not data.get('player_id') or not data.get('other_player_id'):
        return _error('player_id and other_player_id are required')

    _, error = EventRosterService.swap_players(
        g.org.id, team_id, event_type, data['player_id'], data['other_player_id']
    )
    if error:
        return _error(error)
    return jsonify({'success': True})


@teams_bp.route('/<team_id>/events/<event_type>/auto-generate', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def auto_generate_event_roster(team_id, event_type):
    result, error = EventRosterService.auto_generate_event_roster(g.org.id, team_id, event_type)
    if error:
        return _error(error)
    return jsonify({'success': True, **result})


@teams_bp.route('/<team_id>/events/<event_type>', methods=['DELETE'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def clear_event_roster(team_id, event_type):
    removed, error = EventRosterService.clear_event_roster(g.org.id, team_id, event_type)
    if error:
        return _error(error)
    return jsonify({'success': True, 'removed': removed})


@teams_bp.route('/<team_id>/events/<event_type>/roster.pdf', methods=['GET'])
@tenant_required
@roles_required(*MEMBER_ROLES)
def event_roster_report(team_id, event_type):
    content, error = event_roster_pdf(g.org.id, team_id, event_type)
    if error:
        return _error(error)
    return _pdf_response(content, f'team_{team_id}_{event_type}_roster.pdf')
