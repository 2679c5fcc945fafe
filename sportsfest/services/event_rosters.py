"""Per-event roster management for company teams."""
from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy.exc import IntegrityError

from sportsfest.extensions import db
from sportsfest.models import (
    EventRoster,
    EventType,
    Player,
    PlayerEventInterest,
    PlayerStatus,
    TeamRoster,
)
from sportsfest.services import roster_rules
from sportsfest.services.event_config import (
    MIN_TEAM_MEMBERS_FOR_EVENT_ROSTERS,
    get_event_display_name,
    get_event_requirements,
    get_starter_requirements,
    get_substitute_requirements,
)
from sportsfest.services.event_years import EventYearService
from sportsfest.services.rosters import TEAM_NOT_FOUND, get_team, team_member_count


def parse_event_type(value: EventType | str) -> EventType | None:
    if isinstance(value, EventType):
        return value
    try:
        return EventType(value)
    except ValueError:
        return None


def _roster_rows(team_id: str, event_type: EventType) -> list[EventRoster]:
    return EventRoster.query.filter_by(team_id=team_id, event_type=event_type).all()


def _slots(rows: list[EventRoster]) -> list[dict[str, Any]]:
    return [
        {
            'player_id': row.player_id,
            'gender': row.player.gender,
            'is_starter': row.is_starter,
            'squad_leader': row.squad_leader,
        }
        for row in rows
    ]


class EventRosterService:
    """Assign team members to individual beach events."""

    @staticmethod
    def get_event_roster(org_id: str, team_id: str, event_value: EventType | str) -> tuple[dict | None, str | None]:
        event_type = parse_event_type(event_value)
        if event_type is None:
            return None, roster_rules.INVALID_EVENT

        team = get_team(org_id, team_id)
        if team is None:
            return None, TEAM_NOT_FOUND

        rows = sorted(
            _roster_rows(team.id, event_type),
            key=lambda r: (not r.is_starter, not r.squad_leader, r.player.last_name),
        )
        slots = _slots(rows)
        return {
            'team': team,
            'event_type': event_type,
            'display_name': get_event_display_name(event_type),
            'rows': rows,
            'counts': roster_rules.count_slots(slots),
            'requirements': get_event_requirements(event_type),
            'starters': get_starter_requirements(event_type),
            'substitutes': get_substitute_requirements(event_type),
            'remaining': roster_rules.remaining_slots(event_type, slots),
            'squads': roster_rules.squads_for(event_type, slots),
            'team_member_count': team_member_count(team.id),
        }, None

    @staticmethod
    def add_player_to_event(
        org_id: str,
        team_id: str,
        player_id: str,
        event_value: EventType | str,
        is_starter: bool = True,
    ) -> tuple[EventRoster | None, str | None]:
        try:
            event_type = parse_event_type(event_value)
            if event_type is None:
                return None, roster_rules.INVALID_EVENT

            team = get_team(org_id, team_id)
            if team is None:
                return None, TEAM_NOT_FOUND

            member = (
                TeamRoster.query
                .filter_by(team_id=team.id, player_id=player_id)
                .join(Player, Player.id == TeamRoster.player_id)
                .first()
            )
            if member is None:
                return None, "Player not found on team roster"
            player = member.player
            if player.status == PlayerStatus.INACTIVE:
                return None, "Cannot add inactive player to event roster"

            rows = _roster_rows(team.id, event_type)
            if any(row.player_id == player.id for row in rows):
                return None, "Player is already assigned to this event"

            valid, error = roster_rules.validate_add(event_type, _slots(rows), player.gender, is_starter)
            if not valid:
                return None, error

            entry = EventRoster(
                team_id=team.id,
                player_id=player.id,
                event_type=event_type,
                is_starter=is_starter,
                squad_leader=False,
            )
            db.session.add(entry)
            db.session.commit()
            return entry, None

        except IntegrityError:
            db.session.rollback()
            return None, "Player is already assigned to this event"
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to add player to event roster: {e}")
            return None, "Failed to add player to event roster"

    @staticmethod
    def remove_player_from_event(org_id: str, team_id: str, player_id: str, event_value: EventType | str) -> tuple[bool, str | None]:
        try:
            event_type = parse_event_type(event_value)
            if event_type is None:
                return False, roster_rules.INVALID_EVENT

            team = get_team(org_id, team_id)
            if team is None:
                return False, TEAM_NOT_FOUND

            removed = EventRoster.query.filter_by(
                team_id=team.id, player_id=player_id, event_type=event_type
            ).delete()
            db.session.commit()
            if not removed:
                return False, "Player is not assigned to this event"
            return True, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to remove player from event roster: {e}")
            return False, "Failed to remove player from event roster"

    @staticmethod
    def toggle_starter(org_id: str, team_id: str, player_id: str, event_value: EventType | str) -> tuple[bool | None, str | None]:
        """Flip a player between starter and substitute."""
        try:
            event_type = parse_event_type(event_value)
            if event_type is None:
                return None, roster_rules.INVALID_EVENT

            team = get_team(org_id, team_id)
            if team is None:
                return None, TEAM_NOT_FOUND

            rows = _roster_rows(team.id, event_type)
            entry = next((row for row in rows if row.player_id == player_id), None)
            if entry is None:
                return None, "Player not found"

            make_starter = not entry.is_starter
            valid, error = roster_rules.validate_starter_toggle(
                event_type, _slots(rows), player_id, entry.player.gender, make_starter
            )
            if not valid:
                return None, error

            entry.is_starter = make_starter
            db.session.commit()
            return entry.is_starter, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to update starter status: {e}")
            return None, "Failed to update starter status"

    @staticmethod
    def move_player(
        org_id: str,
        team_id: str,
        player_id: str,
        event_value: EventType | str,
        to_starter: bool,
    ) -> tuple[EventRoster | None, str | None]:
        """Drag-and-drop move into the starter or substitute zone."""
        try:
            event_type = parse_event_type(event_value)
            if event_type is None:
                return None, roster_rules.INVALID_EVENT

            team = get_team(org_id, team_id)
            if team is None:
                return None, TEAM_NOT_FOUND

            rows = _roster_rows(team.id, event_type)
            entry = next((row for row in rows if row.player_id == player_id), None)
            if entry is None:
                return None, "Player not found"

            valid, error = roster_rules.validate_player_move(
                event_type, _slots(rows), player_id, entry.player.gender, to_starter
            )
            if not valid:
                return None, error

            entry.is_starter = to_starter
            db.session.commit()
            return entry, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to move player: {e}")
            return None, "Failed to move player"

    @staticmethod
    def swap_players(
        org_id: str,
        team_id: str,
        event_value: EventType | str,
        player_id: str,
        other_player_id: str,
    ) -> tuple[bool, str | None]:
        """Exchange zones of two players, used when the target zone is full."""
        try:
            event_type = parse_event_type(event_value)
            if event_type is None:
                return False, roster_rules.INVALID_EVENT

            team = get_team(org_id, team_id)
            if team is None:
                return False, TEAM_NOT_FOUND

            rows = _roster_rows(team.id, event_type)
            first = next((row for row in rows if row.player_id == player_id), None)
            second = next((row for row in rows if row.player_id == other_player_id), None)
            if first is None or second is None:
                return False, "Player not found"
            if first.is_starter == second.is_starter:
                return False, "Players are already in the same zone"

            swapped = _slots(rows)
            for slot in swapped:
                if slot['player_id'] in (player_id, other_player_id):
                    slot['is_starter'] = not slot['is_starter']

            # Validate the resulting roster zone by zone
            for slot in swapped:
                if slot['player_id'] in (player_id, other_player_id):
                    valid, error = roster_rules.validate_player_move(
                        event_type, swapped, slot['player_id'], slot['gender'], slot['is_starter']
                    )
                    if not valid:
                        return False, error

            first.is_starter, second.is_starter = second.is_starter, first.is_starter
            db.session.commit()
            return True, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to swap players: {e}")
            return False, "Failed to swap players"

    @staticmethod
    def toggle_squad_leader(
        org_id: str,
        team_id: str,
        player_id: str,
        event_value: EventType | str,
        is_squad_leader: bool | None = None,
    ) -> tuple[bool | None, str | None]:
        """Set (or flip) the squad leader; an event has at most one."""
        try:
            event_type = parse_event_type(event_value)
            if event_type is None:
                return None, roster_rules.INVALID_EVENT

            team = get_team(org_id, team_id)
            if team is None:
                return None, TEAM_NOT_FOUND

            rows = _roster_rows(team.id, event_type)
            entry = next((row for row in rows if row.player_id == player_id), None)
            if entry is None:
                return None, "Player not found"

            make_leader = (not entry.squad_leader) if is_squad_leader is None else bool(is_squad_leader)
            if make_leader:
                for row in rows:
                    if row is not entry:
                        row.squad_leader = False
            entry.squad_leader = make_leader
            db.session.commit()
            return entry.squad_leader, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to update squad leader status: {e}")
            return None, "Failed to update squad leader status"

    @staticmethod
    def clear_event_roster(org_id: str, team_id: str, event_value: EventType | str) -> tuple[int | None, str | None]:
        try:
            event_type = parse_event_type(event_value)
            if event_type is None:
                return None, roster_rules.INVALID_EVENT

            team = get_team(org_id, team_id)
            if team is None:
                return None, TEAM_NOT_FOUND

            removed = EventRoster.query.filter_by(team_id=team.id, event_type=event_type).delete()
            db.session.commit()
            return removed, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to clear event roster: {e}")
            return None, "Failed to clear event roster"

    @staticmethod
    def auto_generate_event_roster(org_id: str, team_id: str, event_value: EventType | str) -> tuple[dict | None, str | None]:
        """Fill an event roster from the team, most interested players first."""
        try:
            event_type = parse_event_type(event_value)
            if event_type is None or get_event_requirements(event_type)['total'] == 0:
                return None, roster_rules.INVALID_EVENT

            team = get_team(org_id, team_id)
            if team is None:
                return None, TEAM_NOT_FOUND

            if team_member_count(team.id) < MIN_TEAM_MEMBERS_FOR_EVENT_ROSTERS:
                return None, (
                    f"Team must have at least {MIN_TEAM_MEMBERS_FOR_EVENT_ROSTERS} members "
                    "before creating event rosters"
                )

            if EventYearService.get_active() is None:
                return None, "No active event year found"

            rows = _roster_rows(team.id, event_type)
            assigned_ids = {row.player_id for row in rows}

            members = (
                db.session.query(Player, PlayerEventInterest.interest_rating)
                .join(TeamRoster, TeamRoster.player_id == Player.id)
                .outerjoin(
                    PlayerEventInterest,
                    (PlayerEventInterest.player_id == Player.id)
                    & (PlayerEventInterest.event_type == event_type),
                )
                .filter(
                    TeamRoster.team_id == team.id,
                    Player.org_id == org_id,
                    Player.status != PlayerStatus.INACTIVE,
                )
                .order_by(Player.last_name, Player.first_name)
                .all()
            )
            candidates = roster_rules.sort_by_interest([
                {'player_id': player.id, 'gender': player.gender, 'interest_rating': rating}
                for player, rating in members
                if player.id not in assigned_ids
            ])
            if not candidates:
                return None, "No available players to assign"

            assignments = roster_rules.plan_auto_roster(event_type, candidates, existing=_slots(rows))
            for assignment in assignments:
                db.session.add(EventRoster(
                    team_id=team.id,
                    player_id=assignment['player_id'],
                    event_type=event_type,
                    is_starter=assignment['is_starter'],
                    squad_leader=assignment['squad_leader'],
                ))
            db.session.commit()

            return {'players_assigned': len(assignments), 'event_type': event_type.value}, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to auto-generate event roster: {e}")
            return None, "Failed to auto-generate event roster"


def serialize_event_roster_row(row: EventRoster) -> dict:
    return {
        'player_id': row.player_id,
        'first_name': row.player.first_name,
        'last_name': row.player.last_name,
        'gender': row.player.gender.value,
        'is_starter': row.is_starter,
        'squad_leader': row.squad_leader,
    }


def serialize_event_roster(roster: dict) -> dict:
    return {
        'team_id': roster['team'].id,
        'event_type': roster['event_type'].value,
        'display_name': roster['display_name'],
        'players': [serialize_event_roster_row(row) for row in roster['rows']],
        'counts': roster['counts'],
        'requirements': roster['requirements'],
        'starters': roster['starters'],
        'substitutes': roster['substitutes'],
        'remaining': roster['remaining'],
        'squads': roster['squads'],
        'can_generate': roster['team_member_count'] >= MIN_TEAM_MEMBERS_FOR_EVENT_ROSTERS,
    }


__all__ = [
    'EventRosterService',
    'parse_event_type',
    'serialize_event_roster',
    'serialize_event_roster_row',
]
