"""Company team roster management service."""
from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from sportsfest.extensions import db
from sportsfest.models import (
    CompanyTeam,
    EventRoster,
    Gender,
    Player,
    PlayerStatus,
    TeamRoster,
)
from sportsfest.services.event_years import EventYearService
from sportsfest.services.timeutils import utcnow

TEAM_NOT_FOUND = "Team not found or access denied"
PLAYER_NOT_FOUND = "Player not found or access denied"


def get_team(org_id: str, team_id: str) -> CompanyTeam | None:
    """Fetch a team only if it belongs to the organization."""
    return CompanyTeam.query.filter_by(id=team_id, org_id=org_id).first()


def team_member_count(team_id: str) -> int:
    return TeamRoster.query.filter_by(team_id=team_id).count()


class TeamRosterService:
    """Add, remove, transfer and auto-assign players on company teams."""

    @staticmethod
    def get_team_roster(org_id: str, team_id: str) -> dict[str, Any] | None:
        team = get_team(org_id, team_id)
        if team is None:
            return None

        entries = (
            TeamRoster.query
            .filter_by(team_id=team.id)
            .join(Player, Player.id == TeamRoster.player_id)
            .order_by(TeamRoster.is_captain.desc(), Player.last_name, Player.first_name)
            .all()
        )
        return {
            'team': team,
            'entries': entries,
            'member_count': len(entries),
            'male_count': sum(1 for e in entries if e.player.gender == Gender.MALE),
            'female_count': sum(1 for e in entries if e.player.gender == Gender.FEMALE),
        }

    @staticmethod
    def add_player(org_id: str, team_id: str, player_id: str) -> tuple[TeamRoster | None, str | None]:
        """Put a player on a team; a player can only ever be on one team."""
        try:
            team = get_team(org_id, team_id)
            if team is None:
                return None, TEAM_NOT_FOUND

            player = Player.query.filter_by(id=player_id, org_id=org_id).first()
            if player is None:
                return None, PLAYER_NOT_FOUND
            if player.status == PlayerStatus.INACTIVE:
                return None, "Cannot add inactive player to team roster"
            if player.event_year_id != team.event_year_id:
                return None, "Player is registered for a different event year"

            if TeamRoster.query.filter_by(player_id=player.id).first():
                return None, "Player is already assigned to a team"

            entry = TeamRoster(team_id=team.id, player_id=player.id, is_captain=False)
            db.session.add(entry)
            db.session.commit()
            return entry, None

        except IntegrityError:
            db.session.rollback()
            return None, "Player is already assigned to a team"
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to add player to team: {e}")
            return None, "Failed to add player to team"

    @staticmethod
    def remove_player(org_id: str, team_id: str, player_id: str) -> tuple[int | None, str | None]:
        """Remove a player from the team and from every event roster of that team.

        Returns the number of event roster entries that were removed.
        """
        try:
            team = get_team(org_id, team_id)
            if team is None:
                return None, TEAM_NOT_FOUND

            TeamRoster.query.filter_by(team_id=team.id, player_id=player_id).delete()
            removed = EventRoster.query.filter_by(team_id=team.id, player_id=player_id).delete()
            db.session.commit()
            return removed, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to remove player from team: {e}")
            return None, "Failed to remove player from team"

    @staticmethod
    def transfer_player(org_id: str, player_id: str, new_team_id: str) -> tuple[int | None, str | None]:
        """Move a player to another team in one transaction.

        Captaincy is reset and event roster spots left behind on the old team
        are cleared. Returns the number of event roster entries removed.
        """
        try:
            new_team = get_team(org_id, new_team_id)
            if new_team is None:
                return None, TEAM_NOT_FOUND

            player = Player.query.filter_by(id=player_id, org_id=org_id).first()
            if player is None:
                return None, PLAYER_NOT_FOUND
            if player.status == PlayerStatus.INACTIVE:
                return None, "Cannot transfer inactive player"

            entry = TeamRoster.query.filter_by(player_id=player.id).first()
            if entry is None:
                return None, "Player is not currently assigned to any team"
            if entry.team_id == new_team.id:
                return None, "Player is already on this team"

            entry.team_id = new_team.id
            entry.is_captain = False
            entry.assigned_at = utcnow()

            removed = EventRoster.query.filter(
                EventRoster.player_id == player.id,
                EventRoster.team_id != new_team.id,
            ).delete(synchronize_session=False)

            db.session.commit()
            return removed, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to transfer player: {e}")
            return None, "Failed to transfer player"

    @staticmethod
    def toggle_captain(org_id: str, team_id: str, player_id: str, is_captain: bool | None = None) -> tuple[bool | None, str | None]:
        """Set captaincy, or flip it when ``is_captain`` is None."""
        try:
            team = get_team(org_id, team_id)
            if team is None:
                return None, TEAM_NOT_FOUND

            entry = TeamRoster.query.filter_by(team_id=team.id, player_id=player_id).first()
            if entry is None:
                return None, "Player not found on team roster"

            entry.is_captain = (not entry.is_captain) if is_captain is None else bool(is_captain)
            db.session.commit()
            return entry.is_captain, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to update captain status: {e}")
            return None, "Failed to update captain status"

    @staticmethod
    def _transfer_warning_query(org_id: str, player_id: str | None = None):
        query = (
            EventRoster.query
            .join(CompanyTeam, CompanyTeam.id == EventRoster.team_id)
            .outerjoin(TeamRoster, TeamRoster.player_id == EventRoster.player_id)
            .filter(CompanyTeam.org_id == org_id)
            .filter(or_(TeamRoster.id.is_(None), TeamRoster.team_id != EventRoster.team_id))
        )
        if player_id:
            query = query.filter(EventRoster.player_id == player_id)
        return query

    @staticmethod
    def get_transfer_warnings(org_id: str, player_id: str | None = None) -> list[EventRoster]:
        """Event roster entries for players who are no longer on that team."""
        try:
            return TeamRosterService._transfer_warning_query(org_id, player_id).all()
        except Exception as e:
            current_app.logger.error(f"Failed to load transfer warnings: {e}")
            return []

    @staticmethod
    def resolve_transfer_warnings(org_id: str, player_id: str | None = None) -> tuple[int | None, str | None]:
        try:
            stale = TeamRosterService._transfer_warning_query(org_id, player_id).all()
            for entry in stale:
                db.session.delete(entry)
            db.session.commit()
            return len(stale), None
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to resolve transfer warnings: {e}")
            return None, "Failed to resolve transfer warnings"

    @staticmethod
    def auto_generate_team_rosters(org_id: str) -> tuple[dict[str, int] | None, str | None]:
        """Spread unassigned players over the organization's teams.

        Men and women are balanced separately: every team gets
        ``n // teams`` of each, and the first ``n % teams`` teams one extra.
        """
        try:
            event_year = EventYearService.get_active()
            if event_year is None:
                return None, "No active event year found"

            available = (
                Player.query
                .outerjoin(TeamRoster, TeamRoster.player_id == Player.id)
                .filter(
                    Player.org_id == org_id,
                    Player.event_year_id == event_year.id,
                    Player.status != PlayerStatus.INACTIVE,
                    TeamRoster.id.is_(None),
                )
                .order_by(Player.first_name, Player.last_name)
                .all()
            )
            if not available:
                return None, "No available players to assign"

            teams = (
                CompanyTeam.query
                .filter_by(org_id=org_id, event_year_id=event_year.id)
                .order_by(CompanyTeam.team_number)
                .all()
            )
            if not teams:
                return None, "No teams found to assign players to"

            males = [p for p in available if p.gender == Gender.MALE]
            females = [p for p in available if p.gender == Gender.FEMALE]
            team_count = len(teams)
            assigned = 0

            male_iter = iter(males)
            female_iter = iter(females)
            for index, team in enumerate(teams):
                needs_captain = team_member_count(team.id) == 0
                male_quota = len(males) // team_count + (1 if index < len(males) % team_count else 0)
                female_quota = len(females) // team_count + (1 if index < len(females) % team_count else 0)

                for _, player in zip(range(male_quota), male_iter):
                    db.session.add(TeamRoster(team_id=team.id, player_id=player.id, is_captain=needs_captain))
                    needs_captain = False
                    assigned += 1
                for _, player in zip(range(female_quota), female_iter):
                    db.session.add(TeamRoster(team_id=team.id, player_id=player.id, is_captain=needs_captain))
                    needs_captain = False
                    assigned += 1

            db.session.commit()
            return {'players_assigned': assigned, 'teams': team_count}, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to auto-generate rosters: {e}")
            return None, "Failed to auto-generate rosters"


def serialize_roster_entry(entry: TeamRoster) -> dict:
    player = entry.player
    return {
        'player_id': player.id,
        'first_name': player.first_name,
        'last_name': player.last_name,
        'email': player.email,
        'gender': player.gender.value,
        'status': player.status.value,
        'is_captain': entry.is_captain,
        'assigned_at': entry.assigned_at.isoformat() if entry.assigned_at else None,
    }


def serialize_transfer_warning(entry: EventRoster) -> dict:
    current = entry.player.roster_entry
    return {
        'player_id': entry.player_id,
        'player_name': entry.player.full_name,
        'event_type': entry.event_type.value,
        'old_team_id': entry.team_id,
        'current_team_id': current.team_id if current else None,
    }


__all__ = [
    'TeamRosterService',
    'get_team',
    'team_member_count',
    'serialize_roster_entry',
    'serialize_transfer_warning',
]
