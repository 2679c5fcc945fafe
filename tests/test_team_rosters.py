"""Company team roster service."""

import pytest

from sportsfest.extensions import db
from sportsfest.models import EventRoster, EventType, Gender, PlayerStatus, TeamRoster
from sportsfest.services.rosters import TEAM_NOT_FOUND, TeamRosterService


@pytest.fixture
def setup(ctx, factory):
    org = factory.org()
    event_year = factory.event_year()
    team1 = factory.team(org, event_year, 1)
    team2 = factory.team(org, event_year, 2)
    return org, event_year, team1, team2


def test_add_player_to_team(setup, factory):
    org, event_year, team1, _ = setup
    player = factory.player(org, event_year)

    entry, error = TeamRosterService.add_player(org.id, team1.id, player.id)

    assert error is None
    assert entry.team_id == team1.id
    assert entry.is_captain is False


def test_player_can_only_be_on_one_team(setup, factory):
    org, event_year, team1, team2 = setup
    player = factory.player(org, event_year)
    TeamRosterService.add_player(org.id, team1.id, player.id)

    entry, error = TeamRosterService.add_player(org.id, team2.id, player.id)

    assert entry is None
    assert error == "Player is already assigned to a team"


def test_add_rejects_inactive_player(setup, factory):
    org, event_year, team1, _ = setup
    player = factory.player(org, event_year, status=PlayerStatus.INACTIVE)

    _, error = TeamRosterService.add_player(org.id, team1.id, player.id)

    assert error == "Cannot add inactive player to team roster"


def test_add_rejects_player_from_other_event_year(setup, factory):
    org, _, team1, _ = setup
    old_year = factory.event_year(2025, active=False)
    player = factory.player(org, old_year)

    _, error = TeamRosterService.add_player(org.id, team1.id, player.id)

    assert error == "Player is registered for a different event year"


def test_team_of_other_org_is_not_found(setup, factory):
    org, event_year, team1, _ = setup
    other = factory.org('Globex', 'globex')
    player = factory.player(other, event_year)

    _, error = TeamRosterService.add_player(other.id, team1.id, player.id)

    assert error == TEAM_NOT_FOUND
    assert TeamRosterService.get_team_roster(other.id, team1.id) is None


def test_remove_player_clears_event_rosters(setup, factory):
    org, event_year, team1, _ = setup
    player = factory.player(org, event_year)
    factory.roster(team1, [player])
    db.session.add(EventRoster(team_id=team1.id, player_id=player.id, event_type=EventType.TUG_OF_WAR))
    db.session.add(EventRoster(team_id=team1.id, player_id=player.id, event_type=EventType.CORN_TOSS))
    db.session.commit()

    removed, error = TeamRosterService.remove_player(org.id, team1.id, player.id)

    assert error is None
    assert removed == 2
    assert TeamRoster.query.filter_by(player_id=player.id).count() == 0


def test_transfer_moves_player_and_resets_captain(setup, factory):
    org, event_year, team1, team2 = setup
    player = factory.player(org, event_year)
    factory.roster(team1, [player], captain=player)
    db.session.add(EventRoster(team_id=team1.id, player_id=player.id, event_type=EventType.BEACH_VOLLEYBALL))
    db.session.commit()

    removed, error = TeamRosterService.transfer_player(org.id, player.id, team2.id)

    assert error is None
    assert removed == 1
    entry = TeamRoster.query.filter_by(player_id=player.id).one()
    assert entry.team_id == team2.id
    assert entry.is_captain is False
    assert EventRoster.query.filter_by(player_id=player.id).count() == 0


def test_transfer_errors(setup, factory):
    org, event_year, team1, team2 = setup
    player = factory.player(org, event_year)

    _, error = TeamRosterService.transfer_player(org.id, player.id, team2.id)
    assert error == "Player is not currently assigned to any team"

    factory.roster(team2, [player])
    _, error = TeamRosterService.transfer_player(org.id, player.id, team2.id)
    assert error == "Player is already on this team"


def test_toggle_captain(setup, factory):
    org, event_year, team1, _ = setup
    player = factory.player(org, event_year)
    factory.roster(team1, [player])

    assert TeamRosterService.toggle_captain(org.id, team1.id, player.id) == (True, None)
    assert TeamRosterService.toggle_captain(org.id, team1.id, player.id) == (False, None)
    assert TeamRosterService.toggle_captain(org.id, team1.id, player.id, is_captain=True) == (True, None)

    outsider = factory.player(org, event_year)
    assert TeamRosterService.toggle_captain(org.id, team1.id, outsider.id) == (None, "Player not found on team roster")


def test_transfer_warnings_flag_stale_event_entries(setup, factory):
    org, event_year, team1, team2 = setup
    player = factory.player(org, event_year)
    factory.roster(team2, [player])
    db.session.add(EventRoster(team_id=team1.id, player_id=player.id, event_type=EventType.TUG_OF_WAR))
    db.session.commit()

    warnings = TeamRosterService.get_transfer_warnings(org.id)
    assert [w.player_id for w in warnings] == [player.id]

    resolved, error = TeamRosterService.resolve_transfer_warnings(org.id)
    assert error is None
    assert resolved == 1
    assert TeamRosterService.get_transfer_warnings(org.id) == []


def test_auto_generate_balances_genders(setup, factory):
    org, event_year, team1, team2 = setup
    for _ in range(5):
        factory.player(org, event_year, Gender.MALE)
    for _ in range(3):
        factory.player(org, event_year, Gender.FEMALE)
    factory.player(org, event_year, Gender.MALE, status=PlayerStatus.INACTIVE)

    result, error = TeamRosterService.auto_generate_team_rosters(org.id)

    assert error is None
    assert result == {'players_assigned': 8, 'teams': 2}

    first = TeamRosterService.get_team_roster(org.id, team1.id)
    second = TeamRosterService.get_team_roster(org.id, team2.id)
    assert (first['male_count'], first['female_count']) == (3, 2)
    assert (second['male_count'], second['female_count']) == (2, 1)
    assert sum(1 for e in first['entries'] if e.is_captain) == 1
    assert sum(1 for e in second['entries'] if e.is_captain) == 1


def test_auto_generate_errors(ctx, factory):
    org = factory.org()

    assert TeamRosterService.auto_generate_team_rosters(org.id) == (None, "No active event year found")

    event_year = factory.event_year()
    assert TeamRosterService.auto_generate_team_rosters(org.id) == (None, "No available players to assign")

    factory.player(org, event_year)
    assert TeamRosterService.auto_generate_team_rosters(org.id) == (None, "No teams found to assign players to")
