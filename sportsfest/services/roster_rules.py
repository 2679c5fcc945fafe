"""Event roster capacity and gender-balance rules.

Every function here is pure: it works on plain slot dicts
``{'player_id': str, 'gender': 'male' | 'female', 'is_starter': bool}``
and returns ``(valid, error_message)`` tuples, so the same rules back the
add, toggle, drag-and-drop and auto-fill paths.
"""

from __future__ import annotations

from typing import Any, Iterable

from sportsfest.models import Gender
from sportsfest.services.event_config import (
    DEFAULT_INTEREST_RATING,
    get_event_requirements,
    get_squad_layout,
    get_starter_requirements,
    get_substitute_requirements,
    is_gender_neutral,
)

Slot = dict[str, Any]

INVALID_EVENT = "Invalid event type"


def _gender_key(gender: Gender | str) -> str:
    return gender.value if isinstance(gender, Gender) else str(gender)


def count_slots(slots: Iterable[Slot]) -> dict[str, int]:
    """Tally a roster by gender and by starter/substitute zone."""
    counts = {
        'total': 0,
        'male': 0,
        'female': 0,
        'starters': 0,
        'male_starters': 0,
        'female_starters': 0,
        'substitutes': 0,
        'male_substitutes': 0,
        'female_substitutes': 0,
    }
    for slot in slots:
        gender = _gender_key(slot['gender'])
        zone = 'starters' if slot.get('is_starter', True) else 'substitutes'
        counts['total'] += 1
        counts[zone] += 1
        if gender in ('male', 'female'):
            counts[gender] += 1
            counts[f'{gender}_{zone}'] += 1
    return counts


def _check_starter_capacity(event_type, counts: dict[str, int], gender: str) -> tuple[bool, str | None]:
    starters = get_starter_requirements(event_type)
    if not is_gender_neutral(event_type) and counts[f'{gender}_starters'] >= starters[gender]:
        return False, f"{gender.capitalize()} starter slots are full for this event"
    if counts['starters'] >= starters['total']:
        return False, "Starter slots are full for this event"
    return True, None


def _check_substitute_capacity(event_type, counts: dict[str, int], gender: str) -> tuple[bool, str | None]:
    substitutes = get_substitute_requirements(event_type)
    if not is_gender_neutral(event_type) and counts[f'{gender}_substitutes'] >= substitutes[gender]:
        return False, f"{gender.capitalize()} substitute slots are full for this event"
    if counts['substitutes'] >= substitutes['total']:
        return False, "Substitute slots are full for this event"
    return True, None


def validate_add(event_type, slots: list[Slot], gender: Gender | str, as_starter: bool = True) -> tuple[bool, str | None]:
    """Check whether one more player of ``gender`` fits on the event roster."""
    requirements = get_event_requirements(event_type)
    if requirements['total'] == 0:
        return False, INVALID_EVENT

    gender = _gender_key(gender)
    counts = count_slots(slots)

    if counts['total'] >= requirements['total']:
        return False, "Event roster is full"

    if not is_gender_neutral(event_type) and counts[gender] >= requirements[gender]:
        return False, f"{gender.capitalize()} slots are full for this event"

    if as_starter:
        return _check_starter_capacity(event_type, counts, gender)
    return _check_substitute_capacity(event_type, counts, gender)


def validate_starter_toggle(
    event_type,
    slots: list[Slot],
    player_id: str,
    gender: Gender | str,
    make_starter: bool,
) -> tuple[bool, str | None]:
    """Check a starter/substitute flip against the zone the player lands in."""
    if get_event_requirements(event_type)['total'] == 0:
        return False, INVALID_EVENT

    gender = _gender_key(gender)
    counts = count_slots(slot for slot in slots if slot['player_id'] != player_id)
    if make_starter:
        return _check_starter_capacity(event_type, counts, gender)
    return _check_substitute_capacity(event_type, counts, gender)


def validate_player_move(
    event_type,
    slots: list[Slot],
    player_id: str,
    gender: Gender | str,
    to_starter: bool,
) -> tuple[bool, str | None]:
    """Validate a drag-and-drop move into the starter or substitute zone.

    The target zone is counted with the mover in it, and without any entry
    the mover already has there.
    """
    if get_event_requirements(event_type)['total'] == 0:
        return False, INVALID_EVENT

    gender = _gender_key(gender)
    zone_name = 'starter' if to_starter else 'substitute'
    zone = get_starter_requirements(event_type) if to_starter else get_substitute_requirements(event_type)

    zone_slots = [
        slot for slot in slots
        if bool(slot.get('is_starter', True)) == to_starter and slot['player_id'] != player_id
    ]
    zone_slots.append({'player_id': player_id, 'gender': gender, 'is_starter': to_starter})

    if len(zone_slots) > zone['total']:
        return False, f"{zone_name.capitalize()} slots are full"

    if zone['any'] == 0 and not is_gender_neutral(event_type):
        gender_count = sum(1 for slot in zone_slots if _gender_key(slot['gender']) == gender)
        if gender_count > zone[gender]:
            return False, f"{gender.capitalize()} {zone_name} slots are full"

    return True, None


def sort_by_interest(candidates: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Most interested first (rating 1); unrated players sort last."""
    return sorted(
        candidates,
        key=lambda c: c.get('interest_rating') or DEFAULT_INTEREST_RATING,
    )


def plan_auto_roster(
    event_type,
    candidates: list[dict[str, Any]],
    existing: list[Slot] | None = None,
) -> list[dict[str, Any]]:
    """Pick players to fill the open slots of an event roster.

    ``candidates`` must already be in preference order. Returns assignments
    ``{'player_id', 'is_starter', 'squad_leader'}``. When the roster has no
    squad leader yet, the first assigned player becomes one.
    """
    requirements = get_event_requirements(event_type)
    if requirements['total'] == 0:
        return []

    existing = existing or []
    counts = count_slots(existing)
    starters = get_starter_requirements(event_type)
    assignments: list[dict[str, Any]] = []

    if is_gender_neutral(event_type):
        open_slots = max(0, requirements['total'] - counts['total'])
        open_starters = max(0, starters['total'] - counts['starters'])
        for index, candidate in enumerate(candidates[:open_slots]):
            assignments.append({
                'player_id': candidate['player_id'],
                'is_starter': index < open_starters,
            })
    else:
        for gender in ('male', 'female'):
            open_slots = max(0, requirements[gender] - counts[gender])
            open_starters = max(0, starters[gender] - counts[f'{gender}_starters'])
            pool = [c for c in candidates if _gender_key(c['gender']) == gender]
            for index, candidate in enumerate(pool[:open_slots]):
                assignments.append({
                    'player_id': candidate['player_id'],
                    'is_starter': index < open_starters,
                })

    has_leader = any(slot.get('squad_leader') for slot in existing)
    for index, assignment in enumerate(assignments):
        assignment['squad_leader'] = index == 0 and not has_leader

    return assignments


def squads_for(event_type, slots: list[Slot]) -> list[list[str]] | None:
    """Split a squad-based roster (corn toss) into fixed-size squads."""
    layout = get_squad_layout(event_type)
    if layout is None:
        return None

    ordered = sorted(slots, key=lambda s: not s.get('squad_leader', False))
    player_ids = [slot['player_id'] for slot in ordered]
    size = layout['squad_size']
    return [player_ids[i * size:(i + 1) * size] for i in range(layout['squad_count'])]


def remaining_slots(event_type, slots: list[Slot]) -> dict[str, int]:
    """Open slots per bucket, never negative."""
    requirements = get_event_requirements(event_type)
    starters = get_starter_requirements(event_type)
    counts = count_slots(slots)
    return {
        'total': max(0, requirements['total'] - counts['total']),
        'male': max(0, requirements['male'] - counts['male']),
        'female': max(0, requirements['female'] - counts['female']),
        'starters': max(0, starters['total'] - counts['starters']),
        'substitutes': max(0, get_substitute_requirements(event_type)['total'] - counts['substitutes']),
    }


__all__ = [
    'count_slots',
    'validate_add',
    'validate_starter_toggle',
    'validate_player_move',
    'sort_by_interest',
    'plan_auto_roster',
    'squads_for',
    'remaining_slots',
]
