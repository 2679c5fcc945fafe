"""
Event-specific roster configuration.
This module defines how many players each beach event needs and how the
roster splits between starters and substitutes.
"""

from typing import Any, Dict, List

from sportsfest.models import EventType

# Minimum team roster size before event rosters can be built
MIN_TEAM_MEMBERS_FOR_EVENT_ROSTERS = 12

# Sort key used for players who never rated an event
DEFAULT_INTEREST_RATING = 5

EVENT_CONFIGS = {
    'beach_volleyball': {
        'display_name': 'Beach Volleyball',
        'requirements': {'total': 12, 'male': 6, 'female': 6, 'any': 0},
        'starters': {'total': 6, 'male': 3, 'female': 3, 'any': 0},
    },
    'beach_dodgeball': {
        'display_name': 'Beach Dodgeball',
        'requirements': {'total': 10, 'male': 5, 'female': 5, 'any': 0},
        'starters': {'total': 6, 'male': 3, 'female': 3, 'any': 0},
    },
    'bote_beach_challenge': {
        'display_name': 'BOTE Beach Challenge',
        'requirements': {'total': 11, 'male': 7, 'female': 4, 'any': 0},
        'starters': {'total': 7, 'male': 4, 'female': 3, 'any': 0},
    },
    'tug_of_war': {
        'display_name': 'Tug of War',
        'requirements': {'total': 9, 'male': 5, 'female': 4, 'any': 0},
        'starters': {'total': 5, 'male': 3, 'female': 2, 'any': 0},
    },
    'corn_toss': {
        'display_name': 'Corn Toss',
        'requirements': {'total': 4, 'male': 0, 'female': 0, 'any': 4},
        'starters': {'total': 4, 'male': 0, 'female': 0, 'any': 4},
        # Played as two squads of two
        'squad_count': 2,
        'squad_size': 2,
    },
}

_EMPTY_REQUIREMENTS = {'total': 0, 'male': 0, 'female': 0, 'any': 0}


def _event_key(event_type: EventType | str) -> str:
    return event_type.value if isinstance(event_type, EventType) else str(event_type)


def get_event_config(event_type: EventType | str) -> Dict[str, Any]:
    """Get configuration for an event type, empty for unknown events."""
    return EVENT_CONFIGS.get(_event_key(event_type), {})


def is_valid_event(event_type: EventType | str) -> bool:
    return get_event_requirements(event_type)['total'] > 0


def get_event_requirements(event_type: EventType | str) -> Dict[str, int]:
    """Total roster requirements; unknown events report a total of 0."""
    config = get_event_config(event_type)
    return dict(config.get('requirements', _EMPTY_REQUIREMENTS))


def get_starter_requirements(event_type: EventType | str) -> Dict[str, int]:
    config = get_event_config(event_type)
    return dict(config.get('starters', _EMPTY_REQUIREMENTS))


def get_substitute_requirements(event_type: EventType | str) -> Dict[str, int]:
    """Substitute slots are whatever the starters leave of the total."""
    total = get_event_requirements(event_type)
    starters = get_starter_requirements(event_type)
    return {key: max(0, total[key] - starters[key]) for key in ('total', 'male', 'female', 'any')}


def is_gender_neutral(event_type: EventType | str) -> bool:
    """Events with an unconstrained 'any' count ignore gender balance."""
    return get_event_requirements(event_type)['any'] > 0


def get_squad_layout(event_type: EventType | str) -> Dict[str, int] | None:
    config = get_event_config(event_type)
    if 'squad_count' not in config:
        return None
    return {'squad_count': config['squad_count'], 'squad_size': config['squad_size']}


def get_event_display_name(event_type: EventType | str) -> str:
    key = _event_key(event_type)
    return get_event_config(key).get('display_name', key.replace('_', ' ').title())


def get_all_events() -> List[Dict[str, Any]]:
    """List all configured events with their requirements."""
    return [
        {
            'value': key,
            'label': config['display_name'],
            'requirements': dict(config['requirements']),
            'starters': dict(config['starters']),
            'substitutes': get_substitute_requirements(key),
        }
        for key, config in EVENT_CONFIGS.items()
    ]
